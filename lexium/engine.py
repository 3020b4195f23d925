from __future__ import annotations

import logging
import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Union

import numpy as np
import pandas as pd

from lexium.config import DOCUMENT_MAX_CHARS, THRESHOLD_MAX_ROWS
from lexium.intents import (
    ASC,
    Average,
    Fallback,
    Filter,
    Intent,
    Percentile,
    Report,
    Sample,
    TextLookup,
    Threshold,
    TopN,
)
from lexium.loader import Dataset, parse_number
from lexium.resolver import MATCH_SUGGESTIONS, resolve_entity
from lexium.stats import HIGH_MIN, LOW_MAX, bucket, is_finite, mid_rank_percentile, round_half_away
from lexium.text import normalize_text

logger = logging.getLogger(__name__)

REPORT_HIGHLIGHTS = 5

COMPARATOR_FUNCS: dict[str, Callable[[Any, Any], Any]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}

# NoDataResult reasons
NO_DATA = "no_data"
MISSING_COLUMN = "missing_column"
MISSING_DOCUMENT = "missing_document"


class UnsupportedIntentError(ValueError):
    """Raised for intents the engine does not compute (Fallback is delegated to text generation)."""


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NoDataResult:
    reason: str
    detail: str = ""


@dataclass(frozen=True)
class ScalarResult:
    measure: str
    value: float | None
    count: int
    filter: Filter = Filter()


@dataclass(frozen=True)
class TableResult:
    kind: str
    title: str
    columns: list[str]
    rows: list[list[Any]]
    total: int
    measure: str | None = None
    filter: Filter = Filter()


@dataclass(frozen=True)
class PercentileResult:
    entity_query: str
    measure: str
    entity_name: str | None = None
    value: float | None = None
    percentile: int | None = None
    bucket: str | None = None
    cohort_size: int = 0
    suggestions: list[str] = field(default_factory=list)
    filter: Filter = Filter()

    @property
    def available(self) -> bool:
        return self.percentile is not None


@dataclass(frozen=True)
class ReportLine:
    column: str
    value: float | None
    bucket: str


@dataclass(frozen=True)
class ReportResult:
    entity_query: str
    entity_name: str | None = None
    record: dict[str, Any] = field(default_factory=dict)
    lines: list[ReportLine] = field(default_factory=list)
    strengths: list[ReportLine] = field(default_factory=list)
    growth_areas: list[ReportLine] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.entity_name is not None


@dataclass(frozen=True)
class DocumentResult:
    name: str
    text: str
    truncated: bool = False


AggregationResult = Union[NoDataResult, ScalarResult, TableResult, PercentileResult, ReportResult, DocumentResult]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def apply_filter(dataset: Dataset, flt: Filter) -> pd.DataFrame:
    scoped = dataset.frame
    for column_name, value in flt.pairs:
        column = dataset.column(column_name)
        if column is None:
            logger.debug("Filter column %s not in dataset; ignored.", column_name)
            continue
        if column.is_numeric:
            target = parse_number(value)
            mask = scoped[column_name] == target
        else:
            mask = scoped[column_name].map(normalize_text) == normalize_text(value)
        scoped = scoped[mask]
    return scoped


def _finite_mask(values: pd.Series) -> pd.Series:
    return pd.Series(np.isfinite(values.to_numpy(dtype="float64")), index=values.index)


def _checked_measure(dataset: Dataset, measure: str | None) -> str | NoDataResult:
    """The measure column name, or why it cannot be aggregated."""
    if dataset.is_empty:
        return NoDataResult(NO_DATA)
    column = dataset.column(measure)
    if column is None or not column.is_numeric:
        return NoDataResult(MISSING_COLUMN, detail=measure or "numeric column")
    return column.name


def _ranked_columns(dataset: Dataset, measure: str) -> list[str]:
    ordered = [dataset.name_column, *dataset.group_columns, measure]
    return [name for name in dict.fromkeys(ordered) if name is not None]


def _stable_sort(frame: pd.DataFrame, measure: str, ascending: bool) -> pd.DataFrame:
    """Sort by measure; ties keep original row order in both directions."""
    keyed = frame.assign(_position=np.arange(len(frame)))
    ordered = keyed.sort_values([measure, "_position"], ascending=[ascending, True], kind="mergesort")
    return ordered.drop(columns="_position")


def _rows(frame: pd.DataFrame, columns: list[str]) -> list[list[Any]]:
    return frame[columns].astype(object).values.tolist()


def _entity_label(dataset: Dataset, record: dict[str, Any]) -> str:
    name_col = dataset.name_column
    return str(record.get(name_col, "")) if name_col else ""


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def sample_rows(dataset: Dataset, intent: Sample) -> AggregationResult:
    if dataset.is_empty:
        return NoDataResult(NO_DATA)
    head = dataset.frame.head(intent.n)
    return TableResult(
        kind="sample",
        title=f"First {len(head)} rows",
        columns=dataset.column_names,
        rows=_rows(head, dataset.column_names),
        total=dataset.row_count,
    )


def average(dataset: Dataset, intent: Average) -> AggregationResult:
    measure = _checked_measure(dataset, intent.measure)
    if isinstance(measure, NoDataResult):
        return measure
    scoped = apply_filter(dataset, intent.filter)

    if intent.group is None:
        values = scoped[measure][_finite_mask(scoped[measure])]
        mean = float(values.mean()) if len(values) else None
        return ScalarResult(measure=measure, value=mean, count=int(len(values)), filter=intent.filter)

    if dataset.column(intent.group) is None:
        return NoDataResult(MISSING_COLUMN, detail=intent.group)

    group = intent.group
    labelled = scoped[scoped[group].map(lambda label: is_finite(label) or (isinstance(label, str) and label != ""))]
    rows: list[list[Any]] = []
    for label, part in labelled.groupby(group, sort=True):
        values = part[measure][_finite_mask(part[measure])]
        mean = round_half_away(float(values.mean()), 1) if len(values) else None
        rows.append([label, mean])
    return TableResult(
        kind="grouped_average",
        title=f"Average {measure} by {group}",
        columns=[group, measure],
        rows=rows,
        total=len(rows),
        measure=measure,
        filter=intent.filter,
    )


def top_n(dataset: Dataset, intent: TopN) -> AggregationResult:
    measure = _checked_measure(dataset, intent.measure)
    if isinstance(measure, NoDataResult):
        return measure
    scoped = apply_filter(dataset, intent.filter)
    scoped = scoped[_finite_mask(scoped[measure])]
    ordered = _stable_sort(scoped, measure, ascending=intent.order == ASC)
    columns = _ranked_columns(dataset, measure)
    label = "Bottom" if intent.order == ASC else "Top"
    return TableResult(
        kind="top_n",
        title=f"{label} {intent.k} by {measure}",
        columns=columns,
        rows=_rows(ordered.head(intent.k), columns),
        total=len(scoped),
        measure=measure,
        filter=intent.filter,
    )


def threshold(dataset: Dataset, intent: Threshold) -> AggregationResult:
    measure = _checked_measure(dataset, intent.measure)
    if isinstance(measure, NoDataResult):
        return measure
    compare = COMPARATOR_FUNCS[intent.comparator]
    scoped = apply_filter(dataset, intent.filter)
    scoped = scoped[_finite_mask(scoped[measure])]
    kept = scoped[compare(scoped[measure], intent.value)]
    ordered = _stable_sort(kept, measure, ascending=False)
    columns = _ranked_columns(dataset, measure)
    return TableResult(
        kind="threshold",
        title=f"{measure} {intent.comparator} {intent.value:g}",
        columns=columns,
        rows=_rows(ordered.head(THRESHOLD_MAX_ROWS), columns),
        total=len(kept),
        measure=measure,
        filter=intent.filter,
    )


def percentile(dataset: Dataset, intent: Percentile) -> AggregationResult:
    measure = _checked_measure(dataset, intent.measure)
    if isinstance(measure, NoDataResult):
        return measure

    resolution = resolve_entity(dataset, intent.entity_query)
    if not resolution.found:
        return PercentileResult(
            entity_query=intent.entity_query,
            measure=measure,
            suggestions=resolution.suggestions[:MATCH_SUGGESTIONS],
            filter=intent.filter,
        )

    record = resolution.match or {}
    value = record.get(measure)
    cohort = apply_filter(dataset, intent.filter)[measure]
    cohort = cohort[_finite_mask(cohort)]
    rank = mid_rank_percentile(value, cohort.tolist()) if is_finite(value) else None
    return PercentileResult(
        entity_query=intent.entity_query,
        measure=measure,
        entity_name=_entity_label(dataset, record),
        value=float(value) if is_finite(value) else None,
        percentile=rank,
        bucket=bucket(value),
        cohort_size=int(len(cohort)),
        suggestions=resolution.suggestions,
        filter=intent.filter,
    )


def report(dataset: Dataset, intent: Report) -> AggregationResult:
    if dataset.is_empty:
        return NoDataResult(NO_DATA)

    resolution = resolve_entity(dataset, intent.entity_query)
    if not resolution.found:
        return ReportResult(entity_query=intent.entity_query, suggestions=resolution.suggestions[:MATCH_SUGGESTIONS])

    record = resolution.match or {}
    lines = [
        ReportLine(
            column=column.name,
            value=float(record[column.name]) if is_finite(record.get(column.name)) else None,
            bucket=bucket(record.get(column.name)),
        )
        for column in dataset.numeric_columns
        if not dataset.is_identity_column(column.name)
    ]
    scored = [line for line in lines if line.value is not None]
    strengths = sorted((line for line in scored if line.value >= HIGH_MIN), key=lambda line: -line.value)
    growth = sorted((line for line in scored if line.value <= LOW_MAX), key=lambda line: line.value)
    return ReportResult(
        entity_query=intent.entity_query,
        entity_name=_entity_label(dataset, record),
        record=record,
        lines=lines,
        strengths=strengths[:REPORT_HIGHLIGHTS],
        growth_areas=growth[:REPORT_HIGHLIGHTS],
        suggestions=resolution.suggestions,
    )


def text_lookup(documents: Mapping[str, str], intent: TextLookup) -> AggregationResult:
    text = documents.get(intent.document_name)
    if text is None:
        return NoDataResult(MISSING_DOCUMENT, detail=intent.document_name)
    text = text.strip()
    truncated = len(text) > DOCUMENT_MAX_CHARS
    return DocumentResult(name=intent.document_name, text=text[:DOCUMENT_MAX_CHARS], truncated=truncated)


def execute(dataset: Dataset, intent: Intent, documents: Mapping[str, str] | None = None) -> AggregationResult:
    if isinstance(intent, Sample):
        return sample_rows(dataset, intent)
    if isinstance(intent, Average):
        return average(dataset, intent)
    if isinstance(intent, TopN):
        return top_n(dataset, intent)
    if isinstance(intent, Threshold):
        return threshold(dataset, intent)
    if isinstance(intent, Percentile):
        return percentile(dataset, intent)
    if isinstance(intent, Report):
        return report(dataset, intent)
    if isinstance(intent, TextLookup):
        return text_lookup(documents or {}, intent)
    if isinstance(intent, Fallback):
        raise UnsupportedIntentError("Fallback questions are answered by the text generator.")
    raise UnsupportedIntentError(f"Unknown intent: {intent!r}")
