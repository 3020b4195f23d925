from __future__ import annotations

import numbers
from typing import Any

from lexium.engine import (
    MISSING_COLUMN,
    MISSING_DOCUMENT,
    AggregationResult,
    DocumentResult,
    NoDataResult,
    PercentileResult,
    ReportLine,
    ReportResult,
    ScalarResult,
    TableResult,
)
from lexium.envelope import ItemList, ResponseEnvelope, Table
from lexium.intents import Filter
from lexium.stats import is_finite, round_half_away

EXAMPLE_QUESTIONS = [
    "average of AUTOESTIMA by PARALELO",
    "promedio de AUTOESTIMA paralelo A",
    "top 5 highest AUTOESTIMA",
    "peores 3 en AUTOESTIMA",
    "students with AUTOESTIMA >= 70",
    "percentile of Ana in AUTOESTIMA",
    "full report of Ana Ruiz",
    "show 10 rows",
]

GUIDANCE_SUMMARY = "I could not interpret the question. Try one of these phrasings:"


def format_cell(value: Any) -> Any:
    """Table cell as shown to callers: blanks for missing, ints for whole numbers, 2 decimals otherwise."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return value
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        if not is_finite(value):
            return ""
        number = float(value)
        return int(number) if number.is_integer() else round_half_away(number, 2)
    return value


def _format_number(value: float | None) -> str:
    return str(format_cell(value)) if value is not None else "no value"


def _scope(flt: Filter) -> str:
    return f" ({flt.describe()})" if flt else ""


def _table(title: str, columns: list[str], rows: list[list[Any]]) -> Table:
    return Table(title=title, columns=list(columns), rows=[[format_cell(cell) for cell in row] for row in rows])


def guidance_envelope() -> ResponseEnvelope:
    return ResponseEnvelope(
        ok=True,
        general=GUIDANCE_SUMMARY,
        lists=[ItemList(title="Example questions", items=EXAMPLE_QUESTIONS)],
    )


def empty_question_envelope() -> ResponseEnvelope:
    return ResponseEnvelope(ok=False, general="Empty question.")


def _not_found(query: str, suggestions: list[str]) -> ResponseEnvelope:
    lists = [ItemList(title="Did you mean", items=suggestions)] if suggestions else []
    return ResponseEnvelope(ok=True, general=f'"{query}" not found.', lists=lists)


def shape_no_data(result: NoDataResult) -> ResponseEnvelope:
    if result.reason == MISSING_COLUMN:
        summary = f'No data: column "{result.detail}" is not in the dataset.'
    elif result.reason == MISSING_DOCUMENT:
        summary = f'No data: document "{result.detail}" is not available.'
    else:
        summary = "No data loaded: the dataset is empty or could not be read."
    return ResponseEnvelope(ok=True, general=summary)


def shape_scalar(result: ScalarResult) -> ResponseEnvelope:
    scope = _scope(result.filter)
    if result.value is None:
        return ResponseEnvelope(ok=True, general=f"Average {result.measure}{scope}: no value (no numeric rows).")
    value = format_cell(result.value)
    return ResponseEnvelope(
        ok=True,
        general=f"Average {result.measure}{scope}: {value} over {result.count} rows.",
        tables=[_table(f"Average {result.measure}{scope}", ["measure", "average", "count"], [[result.measure, value, result.count]])],
    )


def shape_table(result: TableResult) -> ResponseEnvelope:
    title = f"{result.title}{_scope(result.filter)}"
    if not result.rows:
        return ResponseEnvelope(ok=True, general=f"{title}: no matching rows.")
    if len(result.rows) < result.total:
        summary = f"{title}: showing {len(result.rows)} of {result.total} rows."
    else:
        summary = f"{title}: {len(result.rows)} rows."
    return ResponseEnvelope(ok=True, general=summary, tables=[_table(title, result.columns, result.rows)])


def shape_percentile(result: PercentileResult) -> ResponseEnvelope:
    if result.entity_name is None:
        return _not_found(result.entity_query, result.suggestions)
    scope = _scope(result.filter)
    if not result.available:
        summary = f"{result.entity_name} has no value for {result.measure}{scope}; percentile unavailable."
        return ResponseEnvelope(ok=True, general=summary)
    summary = (
        f"{result.entity_name} is at percentile {result.percentile} in {result.measure}{scope} "
        f"({_format_number(result.value)}, {result.bucket})."
    )
    row = [result.entity_name, result.value, result.percentile, result.bucket, result.cohort_size]
    lists = [ItemList(title="Similar names", items=result.suggestions)] if result.suggestions else []
    return ResponseEnvelope(
        ok=True,
        general=summary,
        lists=lists,
        tables=[_table(f"Percentile in {result.measure}{scope}", ["name", result.measure, "percentile", "bucket", "cohort"], [row])],
    )


def _line_items(lines: list[ReportLine]) -> list[str]:
    return [f"{line.column}: {_format_number(line.value)}" for line in lines]


def shape_report(result: ReportResult) -> ResponseEnvelope:
    if not result.found:
        return _not_found(result.entity_query, result.suggestions)
    lists = [
        ItemList(title="Strengths", items=_line_items(result.strengths)),
        ItemList(title="Growth areas", items=_line_items(result.growth_areas)),
    ]
    if result.suggestions:
        lists.append(ItemList(title="Similar names", items=result.suggestions))
    rows = [[line.column, line.value, line.bucket] for line in result.lines]
    return ResponseEnvelope(
        ok=True,
        general=f"Full report for {result.entity_name}.",
        lists=lists,
        tables=[_table(f"Scores of {result.entity_name}", ["column", "value", "bucket"], rows)],
    )


def shape_document(result: DocumentResult) -> ResponseEnvelope:
    paragraphs = [block.strip() for block in result.text.split("\n\n") if block.strip()]
    summary = f"Content of {result.name}."
    if result.truncated:
        summary = f"Content of {result.name} (trimmed)."
    return ResponseEnvelope(ok=True, general=summary, lists=[ItemList(title=result.name, items=paragraphs)])


def shape(result: AggregationResult) -> ResponseEnvelope:
    if isinstance(result, NoDataResult):
        return shape_no_data(result)
    if isinstance(result, ScalarResult):
        return shape_scalar(result)
    if isinstance(result, TableResult):
        return shape_table(result)
    if isinstance(result, PercentileResult):
        return shape_percentile(result)
    if isinstance(result, ReportResult):
        return shape_report(result)
    if isinstance(result, DocumentResult):
        return shape_document(result)
    raise TypeError(f"Unknown aggregation result: {type(result).__name__}")
