"""
Rule-based intent classification.

Questions are folded (lower case, no accents, single spaces) and tested
against RULES in order; the first rule whose predicate matches builds the
intent. Order matters because some phrasings contain others ("top 5 con
promedio mayor a 60" is an average question, not a threshold one).
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from lexium.config import MAX_ROWS_REQUESTED, SAMPLE_DEFAULT_ROWS, TOP_DEFAULT_K
from lexium.intents import (
    ASC,
    DESC,
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
from lexium.loader import GROUP_KEYS, Dataset
from lexium.text import normalize_key, normalize_text

logger = logging.getLogger(__name__)

REPORT_PATTERN = re.compile(
    r"\b(?:full report|complete report|(?:reporte|informe) (?:completo|integral))"
    r"\s+(?:of|for|on|about|de|del|sobre|para)\s+(?P<entity>.+)"
)
SAMPLE_PATTERN = re.compile(
    r"\b(?:show|display|list|muestra(?:me)?|mostrar|muestre|ver|dame)\b"
    r"(?P<middle>(?:\s+\S+){0,3}?)\s+(?:rows|filas|registros|records)\b"
)
PERCENTILE_PATTERN = re.compile(
    r"\bpercentil(?:e)?\s+(?:rank\s+)?(?:of|for|de|del)\s+(?P<entity>.+?)\s+(?:in|on|en)\s+(?P<measure>.+)"
)
AVERAGE_PATTERN = re.compile(r"\b(?:average|mean|avg|promedio|media)\b")
GROUP_BY_PATTERN = re.compile(r"\b(?:by|per|por|segun)\s+(?P<group>[a-z0-9_]+)")
TOP_PATTERN = re.compile(
    r"\b(?:top|mejores|peores|best|worst|bottom)\s*(?P<k>\d+)?\b"
    r"|\b(?P<k_before>\d+)\s+(?:mejores|peores|best|worst|highest|lowest)\b"
)
ASCENDING_PATTERN = re.compile(
    r"\b(?:lowest|worst|bottom|least|peor(?:es)?|menor(?:es)?|minimos?|inferiores|"
    r"mas baj[oa]s?)\b"
)
FILTER_PATTERN = re.compile(r"\b(?P<column>paralelo|curso|seccion)\s+(?P<value>[a-z0-9]+)\b")

_NUMBER = r"(?P<value>-?\d+(?:[.,]\d+)?)"
THRESHOLD_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (">=", re.compile(r"(?:>=|=>)\s*" + _NUMBER)),
    ("<=", re.compile(r"(?:<=|=<)\s*" + _NUMBER)),
    (">", re.compile(r">\s*" + _NUMBER)),
    ("<", re.compile(r"<\s*" + _NUMBER)),
    (
        ">=",
        re.compile(
            r"\b(?:at least|greater than or equal to|no less than|al menos|como minimo|"
            r"mayor(?:es)? o igual(?:es)? (?:a|que))\s+" + _NUMBER
        ),
    ),
    (
        "<=",
        re.compile(
            r"\b(?:at most|less than or equal to|no more than|como maximo|a lo sumo|"
            r"menor(?:es)? o igual(?:es)? (?:a|que))\s+" + _NUMBER
        ),
    ),
    (
        ">",
        re.compile(
            r"\b(?:greater than|more than|higher than|above|over|mayor(?:es)? (?:a|que|de)|"
            r"mas de|superior(?:es)? a|sobre|por encima de)\s+" + _NUMBER
        ),
    ),
    (
        "<",
        re.compile(
            r"\b(?:less than|lower than|fewer than|below|under|menor(?:es)? (?:a|que|de)|"
            r"menos de|inferior(?:es)? a|bajo|por debajo de)\s+" + _NUMBER
        ),
    ),
)

# Tried, in order, when the question names no numeric column.
WELL_KNOWN_MEASURES = (
    "promedio",
    "promedio general",
    "nota final",
    "nota",
    "puntaje",
    "score",
    "autoestima",
    "rendimiento",
)

GROUP_SYNONYMS = {
    "parallel": "paralelo",
    "paralelos": "paralelo",
    "cursos": "curso",
    "course": "curso",
    "class": "curso",
    "section": "seccion",
    "secciones": "seccion",
    "group": "grupo",
    "grupos": "grupo",
}

# "a" is left out: "paralelo A" is the usual way to name a group.
FILTER_STOPWORDS = {
    "al", "de", "del", "el", "en", "la", "las", "los", "y", "o", "por", "con", "para",
    "in", "of", "the", "and", "or", "by", "for", "with",
}


@dataclass(frozen=True)
class QuestionContext:
    question: str
    text: str
    dataset: Dataset
    documents: tuple[str, ...] = ()


@dataclass(frozen=True)
class IntentRule:
    """One row of the rule table: predicate, parameter extractor, intent constructor."""

    name: str
    predicate: Callable[[QuestionContext], Any]
    extract: Callable[[Any, QuestionContext], dict[str, Any]]
    make: Callable[..., Intent]

    def apply(self, ctx: QuestionContext) -> Intent | None:
        match = self.predicate(ctx)
        if match is None:
            return None
        return self.make(**self.extract(match, ctx))


def _search(pattern: re.Pattern[str]) -> Callable[[QuestionContext], "re.Match[str] | None"]:
    return lambda ctx: pattern.search(ctx.text)


def _clamp(value: int, low: int = 1, high: int = MAX_ROWS_REQUESTED) -> int:
    return max(low, min(high, value))


def _first_int(text: str | None) -> int | None:
    if not text:
        return None
    found = re.search(r"-?\d+", text)
    return int(found.group()) if found else None


def _clean_entity(raw: str) -> str:
    return re.sub(r"[\s?!.,;:¿¡\"']+$", "", raw).strip(" \"'¿¡")


def _to_float(raw: str) -> float:
    return float(raw.replace(",", "."))


# ---------------------------------------------------------------------------
# Column resolution
# ---------------------------------------------------------------------------

def _name_forms(column_name: str) -> set[str]:
    return {normalize_text(column_name), normalize_text(re.sub(r"[_\-]+", " ", column_name))} - {""}


def _mentioned(text: str, column_name: str) -> bool:
    return any(form in text for form in _name_forms(column_name))


def _mention_spans(text: str, dataset: Dataset) -> list[tuple[int, int]]:
    """Character spans of `text` that spell out a numeric column name."""
    spans: list[tuple[int, int]] = []
    for column in dataset.numeric_columns:
        for form in _name_forms(column.name):
            spans.extend(found.span() for found in re.finditer(re.escape(form), text))
    return spans


def resolve_measure(text: str, dataset: Dataset, exclude: tuple[str | None, ...] = ()) -> str | None:
    """Numeric column named in `text` (longest name wins), else a well-known measure, else the first numeric one."""
    candidates = [column for column in dataset.numeric_columns if column.name not in exclude]
    if not candidates:
        return None

    mentioned = [column for column in candidates if _mentioned(text, column.name)]
    if mentioned:
        return max(mentioned, key=lambda column: len(normalize_text(column.name))).name

    by_key = {column.key: column.name for column in candidates}
    for preferred in WELL_KNOWN_MEASURES:
        name = by_key.get(normalize_key(preferred))
        if name:
            return name

    for column in candidates:
        if not dataset.is_identity_column(column.name):
            return column.name
    return candidates[0].name


def resolve_group(word: str, dataset: Dataset) -> str | None:
    """Column to partition by. Numeric columns qualify only when named like a group (CURSO 1, 2, 3)."""
    key = normalize_key(word)
    key = GROUP_SYNONYMS.get(key, key)
    for column in dataset.columns:
        if column.key != key:
            continue
        if column.is_numeric and column.name not in dataset.group_columns:
            return None
        return column.name
    if key in GROUP_KEYS and dataset.group_columns:
        return dataset.group_columns[0]
    return None


def extract_filter(text: str, dataset: Dataset) -> Filter:
    pairs: list[tuple[str, str]] = []
    for match in FILTER_PATTERN.finditer(text):
        value = match.group("value")
        if value in FILTER_STOPWORDS:
            continue
        column = next((c.name for c in dataset.columns if c.key == match.group("column")), None)
        if column is None:
            logger.debug("Filter on '%s' ignored: no such column.", match.group("column"))
            continue
        pair = (column, value)
        if pair not in pairs:
            pairs.append(pair)
    return Filter(pairs=tuple(pairs))


# ---------------------------------------------------------------------------
# Parameter extractors
# ---------------------------------------------------------------------------

def _report_params(match: re.Match[str], ctx: QuestionContext) -> dict[str, Any]:
    return {"entity_query": _clean_entity(match.group("entity"))}


def _sample_params(match: re.Match[str], ctx: QuestionContext) -> dict[str, Any]:
    n = _first_int(match.group("middle"))
    return {"n": _clamp(n) if n is not None else SAMPLE_DEFAULT_ROWS}


def _percentile_params(match: re.Match[str], ctx: QuestionContext) -> dict[str, Any]:
    measure_text = match.group("measure")
    measure = None
    if any(_mentioned(measure_text, c.name) for c in ctx.dataset.numeric_columns):
        measure = resolve_measure(measure_text, ctx.dataset)
    return {
        "entity_query": _clean_entity(match.group("entity")),
        "measure": measure or resolve_measure(ctx.text, ctx.dataset),
        "filter": extract_filter(ctx.text, ctx.dataset),
    }


def _find_average(ctx: QuestionContext) -> "re.Match[str] | None":
    # "promedio" is also a common column name: a keyword inside a column
    # mention only counts when the keyword appears again ("promedio del promedio").
    matches = list(AVERAGE_PATTERN.finditer(ctx.text))
    spans = _mention_spans(ctx.text, ctx.dataset)
    for found in matches:
        if not any(start <= found.start() and found.end() <= end for start, end in spans):
            return found
    return matches[0] if len(matches) > 1 else None


def _average_params(match: re.Match[str], ctx: QuestionContext) -> dict[str, Any]:
    group = None
    for found in GROUP_BY_PATTERN.finditer(ctx.text):
        group = resolve_group(found.group("group"), ctx.dataset)
        if group:
            break
    return {
        "measure": resolve_measure(ctx.text, ctx.dataset, exclude=(group,)),
        "group": group,
        "filter": extract_filter(ctx.text, ctx.dataset),
    }


def _top_params(match: re.Match[str], ctx: QuestionContext) -> dict[str, Any]:
    k = _first_int(match.group("k") or match.group("k_before"))
    return {
        "measure": resolve_measure(ctx.text, ctx.dataset),
        "k": _clamp(k) if k is not None else TOP_DEFAULT_K,
        "order": ASC if ASCENDING_PATTERN.search(ctx.text) else DESC,
        "filter": extract_filter(ctx.text, ctx.dataset),
    }


def _find_threshold(ctx: QuestionContext) -> "re.Match[str] | None":
    for _, pattern in THRESHOLD_PATTERNS:
        found = pattern.search(ctx.text)
        if found:
            return found
    return None


def _threshold_params(match: re.Match[str], ctx: QuestionContext) -> dict[str, Any]:
    comparator = next(op for op, pattern in THRESHOLD_PATTERNS if pattern is match.re)
    return {
        "measure": resolve_measure(ctx.text, ctx.dataset),
        "comparator": comparator,
        "value": _to_float(match.group("value")),
        "filter": extract_filter(ctx.text, ctx.dataset),
    }


def _document_aliases(name: str) -> set[str]:
    stem = name.rsplit(".", 1)[0]
    return {normalize_text(name), normalize_text(stem), normalize_text(re.sub(r"[_\-]+", " ", stem))} - {""}


class _DocumentMatch:
    """Wraps a regex match with the document file name it identified."""

    def __init__(self, match: re.Match[str], document_name: str) -> None:
        self.match = match
        self.document_name = document_name


def _find_document(ctx: QuestionContext) -> _DocumentMatch | None:
    for name in ctx.documents:
        for alias in sorted(_document_aliases(name), key=len, reverse=True):
            found = re.search(rf"(?<![a-z0-9]){re.escape(alias)}(?![a-z0-9])", ctx.text)
            if found:
                return _DocumentMatch(found, name)
    return None


def _document_params(match: _DocumentMatch, ctx: QuestionContext) -> dict[str, Any]:
    return {"document_name": match.document_name}


RULES: tuple[IntentRule, ...] = (
    IntentRule("report", _search(REPORT_PATTERN), _report_params, Report),
    IntentRule("sample", _search(SAMPLE_PATTERN), _sample_params, Sample),
    IntentRule("percentile", _search(PERCENTILE_PATTERN), _percentile_params, Percentile),
    IntentRule("average", _find_average, _average_params, Average),
    IntentRule("top_n", _search(TOP_PATTERN), _top_params, TopN),
    IntentRule("threshold", _find_threshold, _threshold_params, Threshold),
    IntentRule("text_lookup", _find_document, _document_params, TextLookup),
)


def classify(question: str, dataset: Dataset | None = None, documents: tuple[str, ...] | list[str] = ()) -> Intent:
    ctx = QuestionContext(
        question=question,
        text=normalize_text(question),
        dataset=dataset if dataset is not None else Dataset.empty(),
        documents=tuple(documents),
    )
    for rule in RULES:
        intent = rule.apply(ctx)
        if intent is not None:
            logger.info("Classified question as %s: %s", rule.name, intent)
            return intent
    logger.info("No rule matched; falling back.")
    return Fallback()
