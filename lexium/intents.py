from __future__ import annotations

from dataclasses import dataclass
from typing import Union

ASC = "asc"
DESC = "desc"

COMPARATORS = (">=", "<=", ">", "<")


@dataclass(frozen=True)
class Filter:
    """Exact-match (column, value) restrictions; values compare case/diacritic-insensitively."""

    pairs: tuple[tuple[str, str], ...] = ()

    def __bool__(self) -> bool:
        return bool(self.pairs)

    def describe(self) -> str:
        return ", ".join(f"{column} {value}" for column, value in self.pairs)


NO_FILTER = Filter()


@dataclass(frozen=True)
class Sample:
    n: int


@dataclass(frozen=True)
class Average:
    measure: str | None
    group: str | None = None
    filter: Filter = NO_FILTER


@dataclass(frozen=True)
class TopN:
    measure: str | None
    k: int
    order: str = DESC
    filter: Filter = NO_FILTER


@dataclass(frozen=True)
class Threshold:
    measure: str | None
    comparator: str
    value: float
    filter: Filter = NO_FILTER


@dataclass(frozen=True)
class Percentile:
    entity_query: str
    measure: str | None
    filter: Filter = NO_FILTER


@dataclass(frozen=True)
class Report:
    entity_query: str


@dataclass(frozen=True)
class TextLookup:
    document_name: str


@dataclass(frozen=True)
class Fallback:
    pass


Intent = Union[Sample, Average, TopN, Threshold, Percentile, Report, TextLookup, Fallback]
