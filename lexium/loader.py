from __future__ import annotations

import csv
import io
import logging
import math
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any

import pandas as pd

from lexium.config import NUMERIC_RATIO, TEXT_ENCODINGS, TYPE_SAMPLE_SIZE
from lexium.text import normalize_key

logger = logging.getLogger(__name__)

NUMERIC = "numeric"
TEXT = "text"

BOM = "\ufeff"
NAME_KEYS = ("nombre", "name")
GROUP_KEYS = ("paralelo", "curso", "seccion", "section", "grupo", "group", "clase")
IDENTITY_KEYS = NAME_KEYS + GROUP_KEYS + (
    "id",
    "rut",
    "dni",
    "codigo",
    "code",
    "edad",
    "age",
    "numero",
    "nro",
    "lista",
)


class LoaderError(ValueError):
    pass


@dataclass(frozen=True)
class Column:
    name: str
    kind: str

    @property
    def is_numeric(self) -> bool:
        return self.kind == NUMERIC

    @property
    def key(self) -> str:
        return normalize_key(self.name)


@dataclass(frozen=True, eq=False)
class Dataset:
    """
    Immutable table of records.

    `frame` holds one column per `Column`, in file order. Numeric columns are
    float64 (NaN = missing); text columns hold trimmed strings ("" = empty).
    Callers must treat the frame as read-only.
    """

    columns: tuple[Column, ...] = ()
    frame: pd.DataFrame = field(default_factory=pd.DataFrame)

    @classmethod
    def empty(cls) -> "Dataset":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.columns or self.frame.empty

    @property
    def row_count(self) -> int:
        return len(self.frame)

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    @property
    def numeric_columns(self) -> list[Column]:
        return [column for column in self.columns if column.is_numeric]

    def column(self, name: str | None) -> Column | None:
        if name is None:
            return None
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def records(self) -> list[dict[str, Any]]:
        return self.frame.to_dict(orient="records")

    @cached_property
    def name_column(self) -> str | None:
        return find_name_column(self.columns)

    @cached_property
    def group_columns(self) -> list[str]:
        return [column.name for column in self.columns if column.key in GROUP_KEYS]

    def is_identity_column(self, name: str) -> bool:
        column = self.column(name)
        if column is None:
            return False
        if name == self.name_column:
            return True
        return column.key in IDENTITY_KEYS or any(column.key.startswith(key) for key in NAME_KEYS)


def find_name_column(columns: tuple[Column, ...] | list[Column]) -> str | None:
    for column in columns:
        if column.key in NAME_KEYS:
            return column.name
    for column in columns:
        if any(key in column.key for key in NAME_KEYS):
            return column.name
    for column in columns:
        if not column.is_numeric:
            return column.name
    return None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def decode_bytes(content: bytes) -> str:
    last_error: Exception | None = None
    for encoding in TEXT_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError as exc:  # noqa: PERF203
            last_error = exc
    raise LoaderError(f"Could not decode file with supported encodings. Last error: {last_error}")


def detect_delimiter(header_line: str) -> str:
    return ";" if header_line.count(";") > header_line.count(",") else ","


def parse_numbers(values: pd.Series) -> pd.Series:
    """Comma or dot decimals; any symbol other than digits, '.', '-' is dropped first."""
    cleaned = (
        values.astype(str)
        .str.replace(",", ".", regex=False)
        .str.replace(r"[^0-9.\-]", "", regex=True)
    )
    return pd.to_numeric(cleaned, errors="coerce")


def parse_number(value: Any) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    parsed = parse_numbers(pd.Series([value])).iloc[0]
    return float(parsed) if pd.notna(parsed) else math.nan


def _clean_cell(value: Any) -> str:
    return "" if value is None or (isinstance(value, float) and math.isnan(value)) else str(value).strip()


def _unique_headers(raw: list[Any]) -> list[str]:
    headers: list[str] = []
    seen: dict[str, int] = {}
    for position, value in enumerate(raw, start=1):
        name = _clean_cell(value) or f"c{position}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 1
        headers.append(name)
    return headers


def _infer_kind(values: pd.Series) -> str:
    sample = values[values != ""].head(TYPE_SAMPLE_SIZE)
    if sample.empty:
        return TEXT
    parsed = parse_numbers(sample)
    ratio = float(parsed.notna().sum()) / len(sample)
    return NUMERIC if ratio >= NUMERIC_RATIO else TEXT


def _read_rows(text: str, header_line: str, delimiter: str) -> pd.DataFrame:
    width = len(next(csv.reader([header_line], delimiter=delimiter, quotechar='"', skipinitialspace=True)))

    # Rows longer than the header keep only the first `width` fields.
    return pd.read_csv(
        io.StringIO(text),
        sep=delimiter,
        header=None,
        dtype=str,
        keep_default_na=False,
        na_filter=False,
        quotechar='"',
        doublequote=True,
        skipinitialspace=True,
        skip_blank_lines=True,
        engine="python",
        on_bad_lines=lambda bad_line: bad_line[:width],
    )


def load_dataset(text: str | None) -> Dataset:
    """
    Parse delimited text into a typed Dataset.

    Empty input, a missing header or unparseable text yields an empty
    Dataset; callers treat that as "no data".
    """
    if not text:
        return Dataset.empty()
    if text.startswith(BOM):
        text = text[len(BOM):]
    if not text.strip():
        return Dataset.empty()

    header_line = next(line for line in text.splitlines() if line.strip())
    delimiter = detect_delimiter(header_line)

    try:
        raw = _read_rows(text, header_line, delimiter)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error) as exc:
        logger.warning("Could not parse tabular file: %s", exc)
        return Dataset.empty()

    if raw.empty:
        return Dataset.empty()

    headers = _unique_headers(raw.iloc[0].tolist())
    body = raw.iloc[1:].reset_index(drop=True)
    body.columns = headers
    body = body.fillna("").map(_clean_cell)

    columns: list[Column] = []
    frame = pd.DataFrame(index=body.index)
    for name in headers:
        values = body[name]
        kind = _infer_kind(values)
        columns.append(Column(name=name, kind=kind))
        frame[name] = parse_numbers(values).astype("float64") if kind == NUMERIC else values.astype(object)

    logger.info("Loaded dataset: %s rows, columns=%s", len(frame), [f"{c.name}:{c.kind}" for c in columns])
    return Dataset(columns=tuple(columns), frame=frame)


def load_dataset_bytes(content: bytes | None) -> Dataset:
    if not content:
        return Dataset.empty()
    return load_dataset(decode_bytes(content))
