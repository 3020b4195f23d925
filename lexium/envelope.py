from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ItemList(BaseModel):
    title: str
    items: list[str] = Field(default_factory=list)


class Table(BaseModel):
    title: str
    columns: list[str]
    rows: list[list[Any]] = Field(default_factory=list)


class ResponseEnvelope(BaseModel):
    """The one answer shape every caller renders: summary line, item lists, tables."""

    ok: bool = True
    general: str = ""
    lists: list[ItemList] = Field(default_factory=list)
    tables: list[Table] = Field(default_factory=list)
