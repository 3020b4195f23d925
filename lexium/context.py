from __future__ import annotations

import json
import logging
from typing import Any

from lexium.config import CONTEXT_MAX_CHARS, CONTEXT_SAMPLE_ROWS, DOCUMENT_MAX_CHARS
from lexium.stats import is_finite
from lexium.store import Snapshot

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are the Lexium assistant. Answer only with information found in the files provided.
If the files do not contain enough evidence, say so explicitly.
Answer in the language of the question.
Always return one JSON object shaped like:
{"ok":true,"general":"...","lists":[{"title":"...","items":["a"]}],"tables":[{"title":"...","columns":["A"],"rows":[["1"]]}]}
Nothing outside the JSON.
""".strip()

SECTION_SEPARATOR = "\n---\n"


def _json_cell(value: Any) -> Any:
    if isinstance(value, float):
        if not is_finite(value):
            return None
        return int(value) if value.is_integer() else value
    return value


def ordered_file_names(question: str, names: list[str]) -> list[str]:
    """Files whose name appears in the question go first; relative order is otherwise kept."""
    lowered = (question or "").lower()
    named = [name for name in names if name.lower() in lowered]
    return named + [name for name in names if name not in named]


def _table_section(snapshot: Snapshot) -> str:
    dataset = snapshot.dataset
    sample = [
        {column: _json_cell(value) for column, value in record.items()}
        for record in dataset.records()[:CONTEXT_SAMPLE_ROWS]
    ]
    return (
        f"File: {snapshot.table_name}\n"
        "Format: CSV\n"
        f"Columns: {json.dumps(dataset.column_names, ensure_ascii=False)}\n"
        f"Samples (<={CONTEXT_SAMPLE_ROWS}): {json.dumps(sample, ensure_ascii=False)}\n"
    )


def _document_section(name: str, text: str) -> str:
    return f"File: {name}\nContent:\n{text[:DOCUMENT_MAX_CHARS]}\n"


def build_file_context(question: str, snapshot: Snapshot, max_chars: int = CONTEXT_MAX_CHARS) -> str:
    sections: list[str] = []
    total = 0
    for name in ordered_file_names(question, snapshot.file_names):
        if name == snapshot.table_name:
            section = _table_section(snapshot)
        else:
            section = _document_section(name, snapshot.documents[name])
        if total + len(section) > max_chars:
            logger.debug("Context budget reached at %s (%s chars).", name, total)
            break
        total += len(section)
        sections.append(section)
    return SECTION_SEPARATOR.join(sections)


def build_user_prompt(question: str, snapshot: Snapshot) -> str:
    names = snapshot.file_names
    listing = "\n".join(f"- {name}" for name in names) or "(none)"
    content = build_file_context(question, snapshot) or "(no content)"
    return f"Question: {question}\n\nAvailable files:\n{listing}\n\nContent (trimmed):\n{content}"
