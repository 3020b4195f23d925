from __future__ import annotations

_CELL = {"type": ["string", "number", "boolean", "null"]}

RESPONSE_ENVELOPE_SCHEMA: dict = {
    "type": "object",
    "additionalProperties": True,
    "required": ["general"],
    "properties": {
        "ok": {"type": "boolean"},
        "general": {"type": "string"},
        "lists": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["title", "items"],
                "properties": {
                    "title": {"type": "string"},
                    "items": {"type": "array", "items": {"type": "string"}},
                },
            },
        },
        "tables": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["title", "columns", "rows"],
                "properties": {
                    "title": {"type": "string"},
                    "columns": {"type": "array", "items": {"type": "string"}},
                    "rows": {"type": "array", "items": {"type": "array", "items": _CELL}},
                },
            },
        },
    },
}
