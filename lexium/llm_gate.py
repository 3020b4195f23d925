from __future__ import annotations

import json
import logging
import re
from typing import Any

from jsonschema import ValidationError, validate
from pydantic import ValidationError as ModelValidationError

from lexium.envelope import ResponseEnvelope
from lexium.llm_schemas import RESPONSE_ENVELOPE_SCHEMA

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.MULTILINE)
_FENCE_CLOSE = re.compile(r"^```\s*$", re.MULTILINE)


class SchemaValidationError(ValueError):
    pass


def validate_schema(output: dict[str, Any], schema: dict[str, Any]) -> None:
    try:
        validate(instance=output, schema=schema)
    except ValidationError as exc:
        raise SchemaValidationError(str(exc)) from exc


def last_json_object(text: str) -> str | None:
    """Return the last balanced top-level {...} block in `text`, ignoring braces inside JSON strings."""
    depth = 0
    start = -1
    in_string = False
    escaped = False
    last: str | None = None
    for index, char in enumerate(text):
        if depth and in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"' and depth:
            in_string = True
        elif char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth:
            depth -= 1
            if depth == 0:
                last = text[start : index + 1]
    return last


def safe_json_parse(text: str) -> dict[str, Any] | None:
    cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text)).strip()
    try:
        parsed = json.loads(cleaned)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass
    block = last_json_object(cleaned)
    if block is None:
        return None
    try:
        parsed = json.loads(block)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_generated_envelope(raw: str) -> ResponseEnvelope:
    """
    Turn text-generator output into an envelope.

    Output is untrusted: it must parse as JSON (directly or as the last
    {...} block) and match RESPONSE_ENVELOPE_SCHEMA. Anything else is kept
    verbatim as the summary line.
    """
    payload = safe_json_parse(raw)
    if payload is not None:
        try:
            validate_schema(payload, RESPONSE_ENVELOPE_SCHEMA)
            payload.setdefault("ok", True)
            return ResponseEnvelope.model_validate(payload)
        except (SchemaValidationError, ModelValidationError) as exc:
            logger.warning("Generated envelope rejected: %s", exc)
    return ResponseEnvelope(ok=True, general=raw.strip())
