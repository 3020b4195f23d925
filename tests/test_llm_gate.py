import pytest

from lexium.llm_gate import (
    SchemaValidationError,
    last_json_object,
    parse_generated_envelope,
    safe_json_parse,
    validate_schema,
)
from lexium.llm_schemas import RESPONSE_ENVELOPE_SCHEMA


def test_schema_validation_rejects_malformed_tables() -> None:
    invalid = {
        "general": "Summary",
        "tables": [{"title": "T", "columns": ["A"]}],
        # rows missing
    }
    with pytest.raises(SchemaValidationError):
        validate_schema(invalid, RESPONSE_ENVELOPE_SCHEMA)


def test_schema_validation_requires_summary() -> None:
    with pytest.raises(SchemaValidationError):
        validate_schema({"ok": True, "lists": []}, RESPONSE_ENVELOPE_SCHEMA)


def test_last_json_object_ignores_braces_in_strings() -> None:
    text = 'first {"a": 1} then {"general": "curly } brace", "lists": []} done'
    assert last_json_object(text) == '{"general": "curly } brace", "lists": []}'
    assert last_json_object("no braces here") is None


def test_safe_json_parse_handles_fences_and_prose() -> None:
    assert safe_json_parse('```json\n{"general": "x"}\n```') == {"general": "x"}
    assert safe_json_parse('Sure! Here it is: {"general": "y"}') == {"general": "y"}
    assert safe_json_parse("[1, 2]") is None
    assert safe_json_parse("{not json}") is None


def test_valid_output_becomes_envelope() -> None:
    raw = (
        '{"ok": true, "general": "Two files found.",'
        ' "lists": [{"title": "Files", "items": ["a.csv", "b.txt"]}],'
        ' "tables": [{"title": "Counts", "columns": ["file", "rows"], "rows": [["a.csv", 2]]}]}'
    )
    envelope = parse_generated_envelope(raw)
    assert envelope.ok
    assert envelope.general == "Two files found."
    assert envelope.lists[0].items == ["a.csv", "b.txt"]
    assert envelope.tables[0].rows == [["a.csv", 2]]


def test_missing_ok_defaults_to_true() -> None:
    assert parse_generated_envelope('{"general": "hello"}').ok


def test_nonconforming_output_is_wrapped_as_summary() -> None:
    raw = '  {"answer": "42"}  '
    envelope = parse_generated_envelope(raw)
    assert envelope.ok
    assert envelope.general == '{"answer": "42"}'
    assert envelope.lists == []
    assert envelope.tables == []


def test_plain_text_is_wrapped_as_summary() -> None:
    envelope = parse_generated_envelope("The rulebook does not mention that.")
    assert envelope.general == "The rulebook does not mention that."
