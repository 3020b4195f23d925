import math

from lexium.engine import (
    MISSING_COLUMN,
    NO_DATA,
    DocumentResult,
    NoDataResult,
    PercentileResult,
    ReportLine,
    ReportResult,
    ScalarResult,
    TableResult,
)
from lexium.intents import Filter
from lexium.shaper import EXAMPLE_QUESTIONS, format_cell, guidance_envelope, shape


def test_format_cell() -> None:
    assert format_cell(80.0) == 80
    assert format_cell(72.345) == 72.35
    assert format_cell(math.nan) == ""
    assert format_cell(None) == ""
    assert format_cell("A") == "A"


def test_grouped_table_cells_are_plain_numbers() -> None:
    result = TableResult(
        kind="grouped_average",
        title="Average AUTOESTIMA by PARALELO",
        columns=["PARALELO", "AUTOESTIMA"],
        rows=[["A", 80.0], ["B", 30.0]],
        total=2,
        measure="AUTOESTIMA",
    )
    envelope = shape(result)
    assert envelope.ok
    assert envelope.tables[0].columns == ["PARALELO", "AUTOESTIMA"]
    assert envelope.tables[0].rows == [["A", 80], ["B", 30]]


def test_partial_table_mentions_total() -> None:
    result = TableResult(kind="threshold", title="NOTA >= 0", columns=["NOTA"], rows=[[1.0]], total=3)
    assert "1 of 3" in shape(result).general


def test_empty_table_has_no_tables() -> None:
    envelope = shape(TableResult(kind="threshold", title="NOTA > 99", columns=["NOTA"], rows=[], total=0))
    assert envelope.ok
    assert envelope.tables == []
    assert "no matching rows" in envelope.general


def test_scalar_average_and_placeholder() -> None:
    envelope = shape(ScalarResult(measure="NOTA", value=72.3333, count=3, filter=Filter(pairs=(("PARALELO", "a"),))))
    assert "72.33" in envelope.general
    assert "PARALELO a" in envelope.general
    assert envelope.tables[0].rows == [["NOTA", 72.33, 3]]

    empty = shape(ScalarResult(measure="NOTA", value=None, count=0))
    assert empty.ok
    assert "no value" in empty.general
    assert empty.tables == []


def test_no_data_summaries() -> None:
    envelope = shape(NoDataResult(NO_DATA))
    assert envelope.ok
    assert "no data" in envelope.general.lower()
    assert envelope.tables == []
    assert "FISICA" in shape(NoDataResult(MISSING_COLUMN, detail="FISICA")).general


def test_report_not_found_lists_suggestions() -> None:
    envelope = shape(ReportResult(entity_query="Carla Mendez", suggestions=["Carla Nuñez"]))
    assert envelope.ok
    assert "not found" in envelope.general
    assert envelope.lists[0].items == ["Carla Nuñez"]
    assert envelope.tables == []


def test_report_found_has_scores_and_highlights() -> None:
    lines = [ReportLine("MATEMATICA", 95.0, "HIGH"), ReportLine("LECTURA", 40.0, "LOW"), ReportLine("ARTE", None, "no data")]
    result = ReportResult(
        entity_query="ana",
        entity_name="Ana Ruiz",
        lines=lines,
        strengths=[lines[0]],
        growth_areas=[lines[1]],
    )
    envelope = shape(result)
    assert envelope.general == "Full report for Ana Ruiz."
    assert envelope.tables[0].rows == [["MATEMATICA", 95, "HIGH"], ["LECTURA", 40, "LOW"], ["ARTE", "", "no data"]]
    assert envelope.lists[0].title == "Strengths"
    assert envelope.lists[0].items == ["MATEMATICA: 95"]
    assert envelope.lists[1].items == ["LECTURA: 40"]


def test_percentile_envelope() -> None:
    result = PercentileResult(
        entity_query="beto",
        measure="AUTOESTIMA",
        entity_name="Beto Paz",
        value=30.0,
        percentile=25,
        bucket="LOW",
        cohort_size=2,
    )
    envelope = shape(result)
    assert "percentile 25" in envelope.general
    assert envelope.tables[0].rows == [["Beto Paz", 30, 25, "LOW", 2]]

    unresolved = shape(PercentileResult(entity_query="zoe", measure="AUTOESTIMA"))
    assert "not found" in unresolved.general
    assert unresolved.lists == []


def test_document_is_split_into_paragraphs() -> None:
    envelope = shape(DocumentResult(name="reglamento.txt", text="Art. 1\n\nArt. 2\n\n\n", truncated=True))
    assert envelope.lists[0].items == ["Art. 1", "Art. 2"]
    assert "trimmed" in envelope.general


def test_guidance_lists_examples() -> None:
    envelope = guidance_envelope()
    assert envelope.ok
    assert envelope.lists[0].items == EXAMPLE_QUESTIONS
