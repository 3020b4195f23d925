from types import MappingProxyType

import pytest

from conftest import STUDENTS_CSV
from lexium.llm_client import LLMCircuitOpenError, LLMClient, LLMUnavailableError
from lexium.loader import load_dataset
from lexium.service import QueryService
from lexium.shaper import GUIDANCE_SUMMARY
from lexium.store import Snapshot, SnapshotStore, Storage


class StaticStorage(Storage):
    def __init__(self, table: bytes | None, documents: dict[str, str] | None = None) -> None:
        self.table = table
        self.documents = documents or {}

    def table_name(self) -> str | None:
        return "estudiantes.csv" if self.table is not None else None

    def read_table(self) -> bytes | None:
        return self.table

    def read_documents(self) -> dict[str, str]:
        return dict(self.documents)


class FakeLLM(LLMClient):
    def __init__(self, reply: str | Exception = '{"general": "from the generator"}') -> None:
        self.reply = reply
        self.calls: list[tuple[str, str, int]] = []

    def generate_text(self, system_prompt: str, user_prompt: str, timeout: int = 30) -> str:
        self.calls.append((system_prompt, user_prompt, timeout))
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def _service(csv_text: str | None = STUDENTS_CSV, llm: LLMClient | None = None, documents=None) -> QueryService:
    table = csv_text.encode("utf-8") if csv_text is not None else None
    store = SnapshotStore(StaticStorage(table, documents))
    store.reload()
    return QueryService(store, llm_client=llm or FakeLLM(), timeout=7)


def test_grouped_average_end_to_end() -> None:
    envelope = _service().answer("average of AUTOESTIMA by PARALELO")
    assert envelope.ok
    assert envelope.tables[0].rows == [["A", 80], ["B", 30]]


def test_top_one_end_to_end() -> None:
    envelope = _service().answer("top 1 highest AUTOESTIMA")
    assert envelope.tables[0].rows == [["Ana Ruiz", "A", 80]]


def test_percentile_end_to_end() -> None:
    envelope = _service().answer("percentile of Beto in AUTOESTIMA")
    assert "percentile 25" in envelope.general
    assert envelope.tables[0].rows[0][2] == 25


def test_report_not_found_end_to_end() -> None:
    csv_text = STUDENTS_CSV + "Carla Nuñez,A,55\n"
    envelope = _service(csv_text).answer("full report of Carla Mendez")
    assert envelope.ok
    assert "not found" in envelope.general
    assert "Carla Nuñez" in envelope.lists[0].items
    assert envelope.tables == []


@pytest.mark.parametrize("csv_text", [None, "", "\n\n", "\x00\x00garbage without header", 'A,B\n"unterminated'])
def test_missing_or_malformed_table_is_no_data(csv_text) -> None:
    envelope = _service(csv_text).answer("average of AUTOESTIMA")
    assert envelope.ok
    assert "no data" in envelope.general.lower()
    assert envelope.tables == []


def test_blank_question_is_rejected() -> None:
    envelope = _service().answer("   ")
    assert not envelope.ok
    assert envelope.general == "Empty question."


def test_document_lookup() -> None:
    service = _service(documents={"reglamento.txt": "Art. 1 Puntualidad.\n\nArt. 2 Uniforme."})
    envelope = service.answer("¿qué dice el reglamento?")
    assert envelope.lists[0].items == ["Art. 1 Puntualidad.", "Art. 2 Uniforme."]


def test_fallback_uses_text_generator_with_file_context() -> None:
    llm = FakeLLM()
    envelope = _service(llm=llm).answer("who founded the school?")
    assert envelope.general == "from the generator"
    system_prompt, user_prompt, timeout = llm.calls[0]
    assert "JSON" in system_prompt
    assert "Question: who founded the school?" in user_prompt
    assert "estudiantes.csv" in user_prompt
    assert timeout == 7


def test_fallback_wraps_free_text() -> None:
    envelope = _service(llm=FakeLLM("No evidence in the files.")).answer("who founded the school?")
    assert envelope.ok
    assert envelope.general == "No evidence in the files."


@pytest.mark.parametrize(
    "failure",
    [TimeoutError("slow"), LLMCircuitOpenError("open"), LLMUnavailableError("no key"), "", "   "],
)
def test_fallback_failures_return_guidance(failure) -> None:
    envelope = _service(llm=FakeLLM(failure)).answer("who founded the school?")
    assert envelope.ok
    assert envelope.general == GUIDANCE_SUMMARY
    assert envelope.lists[0].items


def test_missing_provider_is_created_lazily_and_degrades() -> None:
    def factory() -> LLMClient:
        raise LLMUnavailableError("OpenAI configuration missing")

    store = SnapshotStore(StaticStorage(STUDENTS_CSV.encode("utf-8")))
    service = QueryService(store, llm_factory=factory)
    assert service.answer("average of AUTOESTIMA").ok
    assert service.answer("who founded the school?").general == GUIDANCE_SUMMARY


def test_requests_use_the_snapshot_current_at_call_time() -> None:
    service = _service()
    old = service.store.current()
    service.store.replace(Snapshot(dataset=load_dataset("NOMBRE,AUTOESTIMA\nZoe,99\n"), documents=MappingProxyType({})))
    assert service.answer("top 1 AUTOESTIMA").tables[0].rows == [["Zoe", 99]]
    assert old.dataset.row_count == 2
