from fastapi.testclient import TestClient

import lexium.api as api
from lexium.llm_client import LLMClient
from lexium.service import QueryService
from lexium.store import DirectoryStorage, SnapshotStore


class EchoLLM(LLMClient):
    def generate_text(self, system_prompt: str, user_prompt: str, timeout: int = 30) -> str:
        return 'Here you go: {"ok": true, "general": "generated", "lists": [], "tables": []}'


class RefusingLLM(LLMClient):
    def generate_text(self, system_prompt: str, user_prompt: str, timeout: int = 30) -> str:
        return (
            '{"ok": false, "general": "No evidence in the files.", '
            '"lists": [{"title": "Files", "items": ["reglamento.txt"]}], "tables": []}'
        )


def _client(tmp_path, llm: LLMClient | None = None) -> TestClient:
    (tmp_path / "estudiantes.csv").write_text(
        "NOMBRE;PARALELO;AUTOESTIMA\nAna Ruiz;A;80\nBeto Paz;B;30\n", encoding="utf-8"
    )
    (tmp_path / "reglamento.txt").write_text("Art. 1", encoding="utf-8")
    store = SnapshotStore(DirectoryStorage(tmp_path, data_file_name="estudiantes.csv", document_names=("reglamento.txt",)))
    store.reload()
    return TestClient(api.build_standalone_app(QueryService(store, llm_client=llm or EchoLLM())))


def test_ping() -> None:
    resp = TestClient(api.app).get("/api/ping")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_answer_returns_envelope(tmp_path) -> None:
    client = _client(tmp_path)
    resp = client.get("/api/answer", params={"q": "average of AUTOESTIMA by PARALELO"})
    assert resp.status_code == 200
    payload = resp.json()
    assert set(payload) == {"ok", "general", "lists", "tables"}
    assert payload["tables"][0]["rows"] == [["A", 80], ["B", 30]]


def test_answer_without_question_is_400(tmp_path) -> None:
    client = _client(tmp_path)
    assert client.get("/api/answer").status_code == 400
    assert client.get("/api/answer", params={"q": "  "}).status_code == 400


def test_fallback_goes_through_generator(tmp_path) -> None:
    resp = _client(tmp_path).get("/api/answer", params={"q": "who founded the school?"})
    assert resp.status_code == 200
    assert resp.json()["general"] == "generated"


def test_generated_negative_answer_is_returned_as_is(tmp_path) -> None:
    resp = _client(tmp_path, RefusingLLM()).get("/api/answer", params={"q": "who founded the school?"})
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["ok"] is False
    assert payload["general"] == "No evidence in the files."
    assert payload["lists"] == [{"title": "Files", "items": ["reglamento.txt"]}]


def test_dataset_and_reload(tmp_path) -> None:
    client = _client(tmp_path)
    info = client.get("/api/dataset").json()
    assert info["table"] == "estudiantes.csv"
    assert info["rows"] == 2
    assert info["documents"] == ["reglamento.txt"]
    assert [column["kind"] for column in info["columns"]] == ["text", "text", "numeric"]

    (tmp_path / "estudiantes.csv").write_text("NOMBRE;AUTOESTIMA\nZoe;99\n", encoding="utf-8")
    reloaded = client.post("/api/reload")
    assert reloaded.status_code == 200
    assert reloaded.json()["rows"] == 1
    assert client.get("/api/answer", params={"q": "top 1 AUTOESTIMA"}).json()["tables"][0]["rows"] == [["Zoe", 99]]


def test_default_app_starts_without_storage() -> None:
    resp = TestClient(api.app).get("/api/answer", params={"q": "average of AUTOESTIMA"})
    assert resp.status_code == 200
    assert "no data" in resp.json()["general"].lower()
