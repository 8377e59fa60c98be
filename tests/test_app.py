import pytest
from fastapi.testclient import TestClient

from app import app, get_merge_service
from conftest import FakeService, classification_json, completed, make_config, merge_json
from errors import TransportError
from merge_service import ContractMergeService
from result_store import InMemoryResultStore
from schemas import SourceText
from text_source import InMemoryTextSource

ENTRIES = [
    {"filename": "Master Agreement.txt", "role": "base", "execution_date": "2023-01-01"},
    {"filename": "Amendment 1.txt", "role": "amendment", "execution_date": "2023-06-01"},
]


@pytest.fixture
def fake():
    return FakeService()


@pytest.fixture
def client(fake, sources):
    text_source = InMemoryTextSource({
        "p1": sources,
        "scans": [SourceText(filename="Scan.pdf", text="", extraction_succeeded=False)],
    })
    svc = ContractMergeService.build(service=fake, config=make_config(), text_source=text_source,
                                     store=InMemoryResultStore())
    app.dependency_overrides[get_merge_service] = lambda: svc
    yield TestClient(app)
    app.dependency_overrides.clear()


#============================================
def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


#============================================
def test_classify_omits_text(client, fake) -> None:
    fake.responses.append(completed(classification_json(ENTRIES)))
    resp = client.post("/projects/p1/classify")
    assert resp.status_code == 200
    body = resp.json()
    assert body["chronological_order"][:2] == ["Master Agreement.txt", "Amendment 1.txt"]
    assert "text" not in body["documents"][0]
    assert body["documents"][0]["execution_date"] == "2023-01-01"


#============================================
def test_get_merge_before_any_run_is_404(client) -> None:
    assert client.get("/projects/p1/merge").status_code == 404


#============================================
def test_merge_then_get(client, fake) -> None:
    fake.responses.extend([completed(classification_json(ENTRIES)), completed(merge_json())])
    resp = client.post("/projects/p1/merge")
    assert resp.status_code == 200
    body = resp.json()
    assert body["source"] == "generated"
    assert body["project_id"] == "p1"
    assert len(body["document_incorporation_log"]) == 3

    stored = client.get("/projects/p1/merge")
    assert stored.status_code == 200
    assert stored.json() == body


#============================================
def test_merge_falls_back_when_service_down(client, fake) -> None:
    fake.responses.extend([TransportError("down"), TransportError("down")])
    body = client.post("/projects/p1/merge").json()
    assert body["source"] == "fallback"
    assert body["final_contract"].startswith("MASTER TEXT")


#============================================
def test_merge_without_text_is_422(client) -> None:
    assert client.post("/projects/scans/merge").status_code == 422


#============================================
def test_merge_corrected_documents(client, fake) -> None:
    fake.responses.append(completed(merge_json()))
    payload = {"documents": [
        {"filename": "Master Agreement.txt", "text": "MASTER TEXT", "role": "base",
         "execution_date": "2023-01-01"},
        {"filename": "Amendment 1.txt", "text": "AMENDMENT", "role": "amendment",
         "execution_date": "2023-06-01"},
    ]}
    resp = client.post("/projects/p1/merge/documents", json=payload)
    assert resp.status_code == 200
    assert resp.json()["document_incorporation_log"] == [
        "Master Agreement.txt (base, 2023-01-01)",
        "Amendment 1.txt (amendment, 2023-06-01)",
    ]


#============================================
def test_missing_credentials_is_500(fake, sources) -> None:
    svc = ContractMergeService.build(
        service=fake, config=make_config(api_key=None),
        text_source=InMemoryTextSource({"p1": sources}), store=InMemoryResultStore(),
    )
    app.dependency_overrides[get_merge_service] = lambda: svc
    try:
        assert TestClient(app).post("/projects/p1/merge").status_code == 500
    finally:
        app.dependency_overrides.clear()


#============================================
def test_running_module_serves_with_uvicorn(monkeypatch) -> None:
    """
    Executing app.py as a script hands the FastAPI app to uvicorn.
    """
    import runpy
    from pathlib import Path

    import uvicorn

    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))
    monkeypatch.delenv("CM_HOST", raising=False)
    monkeypatch.setenv("CM_PORT", "8123")
    runpy.run_path(str(Path(__file__).resolve().parent.parent / "app.py"), run_name="__main__")
    assert len(calls) == 1
    target, kwargs = calls[0]
    assert target.title == "ContractMerge API"
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 8123
