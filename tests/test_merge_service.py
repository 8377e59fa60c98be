import threading

import pytest

from conftest import FakeService, classification_json, completed, make_config, merge_json
from errors import NoUsableInput
from merge_service import ContractMergeService
from result_store import InMemoryResultStore
from schemas import SourceText
from text_source import InMemoryTextSource

ENTRIES = [
    {"filename": "Master Agreement.txt", "role": "base", "execution_date": "2023-01-01"},
    {"filename": "Amendment 1.txt", "role": "amendment", "execution_date": "2023-06-01"},
]


def one_pipeline():
    """Scripted responses for a single classify + merge run."""
    return [completed(classification_json(ENTRIES)), completed(merge_json())]


def make_service(responses, sources, delay=0.0):
    fake = FakeService(responses, delay=delay)
    store = InMemoryResultStore()
    svc = ContractMergeService.build(
        service=fake,
        config=make_config(),
        text_source=InMemoryTextSource({"p1": sources}),
        store=store,
    )
    return svc, fake, store


class FailingStore(InMemoryResultStore):
    def save(self, project_id, result):
        raise RuntimeError("database unavailable")


#============================================
def test_merge_project_runs_pipeline_and_saves(sources) -> None:
    svc, fake, store = make_service(one_pipeline(), sources)
    result = svc.merge_project("p1")
    assert result.source == "generated"
    assert len(fake.requests) == 2
    assert store.load("p1") == result
    merge_texts = [m.content[0].text for m in fake.requests[1].input]
    assert merge_texts[-1] == "chronological_order = [Master Agreement.txt, Amendment 1.txt]"
    assert len(result.document_incorporation_log) == 3


#============================================
def test_stored_result_is_reused(sources) -> None:
    """
    Without refresh a second call returns the stored result and makes no calls.
    """
    svc, fake, store = make_service(one_pipeline(), sources)
    first = svc.merge_project("p1")
    second = svc.merge_project("p1")
    assert second == first
    assert len(fake.requests) == 2
    assert len(store.history("p1")) == 1


#============================================
def test_refresh_reruns_and_supersedes(sources) -> None:
    svc, fake, store = make_service(one_pipeline() + one_pipeline(), sources)
    svc.merge_project("p1")
    svc.merge_project("p1", refresh=True)
    assert len(fake.requests) == 4
    assert [h.status for h in store.history("p1")] == ["superseded", "complete"]


#============================================
def test_merge_documents_always_reruns(sources) -> None:
    svc, fake, store = make_service(one_pipeline() + [completed(merge_json())], sources)
    batch = svc.classify_project("p1")
    svc.merge_documents("p1", batch.ordered_documents())
    svc.merge_documents("p1", batch.ordered_documents())
    assert len(fake.requests) == 3
    assert len(store.history("p1")) == 2


#============================================
def test_project_without_text_raises(sources) -> None:
    empty = [SourceText(filename="Scan.pdf", text="", extraction_succeeded=False)]
    svc, fake, store = make_service([], empty)
    with pytest.raises(NoUsableInput):
        svc.merge_project("p1")
    assert fake.requests == []
    assert store.load("p1") is None


#============================================
def test_save_failure_still_returns_result(sources) -> None:
    fake = FakeService(one_pipeline())
    svc = ContractMergeService.build(
        service=fake, config=make_config(),
        text_source=InMemoryTextSource({"p1": sources}), store=FailingStore(),
    )
    result = svc.merge_project("p1")
    assert result.source == "generated"


#============================================
def test_concurrent_merges_run_pipeline_once(sources) -> None:
    """
    Two simultaneous merges of the same project share one pipeline run.
    """
    svc, fake, store = make_service(one_pipeline(), sources, delay=0.05)
    results = []
    errors = []

    def worker():
        try:
            results.append(svc.merge_project("p1"))
        except Exception as e:  # surfaced by the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(results) == 2
    assert results[0] == results[1]
    assert len(fake.requests) == 2
    assert len(store.history("p1")) == 1


#============================================
def test_project_locks_are_released(sources) -> None:
    """
    No per-project lock outlives the merges that used it.
    """
    svc, fake, store = make_service(one_pipeline(), sources)
    svc.merge_project("p1")
    assert svc._locks == {}
    with pytest.raises(NoUsableInput):
        svc.merge_documents("p2", [])
    assert svc._locks == {}


#============================================
def test_concurrent_merges_release_their_lock(sources) -> None:
    svc, fake, store = make_service(one_pipeline(), sources, delay=0.05)
    threads = [threading.Thread(target=svc.merge_project, args=("p1",)) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert svc._locks == {}
    assert len(fake.requests) == 2
