"""
Project-level orchestration: text source -> classifier -> merge synthesizer -> result store.

Applies the result cache contract (reuse the stored result unless a refresh is
requested) and serializes merges of the same project so two concurrent
refreshes cannot interleave their save calls.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Sequence

from contract_merger import MergeSynthesizer
from document_classifier import DocumentClassifier
from llm_provider import GenerativeService
from result_store import ResultStore
from schemas import ClassificationBatch, Document, MergeResult
from settings import ServiceConfig
from text_source import TextSource

log = logging.getLogger("contractmerge.service")


class _ProjectLock:
    """A lock plus the number of callers holding or waiting on it."""

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


class ContractMergeService:
    def __init__(
        self,
        text_source: TextSource,
        store: ResultStore,
        classifier: DocumentClassifier,
        synthesizer: MergeSynthesizer,
    ):
        self.text_source = text_source
        self.store = store
        self.classifier = classifier
        self.synthesizer = synthesizer
        self._locks: Dict[str, _ProjectLock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def build(
        cls,
        service: GenerativeService,
        config: ServiceConfig,
        text_source: TextSource,
        store: ResultStore,
    ) -> "ContractMergeService":
        return cls(
            text_source=text_source,
            store=store,
            classifier=DocumentClassifier(service, config),
            synthesizer=MergeSynthesizer(service, config),
        )

    @contextmanager
    def _project_lock(self, project_id: str) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.get(project_id)
            if entry is None:
                entry = self._locks[project_id] = _ProjectLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            # Drop the entry once no merge of this project holds or waits on it
            with self._locks_guard:
                entry.holders -= 1
                if entry.holders == 0:
                    self._locks.pop(project_id, None)

    def classify_project(self, project_id: str) -> ClassificationBatch:
        sources = self.text_source.fetch(project_id)
        log.info("Classifying %d documents for project %s", len(sources), project_id)
        return self.classifier.classify(sources)

    def load_result(self, project_id: str) -> Optional[MergeResult]:
        return self.store.load(project_id)

    def merge_project(self, project_id: str, refresh: bool = False) -> MergeResult:
        """
        Return the project's merge result, running the full pipeline only when
        nothing is stored yet or `refresh` is set.

        Raises:
            NoUsableInput: No document in the project has extracted text
            ConfigurationError: Service credentials are not usable
        """
        with self._project_lock(project_id):
            if not refresh:
                existing = self.store.load(project_id)
                if existing is not None:
                    log.info("Using stored merge result for project %s", project_id)
                    return existing
            else:
                log.info("Refresh requested for project %s; ignoring stored result", project_id)

            batch = self.classify_project(project_id)
            return self._merge_and_save(project_id, batch.ordered_documents())

    def merge_documents(self, project_id: str, documents: Sequence[Document]) -> MergeResult:
        """Merge an already classified (possibly human-corrected) document list. Always re-runs."""
        with self._project_lock(project_id):
            return self._merge_and_save(project_id, documents)

    def _merge_and_save(self, project_id: str, documents: Sequence[Document]) -> MergeResult:
        result = self.synthesizer.merge(documents)
        try:
            self.store.save(project_id, result)
        except Exception:
            # The merge itself succeeded; the caller still gets the result
            log.exception("Failed to save merge result for project %s", project_id)
        return result
