"""
Document role classification: generative service first, filename heuristic fallback.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence

from chronology import reconcile_order, sequence_documents
from errors import (
    ConfigurationError,
    ParseFailure,
    RetriesExhausted,
    TransportError,
    UnexpectedResponseStatus,
    ValidationFailure,
)
from filename_matcher import ChainedMatcher, default_matcher
from llm_provider import GenerativeService, InputMessage, input_message
from request_driver import ContinuationDriver
from response_repair import parse_structured, validate_classification_payload
from schemas import ClassificationBatch, Document, SourceText, coerce_role, parse_date
from settings import ServiceConfig

log = logging.getLogger("contractmerge.classifier")

GENERIC_AMENDS = "Base Agreement"
# Advisory confidences for documents the service classified without a score
GENERATED_CONFIDENCE = 0.9
KEYWORD_CONFIDENCE = 0.5
DEFAULT_CONFIDENCE = 0.2

class RoleCandidate(NamedTuple):
    """A heuristic role guess for one filename."""
    role: str
    amends: Optional[str]
    confidence: float
    reason: str

class DocumentClassifier:
    """Generative classifier with a filename-heuristic fallback."""

    def __init__(
        self,
        service: GenerativeService,
        config: ServiceConfig,
        matcher: ChainedMatcher = default_matcher,
        today: Callable[[], date] = date.today,
    ):
        self.config = config
        self.driver = ContinuationDriver(
            service, config, config.classifier_prompt_id, config.classifier_prompt_version
        )
        self.matcher = matcher
        self.today = today

        # Checked in order; first group with a hit decides the role
        self.filename_keywords = [
            (("amendment", "addendum", "modification"), "amendment"),
            (("agreement", "contract", "base"), "base"),
            (("rider", "schedule", "exhibit"), "ancillary"),
        ]

    # ---------- Heuristic ----------
    def guess_role_from_filename(self, filename: str) -> RoleCandidate:
        lowered = (filename or "").lower()
        for keywords, role in self.filename_keywords:
            hits = [k for k in keywords if k in lowered]
            if hits:
                amends = GENERIC_AMENDS if role == "amendment" else None
                return RoleCandidate(role, amends, KEYWORD_CONFIDENCE, f"filename_keyword({hits[0]})")
        return RoleCandidate("ancillary", None, DEFAULT_CONFIDENCE, "no_filename_keyword_default")

    def fallback_document(self, source: SourceText, today: Optional[date] = None) -> Document:
        today = today or self.today()
        guess = self.guess_role_from_filename(source.filename)
        return Document(
            filename=source.filename,
            text=source.text if source.usable else "",
            role=guess.role,
            execution_date=today,
            effective_date=today,
            amends=guess.amends,
            confidence=guess.confidence,
            extraction_error=None if source.usable else (source.extraction_error or "No text extracted"),
        )

    def fallback_batch(self, sources: Sequence[SourceText]) -> ClassificationBatch:
        today = self.today()
        documents = [self.fallback_document(s, today) for s in sources]
        return ClassificationBatch(documents=documents, chronological_order=sequence_documents(documents))

    # ---------- Generative path ----------
    def build_input(self, sources: Sequence[SourceText]) -> List[InputMessage]:
        return [input_message(f"Document: {s.filename}\n\n{s.text}") for s in sources]

    def _adopt_entry(self, source: SourceText, entry: Dict[str, Any], today: date) -> Document:
        confidence = entry.get("confidence")
        if not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
            confidence = GENERATED_CONFIDENCE
        amends = entry.get("amends")
        return Document(
            filename=source.filename,
            text=source.text,
            role=coerce_role(entry.get("role")),
            execution_date=parse_date(entry.get("execution_date")) or today,
            effective_date=parse_date(entry.get("effective_date")) or today,
            amends=str(amends) if amends else None,
            confidence=float(confidence),
        )

    def reconcile(self, sources: Sequence[SourceText], payload: Dict[str, Any]) -> ClassificationBatch:
        """
        Map service entries onto the real file set. Files without an entry,
        and files that were never sent, get the heuristic classification.
        """
        today = self.today()
        entries = [e for e in payload.get("documents") or [] if isinstance(e, dict)]
        usable_names = [s.filename for s in sources if s.usable]
        assigned = self.matcher.assign(usable_names, entries, key=lambda e: str(e.get("filename") or ""))

        documents: List[Document] = []
        for source in sources:
            entry = assigned.get(source.filename) if source.usable else None
            if entry is not None:
                doc = self._adopt_entry(source, entry, today)
                log.debug("Matched classification for %s: %s", source.filename, doc.role)
            else:
                doc = self.fallback_document(source, today)
                if source.usable:
                    log.info("No classification returned for %s; using filename heuristic (%s)", source.filename, doc.role)
                else:
                    log.info("Classified %s by filename (text extraction failed): %s", source.filename, doc.role)
            documents.append(doc)

        order = reconcile_order(payload.get("chronological_order"), documents, self.matcher)
        return ClassificationBatch(documents=documents, chronological_order=order)

    def classify(self, documents: Sequence[SourceText]) -> ClassificationBatch:
        """
        Classify every document; never raises for service problems.

        Raises:
            ConfigurationError: Credentials or prompt id are not usable
        """
        sources = list(documents)
        usable = [s for s in sources if s.usable]
        for s in sources:
            if not s.usable:
                log.warning("No text extracted from %s, excluding from classification request", s.filename)

        if not usable:
            log.warning("No document has extracted text; classifying all %d by filename", len(sources))
            return self.fallback_batch(sources)

        log.info("Sending classification request with %d of %d documents", len(usable), len(sources))
        try:
            raw = self.driver.run(self.build_input(usable))
            parsed = parse_structured(raw)
            if isinstance(parsed, ParseFailure):
                log.warning("Could not parse classification response (%s); using filename heuristic", parsed.reason)
                return self.fallback_batch(sources)
            batch = self.reconcile(sources, validate_classification_payload(parsed))
        except ConfigurationError:
            raise
        except (TransportError, RetriesExhausted, UnexpectedResponseStatus) as e:
            log.warning("Classification request failed (%s); using filename heuristic for all files", e)
            return self.fallback_batch(sources)
        except ValidationFailure as e:
            log.warning("Invalid classification response (%s); using filename heuristic", e)
            return self.fallback_batch(sources)
        except Exception:
            log.exception("Unexpected error while classifying; using filename heuristic for all files")
            return self.fallback_batch(sources)

        log.info(
            "Classification complete: base=%d amendment=%d ancillary=%d",
            sum(1 for d in batch.documents if d.role == "base"),
            sum(1 for d in batch.documents if d.role == "amendment"),
            sum(1 for d in batch.documents if d.role == "ancillary"),
        )
        return batch
