"""
Merge synthesis: fold a chronologically ordered document set into one merged
contract plus change log. When the generative path fails for any reason a
deterministic result is built from document metadata alone.
"""

import logging
from typing import Any, Dict, List, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from errors import ConfigurationError, ContractMergeError, NoUsableInput, ParseFailure
from llm_provider import GenerativeService, InputMessage, input_message
from request_driver import ContinuationDriver
from response_repair import parse_structured, validate_merge_payload
from schemas import AmendmentSummary, ClauseChange, Document, MergeResult
from settings import ServiceConfig

log = logging.getLogger("contractmerge.merger")

DATE_NOT_SPECIFIED = "date not specified"

M = TypeVar("M", bound=BaseModel)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def document_date(doc: Document) -> str:
    when = doc.execution_date or doc.effective_date
    return when.isoformat() if when else DATE_NOT_SPECIFIED


def incorporation_line(doc: Document) -> str:
    return f"{doc.filename} ({doc.role}, {document_date(doc)})"


def incorporation_log(documents: Sequence[Document]) -> List[str]:
    return [incorporation_line(d) for d in documents]


def _valid_entries(model: Type[M], entries: Sequence[Any]) -> List[M]:
    """Build one model per entry, skipping entries that are not objects or fail validation."""
    valid: List[M] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            log.info("Skipping %s entry %d: not an object", model.__name__, index)
            continue
        try:
            valid.append(model.model_validate(entry))
        except ValidationError as e:
            log.warning("Skipping invalid %s entry %d: %s", model.__name__, index, e)
    return valid


class MergeSynthesizer:
    def __init__(self, service: GenerativeService, config: ServiceConfig):
        self.config = config
        self.driver = ContinuationDriver(service, config, config.merger_prompt_id, config.merger_prompt_version)

    def build_input(self, documents: Sequence[Document]) -> List[InputMessage]:
        """Role tag, then full text, per document; chronological order last."""
        messages: List[InputMessage] = []
        for doc in documents:
            messages.append(input_message(f"{doc.filename}: {doc.role}"))
            messages.append(input_message(doc.text))
        order = ", ".join(d.filename for d in documents)
        messages.append(input_message(f"chronological_order = [{order}]"))
        return messages

    def finalize(self, payload: Dict[str, Any], documents: Sequence[Document]) -> MergeResult:
        """Turn a validated payload into a MergeResult with a complete incorporation log."""
        summaries = _valid_entries(AmendmentSummary, payload["amendment_summaries"])
        changes = _valid_entries(ClauseChange, payload["clause_change_log"])

        log_lines = [str(line) for line in payload["document_incorporation_log"] if line is not None]
        if len(log_lines) != len(documents):
            if log_lines:
                log.info(
                    "Incorporation log has %d entries for %d documents; rebuilding from metadata",
                    len(log_lines), len(documents),
                )
            log_lines = incorporation_log(documents)

        return MergeResult(
            base_summary=payload["base_summary"],
            amendment_summaries=summaries,
            clause_change_log=changes,
            final_contract=payload["final_contract"],
            document_incorporation_log=log_lines,
            source="generated",
        )

    def fallback_result(self, documents: Sequence[Document]) -> MergeResult:
        """Deterministic, metadata-only merge result. Makes no service call."""
        base_docs = [d for d in documents if d.role == "base"]
        amendment_docs = [d for d in documents if d.role == "amendment"]
        ancillary_docs = [d for d in documents if d.role == "ancillary"]

        if base_docs:
            base_summary = (
                f"Base contract analysis from {', '.join(d.filename for d in base_docs)}. "
                f"{_plural(len(base_docs), 'base document')} processed from extracted text."
            )
        else:
            base_summary = "No base contract identified. Document classification and text extraction completed for analysis."

        summaries: List[AmendmentSummary] = []
        for doc in amendment_docs + ancillary_docs:
            label = "Document" if doc.role == "amendment" else "Ancillary document"
            if doc.has_text:
                facts = [
                    f"{label} processed: {doc.filename}",
                    f"Classification role: {doc.role}",
                    f"Execution date: {doc.execution_date.isoformat() if doc.execution_date else 'Not specified'}",
                    f"Effective date: {doc.effective_date.isoformat() if doc.effective_date else 'Not specified'}",
                    f"Amends: {doc.amends or 'Not specified'}",
                    f"Confidence: {doc.confidence:.2f}",
                    f"Text extraction: Successful ({len(doc.text)} characters)",
                ]
            else:
                facts = [
                    f"{label} uploaded: {doc.filename}",
                    f"Classification role: {doc.role}",
                    "Status: Text extraction failed",
                    f"Error: {doc.extraction_error or 'None'}",
                ]
            summaries.append(AmendmentSummary(document=doc.filename, role=doc.role, changes=facts))

        changes = [
            ClauseChange(
                section=f"Amendment {index}",
                change_type="modified",
                old_text="Original contract terms",
                new_text=f"Modified by {doc.filename}",
                summary=f"Changes introduced by {doc.filename} ({document_date(doc)})",
            )
            for index, doc in enumerate(amendment_docs, start=1)
        ]

        base_with_text = next((d for d in base_docs if d.has_text), None)
        if base_with_text is not None:
            base_text = base_with_text.text
        else:
            first = documents[0].filename if documents else "uploaded documents"
            base_text = f"Contract content from {first}"
        final_contract = (
            f"{base_text}\n\n[Contract merging completed with {_plural(len(amendment_docs), 'amendment')} "
            f"and {_plural(len(ancillary_docs), 'ancillary document')} applied in chronological order]"
        )

        return MergeResult(
            base_summary=base_summary,
            amendment_summaries=summaries,
            clause_change_log=changes,
            final_contract=final_contract,
            document_incorporation_log=incorporation_log(documents),
            source="fallback",
        )

    def merge(self, documents: Sequence[Document]) -> MergeResult:
        """
        Merge documents given in chronological order.

        Raises:
            NoUsableInput: No document has any extracted text
            ConfigurationError: Credentials or prompt id are not usable
        """
        docs = list(documents)
        usable = [d for d in docs if d.has_text]
        if not usable:
            raise NoUsableInput("No documents with extracted text found for this project")
        for d in docs:
            if not d.has_text:
                log.warning("Document %s has no extracted text, skipping in merge request", d.filename)

        try:
            raw = self.driver.run(self.build_input(usable))
            parsed = parse_structured(raw)
            if isinstance(parsed, ParseFailure):
                log.warning("Could not parse merge response (%s); using fallback merge result", parsed.reason)
                return self.fallback_result(docs)
            payload = validate_merge_payload(parsed)
            result = self.finalize(payload, docs)
            log.info(
                "Merge complete: %d amendment summaries, %d clause changes, %d chars final contract",
                len(result.amendment_summaries), len(result.clause_change_log), len(result.final_contract),
            )
            return result
        except ConfigurationError:
            raise
        except ContractMergeError as e:
            log.warning("Merge request failed (%s); using fallback merge result", e)
        except Exception:
            log.exception("Unexpected error while merging; using fallback merge result")
        return self.fallback_result(docs)
