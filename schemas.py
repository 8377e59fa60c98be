# schemas.py
from __future__ import annotations
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

Role = Literal["base", "amendment", "ancillary"]
ChangeType = Literal["added", "modified", "deleted"]
ROLES = ("base", "amendment", "ancillary")


def coerce_role(value: Any) -> str:
    """Any role the service invents collapses to 'ancillary'."""
    text = str(value or "").strip().lower()
    return text if text in ROLES else "ancillary"


def parse_date(value: Any) -> Optional[date]:
    """Lenient ISO date parse; anything unparseable is None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


# ---------- Inputs ----------
class SourceText(BaseModel):
    """One record from the text source collaborator."""
    filename: str
    text: str = ""
    extraction_succeeded: bool = True
    extraction_error: Optional[str] = None

    @property
    def usable(self) -> bool:
        return self.extraction_succeeded and bool(self.text.strip())


# ---------- Classification ----------
class Document(BaseModel):
    filename: str
    text: str = ""
    role: Role = "ancillary"
    execution_date: Optional[date] = None
    effective_date: Optional[date] = None
    amends: Optional[str] = None
    # Advisory only; never used for control flow
    confidence: float = 0.0
    extraction_error: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, v):
        return coerce_role(v)

    @field_validator("execution_date", "effective_date", mode="before")
    @classmethod
    def _coerce_date(cls, v):
        return parse_date(v)

    @property
    def has_text(self) -> bool:
        return bool(self.text and self.text.strip())

    @property
    def sort_date(self) -> Optional[date]:
        return self.execution_date or self.effective_date

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Document":
        """
        Build a Document from either the canonical top-level shape or the
        legacy shape that nests classification under `metadata`.
        """
        meta = record.get("metadata") or {}
        return cls(
            filename=record.get("filename") or record.get("name") or "",
            text=record.get("text") or record.get("extracted_text") or "",
            role=record.get("role") or meta.get("classification_role") or record.get("type"),
            execution_date=record.get("execution_date") or meta.get("execution_date"),
            effective_date=record.get("effective_date") or meta.get("effective_date"),
            amends=record.get("amends") or meta.get("amends_document"),
            confidence=record.get("confidence") or meta.get("classification_confidence") or 0.0,
            extraction_error=record.get("extraction_error") or record.get("text_extraction_error"),
        )


class ClassificationBatch(BaseModel):
    documents: List[Document] = Field(default_factory=list)
    chronological_order: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _order_is_permutation(self):
        names = [d.filename for d in self.documents]
        if len(set(names)) != len(names):
            raise ValueError("document filenames must be unique within a batch")
        if sorted(self.chronological_order) != sorted(names):
            raise ValueError("chronological_order must be a permutation of document filenames")
        return self

    def ordered_documents(self) -> List[Document]:
        by_name = {d.filename: d for d in self.documents}
        return [by_name[name] for name in self.chronological_order]


# ---------- Merge ----------
class AmendmentSummary(BaseModel):
    model_config = {"frozen": True}

    document: str = ""
    role: Role = "amendment"
    changes: List[str] = Field(default_factory=list)

    @field_validator("document", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else str(v)

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, v):
        return coerce_role(v)

    @field_validator("changes", mode="before")
    @classmethod
    def _coerce_changes(cls, v):
        if v is None:
            return []
        if isinstance(v, (list, tuple)):
            return [str(x) for x in v if x is not None]
        return [str(v)]


class ClauseChange(BaseModel):
    model_config = {"frozen": True}

    section: str = ""
    change_type: ChangeType = "modified"
    old_text: str = ""
    new_text: str = ""
    summary: str = ""

    @field_validator("change_type", mode="before")
    @classmethod
    def _coerce_change_type(cls, v):
        text = str(v or "").strip().lower()
        return text if text in ("added", "modified", "deleted") else "modified"

    @field_validator("section", "old_text", "new_text", "summary", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else str(v)


class MergeResult(BaseModel):
    """Immutable once built; a later merge produces a new instance."""
    model_config = {"frozen": True}

    base_summary: str
    amendment_summaries: List[AmendmentSummary] = Field(default_factory=list)
    clause_change_log: List[ClauseChange] = Field(default_factory=list)
    final_contract: str = ""
    document_incorporation_log: List[str] = Field(default_factory=list)
    # Which path produced this result
    source: Literal["generated", "fallback"] = "generated"

    def to_wire(self) -> Dict[str, Any]:
        """Merge result schema as the service and API clients see it."""
        data = self.model_dump(mode="json")
        data.pop("source", None)
        return data


class StoredMergeResult(BaseModel):
    project_id: str
    version: int
    status: Literal["complete", "superseded"] = "complete"
    created_at: Optional[datetime] = None
    result: MergeResult
