# result_store.py
"""
Result store collaborator: `load(project_id)` returns the current merge result
or None, `save(project_id, result)` records a new one. Saving never rewrites a
prior result; it adds the next version and marks earlier ones superseded.
"""
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker
from models_merge import MergeResultRecord
from schemas import MergeResult, StoredMergeResult


class ResultStore(ABC):
    @abstractmethod
    def load(self, project_id: str) -> Optional[MergeResult]: ...

    @abstractmethod
    def save(self, project_id: str, result: MergeResult) -> None: ...


class InMemoryResultStore(ResultStore):
    def __init__(self):
        self._rows: Dict[str, List[StoredMergeResult]] = {}
        self._lock = threading.Lock()

    def load(self, project_id: str) -> Optional[MergeResult]:
        with self._lock:
            rows = [r for r in self._rows.get(project_id, []) if r.status == "complete"]
        return rows[-1].result if rows else None

    def save(self, project_id: str, result: MergeResult) -> None:
        with self._lock:
            rows = self._rows.setdefault(project_id, [])
            rows[:] = [r.model_copy(update={"status": "superseded"}) for r in rows]
            rows.append(StoredMergeResult(
                project_id=project_id,
                version=len(rows) + 1,
                status="complete",
                created_at=datetime.now(timezone.utc),
                result=result,
            ))

    def history(self, project_id: str) -> List[StoredMergeResult]:
        with self._lock:
            return list(self._rows.get(project_id, []))


# ---------- SQLAlchemy-backed store ----------
def _to_result(r: MergeResultRecord) -> MergeResult:
    return MergeResult.model_validate({
        "base_summary": r.base_summary,
        "amendment_summaries": list(r.amendment_summaries or []),
        "clause_change_log": list(r.clause_change_log or []),
        "final_contract": r.final_contract,
        "document_incorporation_log": list(r.document_incorporation_log or []),
        "source": r.source,
    })

def _to_stored(r: MergeResultRecord) -> StoredMergeResult:
    return StoredMergeResult(
        project_id=r.project_id,
        version=r.version,
        status=r.status,
        created_at=r.created_at,
        result=_to_result(r),
    )

def _next_version_for_project(db: Session, project_id: str) -> int:
    q = select(MergeResultRecord.version).where(MergeResultRecord.project_id == project_id)
    versions = [row[0] for row in db.execute(q).all()]
    return (max(versions) + 1) if versions else 1


class SqlResultStore(ResultStore):
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def load(self, project_id: str) -> Optional[MergeResult]:
        with self.session_factory() as db:
            q = (
                select(MergeResultRecord)
                .where(MergeResultRecord.project_id == project_id, MergeResultRecord.status == "complete")
                .order_by(MergeResultRecord.version.desc())
            )
            rec = db.execute(q).scalars().first()
            return _to_result(rec) if rec else None

    def save(self, project_id: str, result: MergeResult) -> None:
        data = result.model_dump(mode="json")
        with self.session_factory() as db:
            version = _next_version_for_project(db, project_id)
            # Supersede prior complete versions for this project
            db.query(MergeResultRecord)\
              .filter(MergeResultRecord.project_id == project_id, MergeResultRecord.status == "complete")\
              .update({MergeResultRecord.status: "superseded"})
            db.add(MergeResultRecord(
                project_id=project_id,
                version=version,
                status="complete",
                source=data["source"],
                base_summary=data["base_summary"],
                amendment_summaries=data["amendment_summaries"],
                clause_change_log=data["clause_change_log"],
                final_contract=data["final_contract"],
                document_incorporation_log=data["document_incorporation_log"],
            ))
            db.commit()

    def history(self, project_id: str) -> List[StoredMergeResult]:
        with self.session_factory() as db:
            q = (
                select(MergeResultRecord)
                .where(MergeResultRecord.project_id == project_id)
                .order_by(MergeResultRecord.version)
            )
            return [_to_stored(r) for r in db.execute(q).scalars().all()]
