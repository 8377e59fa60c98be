# models_merge.py
from sqlalchemy import (
    String, Integer, Text, Enum, JSON, TIMESTAMP, func,
    PrimaryKeyConstraint
)
from sqlalchemy.orm import Mapped, mapped_column
from db import Base

MergeStatusEnum = Enum("complete", "superseded", name="merge_result_status")

class MergeResultRecord(Base):
    __tablename__ = "merged_contract_results"
    # Composite PK: (project_id, version); a refresh adds a row, never rewrites one
    project_id: Mapped[str] = mapped_column(String(128))
    version: Mapped[int] = mapped_column(Integer)
    __table_args__ = (
        PrimaryKeyConstraint("project_id", "version", name="merged_contract_results_pk"),
    )

    status: Mapped[str] = mapped_column(MergeStatusEnum, nullable=False, default="complete")
    source: Mapped[str] = mapped_column(String(16), nullable=False, default="generated")

    base_summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    amendment_summaries: Mapped[list] = mapped_column(JSON, nullable=False, default=list)       # list[AmendmentSummary]
    clause_change_log: Mapped[list] = mapped_column(JSON, nullable=False, default=list)         # list[ClauseChange]
    final_contract: Mapped[str] = mapped_column(Text, nullable=False, default="")
    document_incorporation_log: Mapped[list] = mapped_column(JSON, nullable=False, default=list)  # list[str]

    created_at: Mapped[str] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
