# app.py
from __future__ import annotations
from datetime import date
from typing import Optional, List
import logging
import os
from fastapi import FastAPI, Depends, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from errors import ConfigurationError, NoUsableInput
from merge_service import ContractMergeService
from schemas import AmendmentSummary, ClauseChange, Document, MergeResult
from settings import settings

log = logging.getLogger("contractmerge.api")

app = FastAPI(title="ContractMerge API")

# CORS for local Vite (http://localhost:5173 by default)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Service dependency (overridden in tests) ---
_service: Optional[ContractMergeService] = None

def get_merge_service() -> ContractMergeService:
    global _service
    if _service is None:
        from db import SessionLocal, init_db
        from llm_factory import load_provider, load_service_config
        from result_store import SqlResultStore
        from text_source import DirectoryTextSource

        init_db()
        config = load_service_config()
        _service = ContractMergeService.build(
            service=load_provider(config),
            config=config,
            text_source=DirectoryTextSource(settings.DOCUMENTS_DIR),
            store=SqlResultStore(SessionLocal),
        )
    return _service

# --------- Schemas (Pydantic) ---------
class ClassifiedDocumentOut(BaseModel):
    filename: str
    role: str
    execution_date: Optional[date] = None
    effective_date: Optional[date] = None
    amends: Optional[str] = None
    confidence: float = 0.0
    extraction_error: Optional[str] = None

class ClassifyOut(BaseModel):
    project_id: str
    documents: List[ClassifiedDocumentOut]
    chronological_order: List[str]

class MergeOut(BaseModel):
    project_id: str
    source: str
    base_summary: str
    amendment_summaries: List[AmendmentSummary]
    clause_change_log: List[ClauseChange]
    final_contract: str
    document_incorporation_log: List[str]

class MergeDocumentsIn(BaseModel):
    documents: List[Document]

def _merge_out(project_id: str, result: MergeResult) -> MergeOut:
    return MergeOut(project_id=project_id, **result.model_dump())

# --------- Routes ---------
@app.get("/health")
def health():
    return {"status": "ok"}

@app.post("/projects/{project_id}/classify", response_model=ClassifyOut)
def classify_project(project_id: str, svc: ContractMergeService = Depends(get_merge_service)):
    try:
        batch = svc.classify_project(project_id)
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    docs = [ClassifiedDocumentOut(**d.model_dump(exclude={"text"})) for d in batch.documents]
    return ClassifyOut(project_id=project_id, documents=docs, chronological_order=batch.chronological_order)

@app.post("/projects/{project_id}/merge", response_model=MergeOut)
def merge_project(
    project_id: str,
    refresh: bool = Query(False, description="Ignore any stored result and re-run the pipeline"),
    svc: ContractMergeService = Depends(get_merge_service),
):
    try:
        result = svc.merge_project(project_id, refresh=refresh)
    except NoUsableInput as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _merge_out(project_id, result)

@app.post("/projects/{project_id}/merge/documents", response_model=MergeOut)
def merge_classified_documents(
    project_id: str,
    payload: MergeDocumentsIn,
    svc: ContractMergeService = Depends(get_merge_service),
):
    try:
        result = svc.merge_documents(project_id, payload.documents)
    except NoUsableInput as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _merge_out(project_id, result)

@app.get("/projects/{project_id}/merge", response_model=MergeOut)
def get_merge_result(project_id: str, svc: ContractMergeService = Depends(get_merge_service)):
    result = svc.load_result(project_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No merge result stored for project {project_id}")
    return _merge_out(project_id, result)

if __name__ == "__main__":
    import uvicorn
    from telemetry import go_quiet

    go_quiet()
    log.info("ContractMerge API: http://localhost:8000/docs")
    uvicorn.run(
        app,
        host=os.getenv("CM_HOST", "127.0.0.1"),
        port=int(os.getenv("CM_PORT", "8000")),
        log_level="info",
    )
