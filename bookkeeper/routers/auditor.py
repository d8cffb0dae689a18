"""
Auditor chat endpoints.

POST /api/auditor           rule-based question answering (optional model phrasing)
GET  /api/auditor/history   chat history for ?sessionId=
POST /api/auditor/sql       model-written SQL path
"""
from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from bookkeeper.auditor import Auditor
from bookkeeper.deps import get_auditor
from bookkeeper.schemas import AuditorReply, AuditorRequest, ChatHistory
from bookkeeper.store import QueryExecutionError

logger = logging.getLogger(__name__)
router = APIRouter()


def _require_message(req: AuditorRequest) -> str:
    message = req.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message is required")
    return message


# ── POST /api/auditor ────────────────────────────────────────────────────
@router.post("/auditor", response_model=AuditorReply)
def ask(req: AuditorRequest, auditor: Auditor = Depends(get_auditor)):
    message = _require_message(req)
    logger.info("Auditor question (session=%s): %s", req.session_id, message)
    return auditor.ask(message, session_id=req.session_id, use_llm=req.use_llm)


# ── GET /api/auditor/history ─────────────────────────────────────────────
@router.get("/auditor/history", response_model=ChatHistory)
def history(
    session_id: str = Query(..., alias="sessionId"),
    auditor: Auditor = Depends(get_auditor),
):
    return ChatHistory(session_id=session_id, messages=auditor.history(session_id))


# ── POST /api/auditor/sql ────────────────────────────────────────────────
@router.post("/auditor/sql", response_model=AuditorReply)
def ask_sql(req: AuditorRequest, auditor: Auditor = Depends(get_auditor)):
    message = _require_message(req)
    session_id = req.session_id or str(uuid.uuid4())
    try:
        return auditor.ask_sql(message, session_id=session_id)
    except QueryExecutionError as exc:
        logger.warning("Model SQL failed: %s", exc)
        return JSONResponse(
            status_code=400,
            content={
                "sessionId": session_id,
                "message": f"SQL error: {exc}",
                "sql": exc.sql,
                "error": "SQL execution failed",
            },
        )
