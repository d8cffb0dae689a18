"""
Auditor orchestration: question in, answer out, both logged to the
session's chat history.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from bookkeeper.auditor.classifier import classify
from bookkeeper.auditor.formatter import (
    answer_with_model,
    extract_references,
    format_response,
    format_rows,
)
from bookkeeper.auditor.llm import OllamaClient
from bookkeeper.auditor.synthesizer import synthesize
from bookkeeper.schemas import AuditorReply, ChatMessage
from bookkeeper.store import ReceiptStore

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = (
    "I couldn't understand that question. Try asking about spending totals, "
    "flagged receipts, or payment methods."
)
SQL_UNAVAILABLE_ERROR = "Could not generate SQL - is Ollama running?"


class Auditor:
    def __init__(self, store: ReceiptStore, llm: Optional[OllamaClient] = None):
        self.store = store
        self.llm = llm

    def _log_exchange(
        self, session_id: str, question: str, answer: str, refs: list[str]
    ) -> None:
        self.store.append_message(session_id, "user", question)
        self.store.append_message(session_id, "assistant", answer, refs)
        self.store.commit()

    def ask(
        self,
        message: str,
        session_id: Optional[str] = None,
        use_llm: bool = False,
    ) -> AuditorReply:
        """Rule-based path: classify, synthesize, execute, format."""
        session_id = session_id or str(uuid.uuid4())
        classification = classify(message)
        plan = synthesize(classification)
        logger.info("Auditor intent=%s params=%s", plan.intent.value, plan.params)

        rows = self.store.execute(plan.sql, plan.params)

        def deterministic() -> str:
            return format_response(plan.intent, rows, classification.threshold)

        if use_llm and self.llm is not None:
            answer = answer_with_model(self.llm, message, plan.sql, rows, deterministic)
            text, used_llm = answer.text, answer.from_model
        else:
            text, used_llm = deterministic(), False

        refs = extract_references(rows)
        self._log_exchange(session_id, message, text, refs)
        return AuditorReply(
            session_id=session_id,
            message=text,
            intent=plan.intent,
            referenced_receipts=refs,
            result_count=len(rows),
            sql=plan.sql,
            used_llm=used_llm,
        )

    def ask_sql(self, message: str, session_id: Optional[str] = None) -> AuditorReply:
        """Model-written SQL path.

        An unusable model reply is answered with a fixed apology; a query
        that fails to run raises ``QueryExecutionError``.
        """
        session_id = session_id or str(uuid.uuid4())
        sql = self.llm.generate_sql(message) if self.llm is not None else None
        if sql is None:
            return AuditorReply(
                session_id=session_id,
                message=APOLOGY_MESSAGE,
                error=SQL_UNAVAILABLE_ERROR,
            )

        logger.info("Executing model SQL: %s", sql)
        rows = self.store.execute(sql)
        answer = answer_with_model(self.llm, message, sql, rows, lambda: format_rows(rows))

        refs = extract_references(rows)
        self._log_exchange(session_id, message, answer.text, refs)
        return AuditorReply(
            session_id=session_id,
            message=answer.text,
            referenced_receipts=refs,
            result_count=len(rows),
            sql=sql,
            used_llm=answer.from_model,
        )

    def history(self, session_id: str) -> list[ChatMessage]:
        return [
            ChatMessage(
                id=m.id,
                session_id=m.session_id,
                role=m.role,
                content=m.content,
                referenced_receipts=m.referenced_receipts,
                created_at=m.created_at,
            )
            for m in self.store.history(session_id)
        ]
