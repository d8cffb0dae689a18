"""
Schemas for the natural-language auditor: intents, query plans,
answers and the chat request/response envelopes.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from bookkeeper.schemas.base import CamelModel


class Intent(str, Enum):
    """Recognised question categories, one query template each."""
    TOTAL_SPENDING = "total_spending"
    COUNT_ALL = "count_all"
    COUNT_FLAGGED = "count_flagged"
    FLAGGED_RECEIPTS = "flagged_receipts"
    HIGH_VALUE = "high_value"
    LOW_VALUE = "low_value"
    PAYMENT_BREAKDOWN = "payment_breakdown"
    TAX_INFO = "tax_info"
    AUDIT_FINDINGS = "audit_findings"
    LIST_RECEIPTS = "list_receipts"


class Classification(CamelModel):
    intent: Intent
    threshold: Optional[int] = None
    payment_method: Optional[str] = Field(
        None, description="cash | card filter for payment_breakdown"
    )
    matched: list[str] = Field(default_factory=list, description="Pattern labels that fired")


class QueryPlan(CamelModel):
    intent: Intent
    sql: str
    params: dict[str, Any] = Field(default_factory=dict)


class AnswerSource(str, Enum):
    MODEL = "model"
    FALLBACK = "fallback"


class Answer(CamelModel):
    """Formatted answer, tagged with the path that produced it."""
    text: str
    source: AnswerSource = AnswerSource.FALLBACK

    @property
    def from_model(self) -> bool:
        return self.source is AnswerSource.MODEL


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

class ChatMessage(CamelModel):
    id: str
    session_id: str
    role: str = Field(..., description="user | assistant")
    content: str
    referenced_receipts: Optional[list[str]] = None
    created_at: Optional[datetime] = None


class AuditorRequest(CamelModel):
    message: str = ""
    session_id: Optional[str] = None
    use_llm: bool = Field(False, alias="useLLM")


class AuditorReply(CamelModel):
    session_id: str
    message: str
    intent: Optional[Intent] = None
    referenced_receipts: list[str] = Field(default_factory=list)
    result_count: int = 0
    sql: Optional[str] = None
    error: Optional[str] = None
    used_llm: bool = Field(False, alias="usedLLM")


class ChatHistory(CamelModel):
    session_id: str
    messages: list[ChatMessage] = Field(default_factory=list)
