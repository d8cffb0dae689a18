"""
Client for a local Ollama model: text-to-SQL generation and answer
phrasing. One attempt per call; any failure yields ``None`` so callers
fall back to the rule-based path.
"""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from typing import Any, Optional

import httpx

from bookkeeper.config import settings

logger = logging.getLogger(__name__)

SQL_SCHEMA = """
Tables:
1. receipts (id TEXT, vendor_id TEXT, total_amount REAL, tax_amount REAL, subtotal REAL,
   payment_method TEXT ['cash','card','mixed','other'], status TEXT ['verified','flagged','pending'],
   receipt_date TEXT, discount REAL, service_charge REAL, deleted_at DATETIME)

2. line_items (id TEXT, receipt_id TEXT, name TEXT, quantity INTEGER, unit_price REAL,
   total_price REAL, parent_item_id TEXT, is_sub_item INTEGER, category TEXT)

3. vendors (id TEXT, name TEXT, address TEXT, phone TEXT, category TEXT)

4. chat_history (id TEXT, session_id TEXT, role TEXT, content TEXT, referenced_receipts TEXT)

Notes:
- Amounts are in {currency}
- 'flagged' status means receipt has errors/mismatches
- Only rows with deleted_at IS NULL are live receipts
- Use LEFT JOIN for vendors: LEFT JOIN vendors v ON r.vendor_id = v.id
"""

SQL_PROMPT = """You are a SQL expert. Given this database schema and a user question, \
generate ONLY a valid SQLite query. Return ONLY the SQL, no explanation.

{schema}

User question: "{question}"

Rules:
- Use proper SQLite syntax
- Always alias tables (r for receipts, v for vendors, li for line_items)
- For aggregations use SUM, COUNT, AVG
- Limit results to 20 unless user asks for all
- Return ONLY the SQL query, nothing else

SQL:"""

ANSWER_PROMPT = """You are a helpful bookkeeping assistant. Format this SQL query result \
as a clear, concise answer.

User question: "{question}"
SQL executed: {sql}
Results (JSON): {rows}
Total rows: {count}

Rules:
- Be concise and professional
- Format numbers with commas (e.g., 1,234,567)
- Use {currency} for currency
- Reference specific receipt IDs when relevant
- Use markdown for formatting (bold, lists)

Answer:"""

PROMPT_ROWS = 10

_FENCE = re.compile(r"```(?:sql)?", re.IGNORECASE)


class LLMError(Exception):
    """Model endpoint unreachable or returned an unusable response."""


def clean_sql(text: Optional[str]) -> Optional[str]:
    """Strip code fences; keep the statement only if it is a SELECT."""
    if not text:
        return None
    sql = _FENCE.sub("", text).strip()
    if not sql.lower().startswith("select"):
        return None
    return sql


class OllamaClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        enabled: Optional[bool] = None,
        currency: Optional[str] = None,
    ):
        self.base_url = (base_url or settings.OLLAMA_URL).rstrip("/")
        self.model = model or settings.OLLAMA_MODEL
        self.timeout = timeout if timeout is not None else settings.LLM_TIMEOUT_SECONDS
        self.enabled = settings.LLM_ENABLED if enabled is None else enabled
        self.currency = currency or settings.CURRENCY_LABEL

    def _generate(self, prompt: str, temperature: float, max_tokens: int) -> str:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                r = client.post(f"{self.base_url}/api/generate", json=payload)
                r.raise_for_status()
                data = r.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LLMError(str(exc)) from exc
        return (data.get("response") or "").strip()

    def generate_sql(self, question: str) -> Optional[str]:
        if not self.enabled:
            return None
        prompt = SQL_PROMPT.format(
            schema=SQL_SCHEMA.format(currency=self.currency), question=question
        )
        try:
            raw = self._generate(prompt, temperature=0.1, max_tokens=200)
        except LLMError as exc:
            logger.warning("SQL generation failed: %s", exc)
            return None

        sql = clean_sql(raw)
        if sql is None:
            logger.warning("Rejected non-SELECT model output: %.80r", raw)
        return sql

    def format_answer(
        self, question: str, sql: str, rows: Sequence[dict[str, Any]]
    ) -> Optional[str]:
        if not self.enabled:
            return None
        prompt = ANSWER_PROMPT.format(
            question=question,
            sql=sql,
            rows=json.dumps(list(rows[:PROMPT_ROWS]), indent=2, default=str),
            count=len(rows),
            currency=self.currency,
        )
        try:
            return self._generate(prompt, temperature=0.3, max_tokens=300) or None
        except LLMError as exc:
            logger.warning("Answer formatting failed, using fallback: %s", exc)
            return None
