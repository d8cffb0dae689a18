"""
Deterministic answer formatting for auditor query results.

Every intent has a fixed template; an empty result set always produces
``NO_RESULTS_MESSAGE``. These answers are the guaranteed path and never
depend on the model being reachable.
"""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Callable, Optional

from bookkeeper.config import settings
from bookkeeper.schemas import Answer, AnswerSource, Intent

NO_RESULTS_MESSAGE = "I couldn't find any receipts matching your query."
MAX_REFERENCES = 20
PREVIEW_ROWS = 10

Row = dict[str, Any]


def format_amount(value: Any) -> str:
    """Thousands-grouped amount; ``None`` renders as 0."""
    if value is None:
        return "0"
    if isinstance(value, float):
        if value.is_integer():
            return f"{int(value):,}"
        return f"{value:,.2f}".rstrip("0").rstrip(".")
    if isinstance(value, int):
        return f"{value:,}"
    return str(value)


def extract_references(rows: Sequence[Row], limit: int = MAX_REFERENCES) -> list[str]:
    """Receipt ids in result order, capped at *limit*."""
    refs: list[str] = []
    for row in rows:
        if row.get("id"):
            refs.append(str(row["id"]))
            if len(refs) >= limit:
                break
    return refs


# ── templates ────────────────────────────────────────────────────────────

def _total_spending(rows, threshold, cur):
    r = rows[0]
    avg = r.get("avg_receipt")
    return (
        "**Spending Summary**\n\n"
        f"- Total receipts: **{r.get('receipt_count') or 0}**\n"
        f"- Total spent: **{format_amount(r.get('total_spent'))}** {cur}\n"
        f"- Total tax: **{format_amount(r.get('total_tax'))}** {cur}\n"
        f"- Average receipt: **{format_amount(round(avg) if avg is not None else None)}** {cur}"
    )


def _count_all(rows, threshold, cur):
    r = rows[0]
    return f"You have **{r.get('count') or 0}** receipts totaling **{format_amount(r.get('total'))}** {cur}."


def _count_flagged(rows, threshold, cur):
    return f"There are **{rows[0].get('count') or 0}** flagged receipts that need review."


def _flagged(rows, threshold, cur):
    lines = [
        f"**Flagged Receipts** ({len(rows)} found)",
        "",
        "These receipts have mismatches between line items and totals:",
        "",
    ]
    lines += [f"- **{r['id']}**: {format_amount(r.get('total_amount'))} {cur}" for r in rows]
    return "\n".join(lines)


def _value_listing(title: str, direction: str):
    def render(rows, threshold, cur):
        lines = [
            f"**{title}** ({direction} {format_amount(threshold)} {cur})",
            "",
            f"Found {len(rows)} receipts:",
            "",
        ]
        for r in rows[:PREVIEW_ROWS]:
            method = r.get("payment_method") or "unknown"
            lines.append(f"- **{r['id']}**: {format_amount(r.get('total_amount'))} {cur} ({method})")
        if len(rows) > PREVIEW_ROWS:
            lines += ["", f"... and {len(rows) - PREVIEW_ROWS} more"]
        return "\n".join(lines)

    return render


def _payment(rows, threshold, cur):
    if rows[0].get("id"):
        method = (rows[0].get("payment_method") or "unknown").upper()
        total = sum(r.get("total_amount") or 0 for r in rows)
        lines = [
            f"**{method} Payments** ({len(rows)} found)",
            "",
            f"Total: **{format_amount(total)}** {cur}",
            "",
        ]
        lines += [
            f"- **{r['id']}**: {format_amount(r.get('total_amount'))} {cur}"
            for r in rows[:PREVIEW_ROWS]
        ]
        return "\n".join(lines)

    lines = ["**Payment Method Breakdown**", ""]
    for r in rows:
        method = r.get("payment_method") or "unknown"
        lines.append(f"- **{method}**: {r.get('count') or 0} receipts ({format_amount(r.get('total'))} {cur})")
    return "\n".join(lines)


def _tax(rows, threshold, cur):
    total_tax = sum(r.get("tax_amount") or 0 for r in rows)
    lines = [
        f"**Receipts with Tax/VAT** ({len(rows)} found)",
        "",
        f"Total tax collected: **{format_amount(total_tax)}** {cur}",
        "",
    ]
    lines += [
        f"- **{r['id']}**: Tax {format_amount(r.get('tax_amount'))} {cur} "
        f"(Receipt: {format_amount(r.get('total_amount'))} {cur})"
        for r in rows[:PREVIEW_ROWS]
    ]
    return "\n".join(lines)


def _audit(rows, threshold, cur):
    flagged = [r for r in rows if r.get("status") == "flagged"]
    no_tax = [r for r in rows if not r.get("tax_amount")]
    lines = [f"**Audit Findings** ({len(rows)} items)"]
    if flagged:
        lines += ["", f"**Flagged (mismatch):** {len(flagged)}"]
        lines += [f"  - {r['id']}: {format_amount(r.get('total_amount'))} {cur}" for r in flagged[:5]]
    if no_tax:
        lines += ["", f"**Missing VAT:** {len(no_tax)}"]
        lines += [f"  - {r['id']}: {format_amount(r.get('total_amount'))} {cur}" for r in no_tax[:5]]
    return "\n".join(lines)


def _listing(rows, threshold, cur):
    lines = [f"**Receipts** (showing {len(rows)})", ""]
    for r in rows:
        marker = "[flagged]" if r.get("status") == "flagged" else "[ok]"
        method = r.get("payment_method") or "unknown"
        lines.append(f"- {marker} **{r['id']}**: {format_amount(r.get('total_amount'))} {cur} ({method})")
    return "\n".join(lines)


RESPONSE_TEMPLATES: dict[Intent, Callable[[Sequence[Row], Optional[int], str], str]] = {
    Intent.TOTAL_SPENDING: _total_spending,
    Intent.COUNT_ALL: _count_all,
    Intent.COUNT_FLAGGED: _count_flagged,
    Intent.FLAGGED_RECEIPTS: _flagged,
    Intent.HIGH_VALUE: _value_listing("High Value Receipts", "above"),
    Intent.LOW_VALUE: _value_listing("Low Value Receipts", "below"),
    Intent.PAYMENT_BREAKDOWN: _payment,
    Intent.TAX_INFO: _tax,
    Intent.AUDIT_FINDINGS: _audit,
    Intent.LIST_RECEIPTS: _listing,
}


def format_response(
    intent: Intent,
    rows: Sequence[Row],
    threshold: Optional[int] = None,
    currency: Optional[str] = None,
) -> str:
    if not rows:
        return NO_RESULTS_MESSAGE
    return RESPONSE_TEMPLATES[intent](rows, threshold, currency or settings.CURRENCY_LABEL)


def format_rows(rows: Sequence[Row], currency: Optional[str] = None) -> str:
    """Generic formatter for rows of an arbitrary (model-written) query."""
    if not rows:
        return NO_RESULTS_MESSAGE
    cur = currency or settings.CURRENCY_LABEL
    first = rows[0]

    # single aggregate row
    if len(rows) == 1 and {"count", "total", "sum"} & first.keys():
        lines = ["**Results:**", ""]
        for key, value in first.items():
            shown = format_amount(value) if isinstance(value, (int, float)) else value
            lines.append(f"- **{key}**: {shown}")
        return "\n".join(lines)

    lines = [f"**Found {len(rows)} results:**", ""]
    for r in rows[:PREVIEW_ROWS]:
        if r.get("id"):
            amount = f" - {format_amount(r['total_amount'])} {cur}" if r.get("total_amount") else ""
            lines.append(f"- **{r['id']}**{amount}")
        else:
            lines.append("- " + ", ".join(f"{k}: {v}" for k, v in r.items()))
    if len(rows) > PREVIEW_ROWS:
        lines += ["", f"... and {len(rows) - PREVIEW_ROWS} more"]
    return "\n".join(lines)


def answer_with_model(
    llm,
    question: str,
    sql: str,
    rows: Sequence[Row],
    fallback: Callable[[], str],
) -> Answer:
    """Ask the model to phrase *rows*; use *fallback* if it cannot.

    Empty results never reach the model.
    """
    if not rows:
        return Answer(text=NO_RESULTS_MESSAGE, source=AnswerSource.FALLBACK)
    if llm is not None:
        text = llm.format_answer(question, sql, rows)
        if text:
            return Answer(text=text, source=AnswerSource.MODEL)
    return Answer(text=fallback(), source=AnswerSource.FALLBACK)
