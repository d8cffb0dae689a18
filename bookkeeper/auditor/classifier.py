"""
Rule-based intent classifier for auditor questions.

Each pattern label is tested against the whole question; the resulting
set of hits is then resolved by an ordered rule list, first match wins.
The order settles overlapping trigger words, e.g. "how much did we
spend on flagged receipts" hits both ``total_spending`` and ``flagged``.
"""
from __future__ import annotations

import re
from typing import Callable, Optional

from bookkeeper.pipeline.amounts import normalize_amount
from bookkeeper.schemas import Classification, Intent

# (label, pattern); list order is only the order labels are reported in
INTENT_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("total_spending", re.compile(r"how much|total|spent|spending|sum", re.IGNORECASE)),
    ("high_value", re.compile(r"above|over|more than|greater|expensive|highest", re.IGNORECASE)),
    ("low_value", re.compile(r"below|under|less than|cheaper|lowest|cheapest", re.IGNORECASE)),
    ("flagged", re.compile(r"flag|error|mismatch|problem|issue|wrong", re.IGNORECASE)),
    ("payment_method", re.compile(r"cash|card|credit|e-money|payment", re.IGNORECASE)),
    ("count", re.compile(r"how many|count|number of", re.IGNORECASE)),
    ("tax", re.compile(r"tax|vat", re.IGNORECASE)),
    ("vendor", re.compile(r"vendor|merchant|store|shop", re.IGNORECASE)),
    ("category", re.compile(r"category|type|kind", re.IGNORECASE)),
    ("audit", re.compile(r"audit|duplicate|suspicious|alcohol|tobacco", re.IGNORECASE)),
    ("recent", re.compile(r"recent|latest|last", re.IGNORECASE)),
    ("date", re.compile(r"today|yesterday|week|month|date", re.IGNORECASE)),
]

_NUMBER = re.compile(r"\d[\d,]*")

Rule = Callable[[set[str], Optional[int]], bool]

# Priority cascade, evaluated top to bottom.
INTENT_RULES: list[tuple[Rule, Intent]] = [
    (lambda hits, _: {"count", "flagged"} <= hits, Intent.COUNT_FLAGGED),
    (lambda hits, _: "count" in hits, Intent.COUNT_ALL),
    (
        lambda hits, _: "total_spending" in hits and not hits & {"high_value", "low_value"},
        Intent.TOTAL_SPENDING,
    ),
    (lambda hits, _: "flagged" in hits, Intent.FLAGGED_RECEIPTS),
    (lambda hits, threshold: "high_value" in hits and threshold is not None, Intent.HIGH_VALUE),
    (lambda hits, threshold: "low_value" in hits and threshold is not None, Intent.LOW_VALUE),
    (lambda hits, _: "payment_method" in hits, Intent.PAYMENT_BREAKDOWN),
    (lambda hits, _: "tax" in hits, Intent.TAX_INFO),
    (lambda hits, _: "audit" in hits, Intent.AUDIT_FINDINGS),
]

DEFAULT_INTENT = Intent.LIST_RECEIPTS


def extract_threshold(text: str) -> Optional[int]:
    """First digit run (comma grouping allowed) in *text*, as an amount."""
    match = _NUMBER.search(text)
    return normalize_amount(match.group(0)) if match else None


def match_labels(text: str) -> list[str]:
    return [label for label, pattern in INTENT_PATTERNS if pattern.search(text)]


def _payment_filter(text: str) -> Optional[str]:
    lowered = text.lower()
    if "cash" in lowered:
        return "cash"
    if "card" in lowered:
        return "card"
    return None


def classify(text: str) -> Classification:
    """Map *text* to exactly one intent; unmatched text lists receipts."""
    matched = match_labels(text)
    hits = set(matched)
    threshold = extract_threshold(text)

    intent = next(
        (intent for rule, intent in INTENT_RULES if rule(hits, threshold)),
        DEFAULT_INTENT,
    )
    return Classification(
        intent=intent,
        threshold=threshold,
        payment_method=_payment_filter(text) if intent is Intent.PAYMENT_BREAKDOWN else None,
        matched=matched,
    )
