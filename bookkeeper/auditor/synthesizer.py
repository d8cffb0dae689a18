"""
Query synthesizer: one parameterized SQL template per intent.

Thresholds and payment-method filters are bound as named parameters.
Listings are capped to keep answers short; aggregates return one row.
"""
from __future__ import annotations

from bookkeeper.schemas import Classification, Intent, QueryPlan

LIST_LIMIT = 15
RESULT_LIMIT = 20

_FROM = """
FROM receipts r
LEFT JOIN vendors v ON r.vendor_id = v.id
WHERE r.deleted_at IS NULL"""

TEMPLATES: dict[Intent, str] = {
    Intent.COUNT_FLAGGED: """
SELECT COUNT(*) AS count
FROM receipts r
WHERE r.deleted_at IS NULL AND r.status = 'flagged'""",
    Intent.COUNT_ALL: """
SELECT COUNT(*) AS count, SUM(r.total_amount) AS total
FROM receipts r
WHERE r.deleted_at IS NULL""",
    Intent.TOTAL_SPENDING: """
SELECT
  COUNT(*) AS receipt_count,
  SUM(r.total_amount) AS total_spent,
  SUM(r.tax_amount) AS total_tax,
  AVG(r.total_amount) AS avg_receipt
FROM receipts r
WHERE r.deleted_at IS NULL""",
    Intent.FLAGGED_RECEIPTS: f"""
SELECT r.id, r.total_amount, r.status, v.name AS vendor{_FROM}
  AND r.status = 'flagged'
ORDER BY r.total_amount DESC
LIMIT {RESULT_LIMIT}""",
    Intent.HIGH_VALUE: f"""
SELECT r.id, r.total_amount, r.payment_method, v.name AS vendor{_FROM}
  AND r.total_amount > :threshold
ORDER BY r.total_amount DESC
LIMIT {RESULT_LIMIT}""",
    Intent.LOW_VALUE: f"""
SELECT r.id, r.total_amount, r.payment_method, v.name AS vendor{_FROM}
  AND r.total_amount < :threshold
ORDER BY r.total_amount ASC
LIMIT {RESULT_LIMIT}""",
    Intent.PAYMENT_BREAKDOWN: """
SELECT r.payment_method, COUNT(*) AS count, SUM(r.total_amount) AS total
FROM receipts r
WHERE r.deleted_at IS NULL
GROUP BY r.payment_method
ORDER BY count DESC""",
    Intent.TAX_INFO: f"""
SELECT r.id, r.total_amount, r.tax_amount, v.name AS vendor{_FROM}
  AND r.tax_amount > 0
ORDER BY r.tax_amount DESC
LIMIT {RESULT_LIMIT}""",
    Intent.AUDIT_FINDINGS: f"""
SELECT r.id, r.total_amount, r.status, r.tax_amount, v.name AS vendor{_FROM}
  AND (r.status = 'flagged' OR r.tax_amount IS NULL OR r.tax_amount = 0)
ORDER BY r.total_amount DESC
LIMIT {RESULT_LIMIT}""",
    Intent.LIST_RECEIPTS: f"""
SELECT r.id, r.total_amount, r.payment_method, r.status, v.name AS vendor{_FROM}
ORDER BY r.total_amount DESC
LIMIT {LIST_LIMIT}""",
}

# payment_breakdown narrowed to one method
PAYMENT_FILTER_TEMPLATE = f"""
SELECT r.id, r.total_amount, r.payment_method, v.name AS vendor{_FROM}
  AND r.payment_method = :method
ORDER BY r.total_amount DESC
LIMIT {RESULT_LIMIT}"""

_THRESHOLD_INTENTS = {Intent.HIGH_VALUE, Intent.LOW_VALUE}


def synthesize(classification: Classification) -> QueryPlan:
    intent = classification.intent
    params: dict = {}

    if intent is Intent.PAYMENT_BREAKDOWN and classification.payment_method:
        sql = PAYMENT_FILTER_TEMPLATE
        params["method"] = classification.payment_method
    else:
        sql = TEMPLATES[intent]

    if intent in _THRESHOLD_INTENTS:
        if classification.threshold is None:
            raise ValueError(f"{intent.value} needs a threshold")
        params["threshold"] = classification.threshold

    return QueryPlan(intent=intent, sql=sql.strip(), params=params)
