"""
Reconciliation validator.

Checks that a receipt's line items add up to its declared subtotal
(or total, when no subtotal was printed) within a relative tolerance.
Failures are returned as data; nothing here raises.
"""
from __future__ import annotations

from typing import Optional

from bookkeeper.config import settings
from bookkeeper.schemas import Amount, LineItem, Receipt, ReceiptStatus, Reconciliation

TOTAL_REQUIRED = "Total amount is required"
ITEMS_REQUIRED = "At least one line item is required"


def items_sum(items: list[LineItem]) -> Amount:
    """Sum of top-level ``total_price`` values.

    Sub-items are left out: their price is already folded into the
    parent's price in the source data.
    """
    return sum(item.total_price for item in items)


def _fmt(value: Amount) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def reconcile(
    receipt: Receipt,
    auto_verify: bool = True,
    tolerance_ratio: Optional[float] = None,
) -> Reconciliation:
    """Validate *receipt* and decide its status.

    Any error flags the receipt.  A clean receipt becomes ``verified``
    when *auto_verify* is set, otherwise it stays ``pending`` for review.
    """
    ratio = settings.RECONCILIATION_TOLERANCE if tolerance_ratio is None else tolerance_ratio
    header = receipt.header
    errors: list[str] = []

    if header.total_amount <= 0:
        errors.append(TOTAL_REQUIRED)
    if not receipt.items:
        errors.append(ITEMS_REQUIRED)

    total = items_sum(receipt.items)
    expected = header.subtotal if header.subtotal is not None else header.total_amount
    tolerance = abs(expected) * ratio
    if abs(total - expected) > tolerance:
        errors.append(f"Items sum ({_fmt(total)}) doesn't match subtotal ({_fmt(expected)})")

    if errors:
        status = ReceiptStatus.FLAGGED
    elif auto_verify:
        status = ReceiptStatus.VERIFIED
    else:
        status = ReceiptStatus.PENDING

    return Reconciliation(
        status=status,
        errors=errors,
        items_sum=total,
        expected_subtotal=expected,
        tolerance=tolerance,
    )


def apply_reconciliation(receipt: Receipt, result: Reconciliation) -> Receipt:
    """Copy of *receipt* carrying the reconciled status."""
    return receipt.model_copy(update={"status": result.status})
