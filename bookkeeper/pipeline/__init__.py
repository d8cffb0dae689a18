"""
Receipt ingestion pipeline.

Orchestrates: parse source shape → assemble canonical receipt → reconcile.
"""
import logging
from collections.abc import Mapping
from typing import Optional

from bookkeeper.config import settings
from bookkeeper.pipeline.assembler import assemble_receipt
from bookkeeper.pipeline.reconciliation import apply_reconciliation, reconcile
from bookkeeper.schemas import Receipt, ReceiptSource, Reconciliation

logger = logging.getLogger(__name__)


def process_record(
    raw: Mapping, auto_verify: Optional[bool] = None
) -> tuple[Receipt, Reconciliation]:
    """Run the assembly and reconciliation stages on one raw record.

    Ground-truth records are verified automatically when they reconcile;
    extraction output is only verified when ``AUTO_VERIFY_EXTRACTIONS``
    is set (or *auto_verify* says so), otherwise it stays pending.

    Returns ``(receipt, reconciliation)``.
    """
    receipt = assemble_receipt(raw)
    logger.debug("Assembled %s (%s, %d items)", receipt.id, receipt.source.value, len(receipt.items))

    if auto_verify is None:
        auto_verify = (
            receipt.source is ReceiptSource.GROUND_TRUTH or settings.AUTO_VERIFY_EXTRACTIONS
        )
    result = reconcile(receipt, auto_verify=auto_verify)
    if result.errors:
        logger.info("Receipt %s flagged: %s", receipt.id, "; ".join(result.errors))
    return apply_reconciliation(receipt, result), result
