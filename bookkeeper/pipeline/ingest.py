"""
Batch ingestion into the store.

A batch runs inside one transaction with a savepoint per record: a
record that fails is rolled back on its own and reported, the rest of
the batch is committed.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Optional

from bookkeeper.pipeline import process_record
from bookkeeper.schemas import IngestReport, ReceiptStatus
from bookkeeper.store import ReceiptStore

logger = logging.getLogger(__name__)


def _label(raw: Any, index: int) -> str:
    if isinstance(raw, Mapping):
        for key in ("id", "receiptId"):
            if raw.get(key):
                return str(raw[key])
        header = raw.get("receipt")
        if isinstance(header, Mapping) and header.get("id"):
            return str(header["id"])
    return f"record #{index}"


def ingest_batch(
    store: ReceiptStore,
    records: Iterable[Any],
    auto_verify: Optional[bool] = None,
) -> IngestReport:
    """Assemble, reconcile and persist *records*; commit once at the end."""
    report = IngestReport()
    # vendor name -> id, first occurrence in the batch wins
    vendor_ids: dict[str, str] = {}

    for index, raw in enumerate(records):
        report.total_records_processed += 1
        label = _label(raw, index)
        try:
            if not isinstance(raw, Mapping):
                raise TypeError(f"expected an object, got {type(raw).__name__}")
            with store.db.begin_nested():
                receipt, reconciliation = process_record(raw, auto_verify=auto_verify)
                label = receipt.id

                vendor_id = None
                new_vendor = False
                if receipt.vendor:
                    name = receipt.vendor.name
                    vendor_id = vendor_ids.get(name)
                    if vendor_id is None:
                        existing = store.find_vendor(name)
                        if existing:
                            vendor_id = existing.id
                        else:
                            vendor_id = store.add_vendor(receipt.vendor).id
                            new_vendor = True

                items = store.add_receipt(
                    receipt,
                    vendor_id=vendor_id,
                    validation_errors=reconciliation.errors,
                )
        except Exception as exc:  # any per-record failure is reported, never fatal
            logger.warning("Skipping %s: %s", label, exc)
            report.errors.append(f"Error processing {label}: {exc}")
            continue

        if receipt.vendor:
            vendor_ids[receipt.vendor.name] = vendor_id
        report.vendors_created += int(new_vendor)
        report.receipts_created += 1
        report.items_created += items
        report.receipt_ids.append(receipt.id)
        if receipt.status is ReceiptStatus.FLAGGED:
            report.flagged += 1

    store.commit()
    logger.info(
        "Ingested %d/%d records (%d vendors, %d items, %d flagged, %d errors)",
        report.receipts_created,
        report.total_records_processed,
        report.vendors_created,
        report.items_created,
        report.flagged,
        len(report.errors),
    )
    return report


def load_seed_file(path: str | Path) -> list[Any]:
    """Read a dataset dump: a JSON array, or one JSON object per line."""
    content = Path(path).read_text(encoding="utf-8").strip()
    if not content:
        return []
    if content.startswith("["):
        return json.loads(content)
    return [json.loads(line) for line in content.splitlines() if line.strip()]


def seed_from_file(store: ReceiptStore, path: str | Path) -> IngestReport:
    records = load_seed_file(path)
    logger.info("Seeding %d records from %s", len(records), path)
    return ingest_batch(store, records)
