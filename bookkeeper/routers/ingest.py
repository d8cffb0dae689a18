"""
Ingestion endpoints.

POST   /api/ingest   assemble, reconcile and store a batch of records
POST   /api/seed     load the configured ground-truth dataset file
GET    /api/seed     whether data is loaded, with headline totals
DELETE /api/seed     remove all stored data
"""
from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException

from bookkeeper.config import settings
from bookkeeper.deps import get_store
from bookkeeper.pipeline.ingest import ingest_batch, seed_from_file
from bookkeeper.schemas import IngestReport, IngestRequest, SeedStatus
from bookkeeper.store import ReceiptStore

logger = logging.getLogger(__name__)
router = APIRouter()


# ── POST /api/ingest ─────────────────────────────────────────────────────
@router.post("/ingest", response_model=IngestReport)
def ingest(req: IngestRequest, store: ReceiptStore = Depends(get_store)):
    if not req.records:
        raise HTTPException(status_code=400, detail="records must not be empty")

    logger.info("Ingest: %d records", len(req.records))
    return ingest_batch(store, req.records)


# ── POST /api/seed ───────────────────────────────────────────────────────
@router.post("/seed", response_model=IngestReport)
def seed(store: ReceiptStore = Depends(get_store)):
    path = Path(settings.SEED_FILE)
    if not path.is_file():
        logger.warning("Seed file not found: %s", path)
        raise HTTPException(status_code=404, detail=f"Seed file not found: {path}")
    return seed_from_file(store, path)


# ── GET /api/seed ────────────────────────────────────────────────────────
@router.get("/seed", response_model=SeedStatus)
def seed_status(store: ReceiptStore = Depends(get_store)):
    stats = store.overall_stats()
    return SeedStatus(
        seeded=stats["receipt_count"] > 0,
        receipt_count=stats["receipt_count"],
        vendor_count=len(store.list_vendors()),
        total_spent=stats["total_spent"],
        total_tax=stats["total_tax"],
        avg_transaction=stats["avg_transaction"],
    )


# ── DELETE /api/seed ─────────────────────────────────────────────────────
@router.delete("/seed")
def clear_data(store: ReceiptStore = Depends(get_store)):
    store.clear()
    store.commit()
    logger.info("Cleared all stored data")
    return {"success": True, "message": "All data cleared"}
