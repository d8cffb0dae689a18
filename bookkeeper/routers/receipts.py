"""
Receipt and vendor endpoints.

GET    /api/receipts         list live receipts (optional ?status=)
GET    /api/receipts/{id}    one receipt with its line items
PATCH  /api/receipts/{id}    operator status override
DELETE /api/receipts/{id}    logical deletion
GET    /api/vendors          vendor listing
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from bookkeeper.deps import get_store
from bookkeeper.models import LineItemModel, ReceiptModel
from bookkeeper.schemas import (
    LineItemRecord,
    ReceiptList,
    ReceiptRecord,
    ReceiptStatus,
    StatusUpdateRequest,
    VendorRecord,
)
from bookkeeper.store import ReceiptStore

logger = logging.getLogger(__name__)
router = APIRouter()


def transform_receipt(
    row: ReceiptModel,
    vendor_name: Optional[str],
    items: list[LineItemModel],
) -> ReceiptRecord:
    return ReceiptRecord(
        id=row.id,
        vendor_id=row.vendor_id,
        vendor_name=vendor_name,
        receipt_date=row.receipt_date,
        subtotal=row.subtotal,
        tax_amount=row.tax_amount,
        service_charge=row.service_charge,
        discount=row.discount,
        total_amount=row.total_amount,
        payment_method=row.payment_method,
        cash_paid=row.cash_paid,
        card_paid=row.card_paid,
        change_amount=row.change_amount,
        status=row.status,
        confidence_score=row.confidence_score,
        source=row.source,
        validation_errors=row.validation_errors or [],
        created_at=row.created_at,
        items=[
            LineItemRecord(
                id=item.id,
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
                parent_item_id=item.parent_item_id,
                is_sub_item=bool(item.is_sub_item),
            )
            for item in items
        ],
    )


# ── GET /api/receipts ────────────────────────────────────────────────────
@router.get("/receipts", response_model=ReceiptList)
def list_receipts(
    status: Optional[ReceiptStatus] = None,
    store: ReceiptStore = Depends(get_store),
):
    rows = store.list_receipts(status.value if status else None)
    logger.info("Found %d receipts (status=%s)", len(rows), status.value if status else "any")
    receipts = [transform_receipt(r, name, store.line_items(r.id)) for r, name in rows]
    return ReceiptList(receipts=receipts, total=len(receipts))


# ── GET /api/receipts/{receipt_id} ───────────────────────────────────────
@router.get("/receipts/{receipt_id}", response_model=ReceiptRecord)
def get_receipt(receipt_id: str, store: ReceiptStore = Depends(get_store)):
    found = store.get_receipt(receipt_id)
    if not found:
        logger.warning("Receipt not found: %s", receipt_id)
        raise HTTPException(status_code=404, detail="Receipt not found")
    row, vendor_name = found
    return transform_receipt(row, vendor_name, store.line_items(receipt_id))


# ── PATCH /api/receipts/{receipt_id} ─────────────────────────────────────
@router.patch("/receipts/{receipt_id}", response_model=ReceiptRecord)
def update_status(
    receipt_id: str,
    req: StatusUpdateRequest,
    store: ReceiptStore = Depends(get_store),
):
    if not store.set_status(receipt_id, req.status):
        raise HTTPException(status_code=404, detail="Receipt not found")
    store.commit()
    logger.info("Receipt %s status -> %s", receipt_id, req.status.value)
    row, vendor_name = store.get_receipt(receipt_id)
    return transform_receipt(row, vendor_name, store.line_items(receipt_id))


# ── DELETE /api/receipts/{receipt_id} ────────────────────────────────────
@router.delete("/receipts/{receipt_id}")
def delete_receipt(receipt_id: str, store: ReceiptStore = Depends(get_store)):
    if not store.soft_delete(receipt_id):
        raise HTTPException(status_code=404, detail="Receipt not found")
    store.commit()
    logger.info("Deleted receipt %s", receipt_id)
    return {"message": "Receipt deleted successfully", "receipt_id": receipt_id}


# ── GET /api/vendors ─────────────────────────────────────────────────────
@router.get("/vendors", response_model=list[VendorRecord])
def list_vendors(store: ReceiptStore = Depends(get_store)):
    return [
        VendorRecord(
            id=v.id,
            name=v.name,
            business_number=v.business_number,
            address=v.address,
            phone=v.phone,
            category=v.category,
        )
        for v in store.list_vendors()
    ]
