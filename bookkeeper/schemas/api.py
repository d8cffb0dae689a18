"""
API request / response envelopes for ingestion, receipts and analytics.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from bookkeeper.schemas.base import Amount, CamelModel, ReceiptStatus


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------

class IngestRequest(CamelModel):
    records: list[dict[str, Any]] = Field(..., description="Canonical or ground-truth records")


class IngestReport(CamelModel):
    vendors_created: int = 0
    receipts_created: int = 0
    items_created: int = 0
    flagged: int = 0
    total_records_processed: int = 0
    receipt_ids: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class SeedStatus(CamelModel):
    seeded: bool
    receipt_count: int = 0
    vendor_count: int = 0
    total_spent: Optional[Amount] = None
    total_tax: Optional[Amount] = None
    avg_transaction: Optional[float] = None


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------

class VendorRecord(CamelModel):
    id: str
    name: str
    business_number: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    category: Optional[str] = None


class LineItemRecord(CamelModel):
    id: str
    name: str
    quantity: Optional[int] = 1
    unit_price: Optional[Amount] = None
    total_price: Amount
    parent_item_id: Optional[str] = None
    is_sub_item: bool = False


class ReceiptRecord(CamelModel):
    id: str
    vendor_id: Optional[str] = None
    vendor_name: Optional[str] = None
    receipt_date: Optional[str] = None
    subtotal: Optional[Amount] = None
    tax_amount: Optional[Amount] = None
    service_charge: Optional[Amount] = None
    discount: Optional[Amount] = None
    total_amount: Amount
    payment_method: str
    cash_paid: Optional[Amount] = None
    card_paid: Optional[Amount] = None
    change_amount: Optional[Amount] = None
    status: str
    confidence_score: Optional[float] = None
    source: str
    validation_errors: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    items: list[LineItemRecord] = Field(default_factory=list)


class ReceiptList(CamelModel):
    receipts: list[ReceiptRecord]
    total: int


class StatusUpdateRequest(CamelModel):
    status: ReceiptStatus


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

class SpendingSummary(CamelModel):
    receipt_count: int = 0
    total_spent: Optional[Amount] = None
    total_tax: Optional[Amount] = None
    avg_transaction: Optional[float] = None
    avg_confidence: Optional[float] = None
    flagged_count: int = 0


class VendorTotal(CamelModel):
    vendor: Optional[str] = None
    receipt_count: int
    total_spent: Optional[Amount] = None


class PeriodTotal(CamelModel):
    period: Optional[str] = None
    receipt_count: int
    total_spent: Optional[Amount] = None
    total_tax: Optional[Amount] = None
    avg_transaction: Optional[float] = None


class AnalyticsResponse(CamelModel):
    summary: Optional[SpendingSummary] = None
    by_vendor: Optional[list[VendorTotal]] = None
    by_period: Optional[list[PeriodTotal]] = None
