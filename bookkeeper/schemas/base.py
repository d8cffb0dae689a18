"""
Canonical financial schema for the bookkeeping pipeline.

Every ingestion path (ground-truth dataset records, extraction output)
ends up in these Pydantic v2 models.  JSON uses camelCase keys, Python
code uses snake_case attributes.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Canonical currency units: integers after ground-truth normalization,
# extraction output may still carry fractional values.
Amount = Union[int, float]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    MIXED = "mixed"
    OTHER = "other"


class ReceiptStatus(str, Enum):
    """Reconciliation state of a stored receipt."""
    PENDING = "pending"
    VERIFIED = "verified"
    FLAGGED = "flagged"


class ReceiptSource(str, Enum):
    GROUND_TRUTH = "ground_truth"
    EXTRACTION = "extraction"


# ---------------------------------------------------------------------------
# Canonical record
# ---------------------------------------------------------------------------

class VendorInfo(CamelModel):
    """Store metadata. Absent entirely when the source has no store name."""
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    business_number: Optional[str] = None


class LineItem(CamelModel):
    """A purchased item.

    ``total_price`` is the authoritative charge; ``unit_price * quantity``
    is informational and may disagree with it.
    """
    name: str
    quantity: int = 1
    unit_price: Optional[Amount] = None
    total_price: Amount
    sub_items: list[LineItem] = Field(default_factory=list)


LineItem.model_rebuild()


class ReceiptHeader(CamelModel):
    date: Optional[str] = None
    time: Optional[str] = None
    subtotal: Optional[Amount] = None
    tax_amount: Optional[Amount] = None
    service_charge: Optional[Amount] = None
    discount: Optional[Amount] = None
    total_amount: Amount = 0
    payment_method: PaymentMethod = PaymentMethod.OTHER
    cash_paid: Optional[Amount] = None
    card_paid: Optional[Amount] = None
    change_amount: Optional[Amount] = None
    item_type_count: Optional[int] = None
    total_item_count: Optional[int] = None


class ExtractionRecord(CamelModel):
    """Canonical ingestion record: ``{vendor, receipt, items}``."""
    vendor: Optional[VendorInfo] = None
    receipt: ReceiptHeader
    items: list[LineItem] = Field(default_factory=list)
    source: ReceiptSource = ReceiptSource.EXTRACTION
    record_id: Optional[str] = None
    confidence: Optional[float] = Field(None, ge=0, le=1)


# ---------------------------------------------------------------------------
# Receipt aggregate
# ---------------------------------------------------------------------------

class Receipt(CamelModel):
    id: str
    vendor: Optional[VendorInfo] = None
    header: ReceiptHeader
    items: list[LineItem] = Field(default_factory=list)
    status: ReceiptStatus = ReceiptStatus.PENDING
    confidence: float = Field(1.0, ge=0, le=1)
    source: ReceiptSource = ReceiptSource.EXTRACTION
    source_snapshot: str = Field("", description="Serialized original input, for audit")


class Reconciliation(CamelModel):
    """Outcome of the arithmetic consistency check."""
    status: ReceiptStatus
    errors: list[str] = Field(default_factory=list)
    items_sum: Amount = 0
    expected_subtotal: Amount = 0
    tolerance: float = 0.0

    @property
    def passed(self) -> bool:
        return not self.errors
