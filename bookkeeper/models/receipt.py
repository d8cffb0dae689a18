"""
SQLAlchemy models for vendors, receipts and line items.
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text

from bookkeeper.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VendorModel(Base):
    __tablename__ = "vendors"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False, unique=True, index=True)
    business_number = Column(String)
    address = Column(String)
    phone = Column(String)
    category = Column(String, default="general")
    created_at = Column(DateTime, default=_utcnow)


class ReceiptModel(Base):
    __tablename__ = "receipts"

    id = Column(String, primary_key=True)
    vendor_id = Column(String, ForeignKey("vendors.id"), index=True)

    receipt_date = Column(String, index=True)
    receipt_time = Column(String)

    subtotal = Column(Float)
    tax_amount = Column(Float)
    service_charge = Column(Float)
    discount = Column(Float)
    total_amount = Column(Float, nullable=False)

    payment_method = Column(String, nullable=False, default="other")
    cash_paid = Column(Float)
    card_paid = Column(Float)
    change_amount = Column(Float)
    item_type_count = Column(Integer)
    total_item_count = Column(Integer)

    status = Column(String, nullable=False, default="pending", index=True)
    confidence_score = Column(Float)
    source = Column(String, nullable=False, default="extraction")
    validation_errors = Column(JSON)
    extracted_json = Column(Text)

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
    deleted_at = Column(DateTime)  # logical deletion


class LineItemModel(Base):
    __tablename__ = "line_items"

    id = Column(String, primary_key=True)
    receipt_id = Column(String, ForeignKey("receipts.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    name = Column(String, nullable=False)
    quantity = Column(Integer, default=1)
    unit_price = Column(Float)
    total_price = Column(Float, nullable=False)

    parent_item_id = Column(String, ForeignKey("line_items.id"))
    is_sub_item = Column(Integer, default=0)
    category = Column(String)

    created_at = Column(DateTime, default=_utcnow)
