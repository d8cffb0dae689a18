"""
Storage access service.

One explicitly constructed object per request/batch wraps a SQLAlchemy
session and is handed to the ingestion pipeline and the auditor, so both
can run against any engine (an in-memory SQLite database in tests).
Mutating methods only flush; the caller owns the transaction.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import case, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bookkeeper.models import ChatMessageModel, LineItemModel, ReceiptModel, VendorModel
from bookkeeper.schemas import LineItem, Receipt, ReceiptStatus, VendorInfo

logger = logging.getLogger(__name__)


class QueryExecutionError(Exception):
    """A raw query failed to execute; carries the driver message."""

    def __init__(self, message: str, sql: Optional[str] = None):
        super().__init__(message)
        self.sql = sql


def _short_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class ReceiptStore:
    def __init__(self, db: Session):
        self.db = db

    def commit(self) -> None:
        self.db.commit()

    # ── vendors ──────────────────────────────────────────────────────────
    def find_vendor(self, name: str) -> Optional[VendorModel]:
        return self.db.query(VendorModel).filter(VendorModel.name == name).first()

    def add_vendor(self, info: VendorInfo, category: str = "general") -> VendorModel:
        vendor = VendorModel(
            id=_short_id("vendor"),
            name=info.name,
            business_number=info.business_number,
            address=info.address,
            phone=info.phone,
            category=category,
        )
        self.db.add(vendor)
        self.db.flush()
        return vendor

    def list_vendors(self) -> list[VendorModel]:
        return self.db.query(VendorModel).order_by(VendorModel.name).all()

    # ── receipts ─────────────────────────────────────────────────────────
    def _add_item(
        self,
        receipt_id: str,
        item: LineItem,
        position: int,
        parent_id: Optional[str] = None,
    ) -> int:
        row = LineItemModel(
            id=_short_id("item"),
            receipt_id=receipt_id,
            position=position,
            name=item.name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
            parent_item_id=parent_id,
            is_sub_item=1 if parent_id else 0,
        )
        self.db.add(row)
        created = 1
        for sub_position, sub in enumerate(item.sub_items):
            created += self._add_item(receipt_id, sub, sub_position, parent_id=row.id)
        return created

    def add_receipt(
        self,
        receipt: Receipt,
        vendor_id: Optional[str] = None,
        validation_errors: Optional[list[str]] = None,
    ) -> int:
        """Persist *receipt* with its line items; return the item row count."""
        header = receipt.header
        self.db.add(
            ReceiptModel(
                id=receipt.id,
                vendor_id=vendor_id,
                receipt_date=header.date,
                receipt_time=header.time,
                subtotal=header.subtotal,
                tax_amount=header.tax_amount,
                service_charge=header.service_charge,
                discount=header.discount,
                total_amount=header.total_amount,
                payment_method=header.payment_method.value,
                cash_paid=header.cash_paid,
                card_paid=header.card_paid,
                change_amount=header.change_amount,
                item_type_count=header.item_type_count,
                total_item_count=header.total_item_count,
                status=receipt.status.value,
                confidence_score=receipt.confidence,
                source=receipt.source.value,
                validation_errors=validation_errors or [],
                extracted_json=receipt.source_snapshot,
            )
        )
        # parent rows must exist before sub-items reference them
        self.db.flush()
        created = 0
        for position, item in enumerate(receipt.items):
            created += self._add_item(receipt.id, item, position)
        self.db.flush()
        return created

    def _receipt_query(self, include_deleted: bool = False):
        query = self.db.query(ReceiptModel, VendorModel.name).outerjoin(
            VendorModel, ReceiptModel.vendor_id == VendorModel.id
        )
        if not include_deleted:
            query = query.filter(ReceiptModel.deleted_at.is_(None))
        return query

    def get_receipt(self, receipt_id: str) -> Optional[tuple[ReceiptModel, Optional[str]]]:
        """``(receipt, vendor_name)`` for a live receipt, or ``None``."""
        return self._receipt_query().filter(ReceiptModel.id == receipt_id).first()

    def list_receipts(
        self, status: Optional[str] = None
    ) -> list[tuple[ReceiptModel, Optional[str]]]:
        query = self._receipt_query()
        if status:
            query = query.filter(ReceiptModel.status == status)
        return query.order_by(ReceiptModel.created_at.desc(), ReceiptModel.id).all()

    def line_items(self, receipt_id: str) -> list[LineItemModel]:
        return (
            self.db.query(LineItemModel)
            .filter(LineItemModel.receipt_id == receipt_id)
            .order_by(LineItemModel.is_sub_item, LineItemModel.position)
            .all()
        )

    def set_status(self, receipt_id: str, status: ReceiptStatus) -> bool:
        found = self.get_receipt(receipt_id)
        if not found:
            return False
        receipt, _ = found
        receipt.status = status.value
        self.db.flush()
        return True

    def soft_delete(self, receipt_id: str) -> bool:
        found = self.get_receipt(receipt_id)
        if not found:
            return False
        receipt, _ = found
        receipt.deleted_at = datetime.now(timezone.utc)
        self.db.flush()
        return True

    def clear(self) -> None:
        """Remove every row, children first."""
        for model in (LineItemModel, ReceiptModel, VendorModel, ChatMessageModel):
            self.db.query(model).delete()
        self.db.flush()

    # ── raw queries ──────────────────────────────────────────────────────
    def execute(self, sql: str, params: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        """Run *sql* with bound *params* and return the rows as dicts."""
        try:
            result = self.db.execute(text(sql), params or {})
            return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Query failed: %s", exc)
            message = str(exc.orig) if getattr(exc, "orig", None) else str(exc)
            raise QueryExecutionError(message, sql=sql) from exc

    # ── analytics ────────────────────────────────────────────────────────
    def overall_stats(self) -> dict[str, Any]:
        row = (
            self.db.query(
                func.count(ReceiptModel.id).label("receipt_count"),
                func.sum(ReceiptModel.total_amount).label("total_spent"),
                func.sum(ReceiptModel.tax_amount).label("total_tax"),
                func.avg(ReceiptModel.total_amount).label("avg_transaction"),
                func.avg(ReceiptModel.confidence_score).label("avg_confidence"),
                func.sum(case((ReceiptModel.status == "flagged", 1), else_=0)).label("flagged_count"),
            )
            .filter(ReceiptModel.deleted_at.is_(None))
            .one()
        )
        stats = dict(row._mapping)
        stats["flagged_count"] = stats["flagged_count"] or 0
        return stats

    def totals_by_vendor(self, limit: int = 10) -> list[dict[str, Any]]:
        total_spent = func.sum(ReceiptModel.total_amount).label("total_spent")
        rows = (
            self.db.query(
                VendorModel.name.label("vendor"),
                func.count(ReceiptModel.id).label("receipt_count"),
                total_spent,
            )
            .select_from(ReceiptModel)
            .outerjoin(VendorModel, ReceiptModel.vendor_id == VendorModel.id)
            .filter(ReceiptModel.deleted_at.is_(None))
            .group_by(ReceiptModel.vendor_id, VendorModel.name)
            .order_by(total_spent.desc())
            .limit(limit)
            .all()
        )
        return [dict(r._mapping) for r in rows]

    def totals_by_period(self, since: Optional[str] = None) -> list[dict[str, Any]]:
        period = func.substr(ReceiptModel.receipt_date, 1, 7).label("period")
        query = self.db.query(
            period,
            func.count(ReceiptModel.id).label("receipt_count"),
            func.sum(ReceiptModel.total_amount).label("total_spent"),
            func.sum(ReceiptModel.tax_amount).label("total_tax"),
            func.avg(ReceiptModel.total_amount).label("avg_transaction"),
        ).filter(ReceiptModel.deleted_at.is_(None), ReceiptModel.receipt_date.isnot(None))
        if since:
            query = query.filter(ReceiptModel.receipt_date >= since)
        rows = query.group_by(period).order_by(period.desc()).all()
        return [dict(r._mapping) for r in rows]

    # ── chat log ─────────────────────────────────────────────────────────
    def append_message(
        self,
        session_id: str,
        role: str,
        content: str,
        referenced_receipts: Optional[list[str]] = None,
    ) -> ChatMessageModel:
        message = ChatMessageModel(
            id=_short_id("msg"),
            session_id=session_id,
            role=role,
            content=content,
            referenced_receipts=referenced_receipts,
        )
        self.db.add(message)
        self.db.flush()
        return message

    def history(self, session_id: str) -> list[ChatMessageModel]:
        return (
            self.db.query(ChatMessageModel)
            .filter(ChatMessageModel.session_id == session_id)
            .order_by(ChatMessageModel.seq)
            .all()
        )
