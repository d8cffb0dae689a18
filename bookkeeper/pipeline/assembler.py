"""
Receipt assembler.

Turns one raw source record, either a ground-truth dataset record or the
output of an extraction step, into a canonical :class:`Receipt`.  The
assembler never rejects a record for missing data: absent fields stay
absent and only ``totalAmount`` falls back to 0.
"""
from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any, Optional

from bookkeeper.pipeline.amounts import coerce_amount, coerce_count, normalize_amount
from bookkeeper.schemas import (
    Amount,
    CordGroundTruth,
    CordMenuItem,
    ExtractionRecord,
    LineItem,
    PaymentMethod,
    Receipt,
    ReceiptHeader,
    ReceiptSource,
    ReceiptStatus,
    VendorInfo,
)

DEFAULT_ITEM_NAME = "Unknown Item"
DEFAULT_SUB_ITEM_NAME = "Sub-item"

_GROUND_TRUTH_KEYS = ("menu", "sub_total", "total", "store_info")


# ---------------------------------------------------------------------------
# Accessors
# ---------------------------------------------------------------------------

def _pick(data: Any, *keys: str) -> Any:
    """First non-empty value among *keys*, or ``None``."""
    if not isinstance(data, Mapping):
        return None
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def infer_payment_method(
    cash_paid: Optional[Amount], card_paid: Optional[Amount]
) -> PaymentMethod:
    if cash_paid and card_paid:
        return PaymentMethod.MIXED
    if cash_paid:
        return PaymentMethod.CASH
    if card_paid:
        return PaymentMethod.CARD
    return PaymentMethod.OTHER


def _explicit_payment_method(value: Any) -> Optional[PaymentMethod]:
    if value is None:
        return None
    try:
        return PaymentMethod(str(value).strip().lower())
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Ground-truth shape
# ---------------------------------------------------------------------------

def _menu_item(item: CordMenuItem, default_name: str) -> LineItem:
    return LineItem(
        name=_text(item.nm) or default_name,
        quantity=normalize_amount(item.cnt) or 1,
        unit_price=normalize_amount(item.unitprice),
        total_price=normalize_amount(item.price) or 0,
        sub_items=[_menu_item(sub, DEFAULT_SUB_ITEM_NAME) for sub in item.sub],
    )


def ground_truth_to_record(
    gt: CordGroundTruth, record_id: Optional[str] = None
) -> ExtractionRecord:
    """Convert a ground-truth record to the canonical shape.

    Every amount is a locale-formatted string here and is normalized
    exactly once.
    """
    sub_total = gt.sub_total
    total = gt.total
    store = gt.store_info

    cash_paid = normalize_amount(total.cashprice) if total else None
    card_paid = normalize_amount(total.creditcardprice) if total else None

    vendor = None
    if store and _text(store.name):
        vendor = VendorInfo(
            name=_text(store.name),
            address=_text(store.addr),
            phone=_text(store.tel),
            business_number=_text(store.biznum),
        )

    header = ReceiptHeader(
        subtotal=normalize_amount(sub_total.subtotal_price) if sub_total else None,
        tax_amount=normalize_amount(sub_total.tax_price) if sub_total else None,
        service_charge=normalize_amount(sub_total.service_price) if sub_total else None,
        discount=normalize_amount(sub_total.discount_price) if sub_total else None,
        total_amount=(normalize_amount(total.total_price) if total else None) or 0,
        payment_method=infer_payment_method(cash_paid, card_paid),
        cash_paid=cash_paid,
        card_paid=card_paid,
        change_amount=normalize_amount(total.changeprice) if total else None,
        item_type_count=normalize_amount(total.menutype_cnt) if total else None,
        total_item_count=normalize_amount(total.menuqty_cnt) if total else None,
    )

    return ExtractionRecord(
        vendor=vendor,
        receipt=header,
        items=[_menu_item(item, DEFAULT_ITEM_NAME) for item in gt.menu],
        source=ReceiptSource.GROUND_TRUTH,
        record_id=record_id,
    )


# ---------------------------------------------------------------------------
# Canonical / extraction shape
# ---------------------------------------------------------------------------

def _canonical_item(item: Mapping, default_name: str) -> LineItem:
    subs = _pick(item, "subItems", "sub_items") or []
    return LineItem(
        name=_text(_pick(item, "name", "nm")) or default_name,
        quantity=coerce_count(_pick(item, "quantity", "cnt")) or 1,
        unit_price=coerce_amount(_pick(item, "unitPrice", "unit_price")),
        total_price=coerce_amount(_pick(item, "totalPrice", "total_price", "price")) or 0,
        sub_items=[
            _canonical_item(sub, DEFAULT_SUB_ITEM_NAME)
            for sub in subs
            if isinstance(sub, Mapping)
        ],
    )


def _canonical_to_record(
    data: Mapping,
    record_id: Optional[str] = None,
    confidence: Optional[float] = None,
) -> ExtractionRecord:
    raw_vendor = data.get("vendor")
    raw_header = data.get("receipt") or {}

    vendor = None
    vendor_name = _text(_pick(raw_vendor, "name"))
    if vendor_name:
        vendor = VendorInfo(
            name=vendor_name,
            address=_text(_pick(raw_vendor, "address", "addr")),
            phone=_text(_pick(raw_vendor, "phone", "tel")),
            business_number=_text(
                _pick(raw_vendor, "businessNumber", "business_number", "biznum")
            ),
        )

    cash_paid = coerce_amount(_pick(raw_header, "cashPaid", "cash_paid"))
    card_paid = coerce_amount(_pick(raw_header, "cardPaid", "card_paid"))
    method = _explicit_payment_method(_pick(raw_header, "paymentMethod", "payment_method"))
    if method is None or method is PaymentMethod.OTHER:
        method = infer_payment_method(cash_paid, card_paid)

    header = ReceiptHeader(
        date=_text(_pick(raw_header, "date")),
        time=_text(_pick(raw_header, "time")),
        subtotal=coerce_amount(_pick(raw_header, "subtotal")),
        tax_amount=coerce_amount(_pick(raw_header, "taxAmount", "tax_amount")),
        service_charge=coerce_amount(_pick(raw_header, "serviceCharge", "service_charge")),
        discount=coerce_amount(_pick(raw_header, "discount")),
        total_amount=coerce_amount(_pick(raw_header, "totalAmount", "total_amount")) or 0,
        payment_method=method,
        cash_paid=cash_paid,
        card_paid=card_paid,
        change_amount=coerce_amount(_pick(raw_header, "changeAmount", "change_amount")),
        item_type_count=coerce_count(_pick(raw_header, "itemTypeCount", "item_type_count")),
        total_item_count=coerce_count(_pick(raw_header, "totalItemCount", "total_item_count")),
    )

    items = [
        _canonical_item(item, DEFAULT_ITEM_NAME)
        for item in data.get("items") or []
        if isinstance(item, Mapping)
    ]

    return ExtractionRecord(
        vendor=vendor,
        receipt=header,
        items=items,
        source=ReceiptSource.EXTRACTION,
        record_id=record_id or _text(_pick(raw_header, "id")),
        confidence=confidence,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def _record_id(raw: Any) -> Optional[str]:
    if not isinstance(raw, Mapping):
        return None
    explicit = _text(_pick(raw, "id", "receiptId", "receipt_id"))
    if explicit:
        return explicit
    image_id = _pick(raw.get("meta"), "image_id")
    return f"cord_{image_id}" if image_id is not None else None


def _clamp_confidence(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return min(max(float(value), 0.0), 1.0)


def parse_record(raw: Mapping) -> ExtractionRecord:
    """Recognise the input shape and convert it to an :class:`ExtractionRecord`.

    Accepted shapes:

    * ground truth: ``{menu, sub_total, total, store_info}``, optionally
      wrapped in ``gt_parse`` or a JSON string under ``ground_truth``;
    * canonical: ``{vendor, receipt, items}``, optionally wrapped in an
      extraction envelope ``{success, confidence, errors, data}``.
    """
    record_id = _record_id(raw)
    data: Any = raw

    if isinstance(data.get("ground_truth"), str):
        data = json.loads(data["ground_truth"])
        if not isinstance(data, Mapping):
            raise TypeError(f"ground_truth must decode to an object, got {type(data).__name__}")
        record_id = record_id or _record_id(data)
    if isinstance(data.get("gt_parse"), Mapping):
        data = data["gt_parse"]

    if any(key in data for key in _GROUND_TRUTH_KEYS):
        return ground_truth_to_record(CordGroundTruth.model_validate(data), record_id)

    confidence = None
    if isinstance(data.get("data"), Mapping):
        confidence = _clamp_confidence(data.get("confidence"))
        data = data["data"]
    return _canonical_to_record(data, record_id=record_id, confidence=confidence)


def estimate_confidence(record: ExtractionRecord) -> float:
    """Field-coverage heuristic for extraction output without a score."""
    if record.source is ReceiptSource.GROUND_TRUTH:
        return 1.0
    confidence = 0.5
    if record.vendor:
        confidence += 0.1
    if record.items:
        confidence += 0.2
    if record.receipt.total_amount > 0:
        confidence += 0.2
    return min(round(confidence, 2), 1.0)


def receipt_id_for(record: ExtractionRecord) -> str:
    """Content-derived identifier, stable across repeated assembly."""
    payload = record.model_dump_json(exclude={"record_id", "confidence"})
    return "rcpt_" + hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def build_receipt(record: ExtractionRecord, snapshot: str = "") -> Receipt:
    return Receipt(
        id=record.record_id or receipt_id_for(record),
        vendor=record.vendor,
        header=record.receipt,
        items=record.items,
        status=ReceiptStatus.PENDING,
        confidence=(
            record.confidence if record.confidence is not None else estimate_confidence(record)
        ),
        source=record.source,
        source_snapshot=snapshot,
    )


def snapshot_of(raw: Mapping) -> str:
    return json.dumps(raw, sort_keys=True, ensure_ascii=False, default=str)


def assemble_receipt(raw: Mapping) -> Receipt:
    """Parse *raw* and build the canonical receipt (status ``pending``)."""
    return build_receipt(parse_record(raw), snapshot=snapshot_of(raw))
