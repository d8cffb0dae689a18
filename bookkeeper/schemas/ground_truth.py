"""
Source ground-truth record shape (CORD ``gt_parse``).

Every value is kept as the raw, locale-formatted string found in the
dataset; conversion to canonical amounts happens in the assembler.
"""
from __future__ import annotations

from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, list):
        return " ".join(str(v) for v in value if v is not None)
    return str(value)


def _as_list(value: Any) -> list:
    # single-entry menus come through as a bare object
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return value


Text = Annotated[Optional[str], BeforeValidator(_as_text)]


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CordMenuItem(_Lenient):
    nm: Text = None
    num: Text = None
    unitprice: Text = None
    cnt: Text = None
    discountprice: Text = None
    price: Text = None
    itemsubtotal: Text = None
    sub: Annotated[list[CordMenuItem], BeforeValidator(_as_list)] = Field(default_factory=list)


CordMenuItem.model_rebuild()


class CordSubTotal(_Lenient):
    subtotal_price: Text = None
    discount_price: Text = None
    service_price: Text = None
    othersvc_price: Text = None
    tax_price: Text = None


class CordTotal(_Lenient):
    total_price: Text = None
    creditcardprice: Text = None
    emoneyprice: Text = None
    cashprice: Text = None
    changeprice: Text = None
    menutype_cnt: Text = None
    menuqty_cnt: Text = None


class CordStoreInfo(_Lenient):
    name: Text = None
    addr: Text = None
    tel: Text = None
    fax: Text = None
    biznum: Text = None


class CordGroundTruth(_Lenient):
    menu: Annotated[list[CordMenuItem], BeforeValidator(_as_list)] = Field(default_factory=list)
    sub_total: Optional[CordSubTotal] = None
    total: Optional[CordTotal] = None
    store_info: Optional[CordStoreInfo] = None
