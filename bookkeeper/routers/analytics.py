"""
Spending analytics.

GET /api/analytics?type=summary|by-vendor|by-period[&since=YYYY-MM]
"""
from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends

from bookkeeper.deps import get_store
from bookkeeper.schemas import AnalyticsResponse, PeriodTotal, SpendingSummary, VendorTotal
from bookkeeper.store import ReceiptStore

logger = logging.getLogger(__name__)
router = APIRouter()


# ── GET /api/analytics ───────────────────────────────────────────────────
@router.get("/analytics", response_model=AnalyticsResponse, response_model_exclude_none=True)
def analytics(
    type: Literal["summary", "by-vendor", "by-period"] = "summary",
    since: Optional[str] = None,
    limit: int = 10,
    store: ReceiptStore = Depends(get_store),
):
    logger.info("Analytics: type=%s", type)
    if type == "by-vendor":
        return AnalyticsResponse(
            by_vendor=[VendorTotal(**row) for row in store.totals_by_vendor(limit=limit)]
        )
    if type == "by-period":
        return AnalyticsResponse(
            by_period=[PeriodTotal(**row) for row in store.totals_by_period(since=since)]
        )
    return AnalyticsResponse(summary=SpendingSummary(**store.overall_stats()))
