# src/playground_api/analytics_api.py
"""Usage analytics endpoints."""

import logging

from fastapi import APIRouter, Request

from playground_api.analytics import AnalyticsRecord, AnalyticsStore
from playground_api.config import AnalyticsEntry

logger = logging.getLogger(__name__)

analytics_router = APIRouter(
    prefix="/api/analytics",
    tags=["Analytics"],
)


def _get_store(request: Request) -> AnalyticsStore:
    return request.app.state.analytics_store


@analytics_router.get("",
    summary="Usage Summary",
    description="""
Aggregate the in-memory analytics log.

Totals, success rate and mean response time cover the last 30 days. `usageData`
breaks the same window down per model; `dailyUsage` always lists the last seven
UTC days, including days without traffic.
    """,
)
async def get_analytics(request: Request):
    return _get_store(request).summarize()


@analytics_router.post("",
    summary="Record Usage",
    description="Append one analytics record. The timestamp defaults to now; the oldest record is evicted once the log is full.",
)
async def post_analytics(entry: AnalyticsEntry, request: Request):
    store = _get_store(request)
    store.append(AnalyticsRecord.from_entry(entry))
    logger.debug(f"Analytics record appended for model '{entry.model}' ({len(store)} stored)")
    return {"success": True}
