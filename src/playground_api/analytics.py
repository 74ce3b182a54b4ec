# src/playground_api/analytics.py
"""
In-memory usage analytics.

Records live in a bounded FIFO ring held on ``app.state``; nothing is
persisted and a restart starts from empty. Aggregates are recomputed on
every read, which stays cheap because the ring is capped.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

import aiohttp

from playground_api.config import AnalyticsEntry
from playground_api.settings import AnalyticsSink, PlaygroundSettings

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_z(dt: datetime) -> str:
    """ISO-8601 in UTC with a trailing Z, millisecond precision."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class AnalyticsRecord:
    """Outcome of one request"""
    model: str
    tokens: int
    response_time: float
    success: bool
    cost: float = 0.0
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def from_entry(cls, entry: AnalyticsEntry, now: Optional[datetime] = None) -> "AnalyticsRecord":
        timestamp = entry.timestamp or now or utcnow()
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            model=entry.model,
            tokens=entry.tokens,
            response_time=entry.response_time,
            success=entry.success,
            cost=entry.cost,
            timestamp=timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": isoformat_z(self.timestamp),
            "model": self.model,
            "tokens": self.tokens,
            "responseTime": self.response_time,
            "success": self.success,
            "cost": self.cost,
        }


class AnalyticsStore:
    """Process-wide analytics log.

    Starts empty. ``append`` evicts the oldest record once ``retention`` is
    exceeded. All access goes through one lock, so the store is also safe
    under a threaded server.
    """

    def __init__(self, retention: int = 1000, window_days: int = 30,
                 clock: Callable[[], datetime] = utcnow):
        self.retention = retention
        self.window_days = window_days
        self._clock = clock
        self._records: Deque[AnalyticsRecord] = deque(maxlen=retention)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def append(self, record: AnalyticsRecord):
        with self._lock:
            self._records.append(record)

    def records(self) -> List[AnalyticsRecord]:
        """Copy of the current log, oldest first."""
        with self._lock:
            return list(self._records)

    def reset(self):
        with self._lock:
            self._records.clear()

    def summarize(self) -> Dict[str, Any]:
        """Totals, per-model breakdown and a 7-day daily series over the retention window."""
        now = self._clock()
        since = now - timedelta(days=self.window_days)
        recent = [r for r in self.records() if r.timestamp >= since]

        by_model: Dict[str, Dict[str, Any]] = {}
        for r in recent:
            usage = by_model.setdefault(r.model, {
                "requests": 0,
                "tokens": 0,
                "cost": 0.0,
                "response_times": [],
                "success_count": 0,
            })
            usage["requests"] += 1
            usage["tokens"] += r.tokens
            usage["cost"] += r.cost
            usage["response_times"].append(r.response_time)
            if r.success:
                usage["success_count"] += 1

        usage_data = [
            {
                "model": model,
                "requests": data["requests"],
                "tokens": data["tokens"],
                "cost": data["cost"],
                "success": round(data["success_count"] / data["requests"] * 100, 1),
                "avgResponseTime": round(sum(data["response_times"]) / len(data["response_times"]), 2),
            }
            for model, data in by_model.items()
        ]

        today = now.astimezone(timezone.utc).date()
        daily_usage = []
        for days_back in range(6, -1, -1):
            day = today - timedelta(days=days_back)
            day_logs = [r for r in recent if r.timestamp.astimezone(timezone.utc).date() == day]
            daily_usage.append({
                "date": day.isoformat(),
                "requests": len(day_logs),
                "cost": sum(r.cost for r in day_logs),
            })

        total = len(recent)
        successes = sum(1 for r in recent if r.success)
        return {
            "totalRequests": total,
            "totalCost": sum(r.cost for r in recent),
            "avgSuccessRate": round(successes / total * 100, 1) if total else 0.0,
            "avgResponseTime": round(sum(r.response_time for r in recent) / total, 2) if total else 0.0,
            "usageData": usage_data,
            "dailyUsage": daily_usage,
            "lastUpdated": isoformat_z(now),
        }


class AnalyticsRecorder:
    """Delivers request outcomes to the configured sink.

    Delivery never raises; failures are logged and dropped.
    """

    def __init__(self, store: AnalyticsStore, settings: PlaygroundSettings):
        self.store = store
        self.settings = settings

    async def record(self, model: str, tokens: int, response_time: float,
                     success: bool, cost: float = 0.0):
        record = AnalyticsRecord(
            model=model or "unknown",
            tokens=tokens,
            response_time=response_time,
            success=success,
            cost=cost,
        )
        try:
            if self.settings.analytics_sink is AnalyticsSink.HTTP:
                await self._post(record)
            else:
                self.store.append(record)
        except Exception as e:
            logger.error(f"Failed to log analytics: {e}")

    async def _post(self, record: AnalyticsRecord):
        timeout = aiohttp.ClientTimeout(total=self.settings.health_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(self.settings.analytics_url, json=record.to_dict()) as resp:
                if resp.status >= 400:
                    raise RuntimeError(f"analytics endpoint returned {resp.status}")
