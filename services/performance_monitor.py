# services/performance_monitor.py
import json
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import redis

logger = logging.getLogger(__name__)

PERFORMANCE_THRESHOLD = 250  # milliseconds
VERY_SLOW_THRESHOLD = 1000  # milliseconds

MAX_METRICS_PER_HOUR = 1000
METRICS_KEY_PREFIX = "performance_metrics"


def classify_performance(execution_time_ms: float) -> str:
    if execution_time_ms > VERY_SLOW_THRESHOLD:
        return "very_slow"
    if execution_time_ms >= PERFORMANCE_THRESHOLD:
        return "slow"
    return "fast"


def _bucket_key(moment: datetime) -> str:
    return f"{METRICS_KEY_PREFIX}:{moment.strftime('%Y-%m-%d-%H')}"


@dataclass
class PerformanceRecord:
    operation: str
    execution_time_ms: float
    performance_level: str
    timestamp: str
    context: Dict[str, Any] = field(default_factory=dict)


class PerformanceMonitor:
    """Times search operations, logs them by performance level and keeps hourly buckets in Redis."""

    def __init__(self, client: Optional[redis.Redis] = None):
        self.redis = client

    def record(self, operation: str, execution_time_ms: float, context: Optional[Dict[str, Any]] = None) -> PerformanceRecord:
        record = PerformanceRecord(
            operation=operation,
            execution_time_ms=round(execution_time_ms, 2),
            performance_level=classify_performance(execution_time_ms),
            timestamp=datetime.now(timezone.utc).isoformat(),
            context=dict(context or {}),
        )

        message = f"{operation} took {record.execution_time_ms}ms ({record.performance_level}) context={record.context}"
        if record.performance_level == "very_slow":
            logger.error(f"Very slow search operation detected: {message}")
        elif record.performance_level == "slow":
            logger.warning(f"Slow search operation detected: {message}")
        else:
            logger.info(f"Search operation performance: {message}")

        self._store(record)
        return record

    @contextmanager
    def track(self, operation: str, **context):
        """
        Measure the wrapped block. The yielded dict can be filled in by the
        caller (result counts, cache hits) before the record is written.
        Exceptions are recorded with their message and re-raised.
        """
        start = time.perf_counter()
        try:
            yield context
        except Exception as e:
            context["error"] = str(e)
            raise
        finally:
            self.record(operation, (time.perf_counter() - start) * 1000, context)

    def _store(self, record: PerformanceRecord) -> None:
        if self.redis is None:
            return
        key = _bucket_key(datetime.now(timezone.utc))
        try:
            pipe = self.redis.pipeline()
            pipe.rpush(key, json.dumps(asdict(record), default=str))
            pipe.ltrim(key, -MAX_METRICS_PER_HOUR, -1)
            pipe.expire(key, 3600 * 25)
            pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"Could not store performance metric for {record.operation}: {e}")

    def load_records(self, hours: int = 1) -> List[Dict[str, Any]]:
        if self.redis is None:
            return []
        now = datetime.now(timezone.utc)
        records = []
        for offset in range(hours):
            key = _bucket_key(now - timedelta(hours=offset))
            records.extend(json.loads(raw) for raw in self.redis.lrange(key, 0, -1))
        return records

    def get_search_performance_stats(self, hours: int = 1) -> Dict[str, Any]:
        records = self.load_records(hours)
        total = len(records)

        distribution = {"fast": 0, "slow": 0, "very_slow": 0}
        for record in records:
            distribution[record["performance_level"]] = distribution.get(record["performance_level"], 0) + 1

        searches = [r for r in records if r["context"].get("cache") in ("hit", "miss")]
        hits = sum(1 for r in searches if r["context"]["cache"] == "hit")

        slowest = sorted(records, key=lambda r: r["execution_time_ms"], reverse=True)[:5]

        return {
            "time_range_hours": hours,
            "total_operations": total,
            "average_execution_time": round(sum(r["execution_time_ms"] for r in records) / total, 2) if total else 0.0,
            "slow_operations_count": distribution["slow"] + distribution["very_slow"],
            "cache_hit_ratio": round(hits / len(searches), 4) if searches else 0.0,
            "performance_distribution": distribution,
            "top_slow_operations": [
                {
                    "operation": r["operation"],
                    "execution_time_ms": r["execution_time_ms"],
                    "timestamp": r["timestamp"],
                }
                for r in slowest
            ],
        }
