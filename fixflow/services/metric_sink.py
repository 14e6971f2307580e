# fixflow/services/metric_sink.py
"""
Deflection metrics: one write-only record per finished session, plus the
report aggregations built from them and from stored sessions.
"""
import logging
from abc import ABC, abstractmethod
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from fixflow.models.session_state import DeflectionMetric, SessionState, SessionStatus, utcnow
from fixflow.services.redis_service import RedisService

logger = logging.getLogger(__name__)


class MetricSink(ABC):
    """Append-only store of DeflectionMetric records"""

    async def record_deflection(
        self,
        *,
        issue_id: Optional[str],
        session_id: str,
        flow_id: str,
        issue_category: Optional[str],
        was_deflected: bool,
        deflection_type: Optional[str] = None,
        steps_completed: int = 0,
        total_steps_in_flow: int = 0,
        time_to_resolution_ms: int = 0
    ) -> DeflectionMetric:
        metric = DeflectionMetric(
            issue_id=issue_id,
            session_id=session_id,
            flow_id=flow_id,
            issue_category=issue_category,
            was_deflected=was_deflected,
            deflection_type=deflection_type,
            steps_completed=steps_completed,
            total_steps_in_flow=total_steps_in_flow,
            time_to_resolution_ms=time_to_resolution_ms,
        )
        await self._append(metric)
        logger.debug(f"Recorded deflection metric for session {session_id} (deflected={was_deflected})")
        return metric

    @abstractmethod
    async def _append(self, metric: DeflectionMetric) -> None:
        pass

    @abstractmethod
    async def list_metrics(self) -> List[DeflectionMetric]:
        """All metrics in recording order."""


class InMemoryMetricSink(MetricSink):

    def __init__(self):
        self._metrics: List[DeflectionMetric] = []

    async def _append(self, metric: DeflectionMetric) -> None:
        self._metrics.append(metric)

    async def list_metrics(self) -> List[DeflectionMetric]:
        return list(self._metrics)


class RedisMetricSink(MetricSink):
    """Metrics as a Redis list under {prefix}:metrics:deflection"""

    def __init__(self, redis_service: RedisService, prefix: str = "fixflow"):
        self.redis = redis_service
        self.key = f"{prefix}:metrics:deflection"

    async def _append(self, metric: DeflectionMetric) -> None:
        await self.redis.ensure_initialized()
        await self.redis.rpush(self.key, metric.model_dump(mode="json"))

    async def list_metrics(self) -> List[DeflectionMetric]:
        await self.redis.ensure_initialized()
        metrics = []
        for item in await self.redis.lrange(self.key):
            try:
                metrics.append(DeflectionMetric.model_validate(item))
            except PydanticValidationError:
                logger.warning("Skipping corrupt deflection metric")
        return metrics


def _bucket(metrics: List[DeflectionMetric]) -> Dict[str, Any]:
    total = len(metrics)
    deflected = sum(1 for m in metrics if m.was_deflected)
    return {
        "total_sessions": total,
        "deflected": deflected,
        "deflection_rate": round(deflected / total, 4) if total else 0.0,
        "avg_steps_completed": round(sum(m.steps_completed for m in metrics) / total, 2) if total else 0.0,
        "avg_time_to_resolution_ms": int(sum(m.time_to_resolution_ms for m in metrics) / total) if total else 0,
    }


def summarize_deflection(metrics: Iterable[DeflectionMetric]) -> Dict[str, Any]:
    """
    Aggregate deflection metrics.

    Returns:
        Dict with an "overall" bucket plus "by_category" and "by_flow"
        buckets, each holding totals, deflection rate, average steps
        completed and average time to resolution.
    """
    metrics = list(metrics)
    by_category: Dict[str, List[DeflectionMetric]] = defaultdict(list)
    by_flow: Dict[str, List[DeflectionMetric]] = defaultdict(list)

    for metric in metrics:
        by_category[metric.issue_category or "unknown"].append(metric)
        by_flow[metric.flow_id].append(metric)

    return {
        "overall": _bucket(metrics),
        "by_category": {name: _bucket(group) for name, group in by_category.items()},
        "by_flow": {name: _bucket(group) for name, group in by_flow.items()},
    }


# ===========================================
# REPORTING WINDOWS
# ===========================================

REPORT_WINDOW_DAYS = 30
TOP_ESCALATION_REASONS = 5

# strftime keys; weekly uses ISO years and weeks so a week never straddles two keys
TREND_PERIOD_FORMATS = {
    "daily": "%Y-%m-%d",
    "weekly": "%G-W%V",
    "monthly": "%Y-%m",
}


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def resolve_date_range(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    days: int = REPORT_WINDOW_DAYS
) -> Tuple[datetime, datetime]:
    """
    Window for a report.

    An explicit start/end pair wins; otherwise the last `days` days up to
    now. Naive datetimes are read as UTC.
    """
    if start is not None and end is not None:
        return _as_utc(start), _as_utc(end)

    end = utcnow()
    return end - timedelta(days=days), end


def metrics_between(metrics: Iterable[DeflectionMetric], start: datetime, end: datetime) -> List[DeflectionMetric]:
    return [m for m in metrics if start <= _as_utc(m.created_at) <= end]


def sessions_between(sessions: Iterable[SessionState], start: datetime, end: datetime) -> List[SessionState]:
    return [s for s in sessions if start <= _as_utc(s.started_at) <= end]


def flow_performance(
    sessions: Iterable[SessionState],
    metrics: Iterable[DeflectionMetric]
) -> List[Dict[str, Any]]:
    """
    Per-flow outcome counts, busiest flow first.

    Session counts come from the session store so abandoned and still-active
    sessions are visible; step and timing averages come from the metrics,
    which only exist for finished sessions. The deflection rate is completed
    over all sessions of the flow.
    """
    by_flow: Dict[str, List[SessionState]] = defaultdict(list)
    for session in sessions:
        by_flow[session.flow_id].append(session)

    metrics_by_flow: Dict[str, List[DeflectionMetric]] = defaultdict(list)
    for metric in metrics:
        metrics_by_flow[metric.flow_id].append(metric)

    report = []
    for flow_id, group in by_flow.items():
        total = len(group)
        statuses = Counter(s.status for s in group)
        reasons = Counter(
            s.outcome_reason for s in group
            if s.status == SessionStatus.ESCALATED and s.outcome_reason
        )
        timing = _bucket(metrics_by_flow.get(flow_id, []))

        report.append({
            "flow_id": flow_id,
            "total_sessions": total,
            "completed_sessions": statuses[SessionStatus.COMPLETED],
            "escalated_sessions": statuses[SessionStatus.ESCALATED],
            "abandoned_sessions": statuses[SessionStatus.ABANDONED],
            "deflection_rate": round(statuses[SessionStatus.COMPLETED] / total, 4),
            "avg_steps_completed": timing["avg_steps_completed"],
            "avg_time_to_resolution_ms": timing["avg_time_to_resolution_ms"],
            "common_escalation_reasons": [
                {"reason": reason, "count": count}
                for reason, count in reasons.most_common(TOP_ESCALATION_REASONS)
            ],
        })

    # sorted() is stable, so equally busy flows keep first-seen order
    return sorted(report, key=lambda row: row["total_sessions"], reverse=True)


def deflection_trends(metrics: Iterable[DeflectionMetric], period: str = "daily") -> List[Dict[str, Any]]:
    """
    Deflection rate per day, ISO week or month, oldest first.

    Raises:
        ValueError: period is not daily, weekly or monthly
    """
    if period not in TREND_PERIOD_FORMATS:
        raise ValueError(f"Unknown trend period '{period}'")
    key_format = TREND_PERIOD_FORMATS[period]

    buckets: Dict[str, List[DeflectionMetric]] = defaultdict(list)
    for metric in metrics:
        buckets[_as_utc(metric.created_at).strftime(key_format)].append(metric)

    trends = []
    for key in sorted(buckets):
        group = buckets[key]
        deflected = sum(1 for m in group if m.was_deflected)
        trends.append({
            "period": key,
            "total_sessions": len(group),
            "deflected": deflected,
            "deflection_rate": round(deflected / len(group), 4),
        })
    return trends
