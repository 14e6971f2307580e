# tests/services/test_metric_sink.py
"""
Unit tests for deflection metric recording and aggregation.
"""
import pytest
from unittest.mock import AsyncMock, Mock

from datetime import datetime, timedelta, timezone

from fixflow.models.session_state import DeflectionMetric, SessionState, SessionStatus
from fixflow.services.metric_sink import (
    InMemoryMetricSink,
    RedisMetricSink,
    deflection_trends,
    flow_performance,
    metrics_between,
    resolve_date_range,
    sessions_between,
    summarize_deflection,
)


def metric(flow_id="boiler_no_heat", category="heating", deflected=True, steps=4, ms=60000):
    return DeflectionMetric(
        session_id=f"s-{flow_id}-{steps}-{ms}",
        flow_id=flow_id,
        issue_category=category,
        was_deflected=deflected,
        steps_completed=steps,
        total_steps_in_flow=20,
        time_to_resolution_ms=ms,
    )


class TestInMemoryMetricSink:

    async def test_record_and_list(self):
        sink = InMemoryMetricSink()

        recorded = await sink.record_deflection(
            issue_id="issue-1",
            session_id="s1",
            flow_id="dripping_tap",
            issue_category="plumbing",
            was_deflected=True,
            deflection_type="diy_resolved",
            steps_completed=3,
            total_steps_in_flow=10,
            time_to_resolution_ms=1200,
        )

        assert await sink.list_metrics() == [recorded]
        assert recorded.id
        assert recorded.created_at is not None


class TestRedisMetricSink:

    @pytest.fixture
    def redis_service(self):
        service = Mock()
        service.ensure_initialized = AsyncMock()
        service.rpush = AsyncMock(return_value=1)
        service.lrange = AsyncMock(return_value=[])
        return service

    async def test_record_appends_json(self, redis_service):
        sink = RedisMetricSink(redis_service, prefix="test")

        await sink.record_deflection(session_id="s1", issue_id=None, flow_id="blocked_drain",
                                     issue_category="plumbing", was_deflected=False)

        key, payload = redis_service.rpush.await_args.args
        assert key == "test:metrics:deflection"
        assert payload["flow_id"] == "blocked_drain"
        assert payload["was_deflected"] is False
        assert isinstance(payload["created_at"], str)

    async def test_list_skips_corrupt_items(self, redis_service):
        good = metric().model_dump(mode="json")
        redis_service.lrange.return_value = [good, {"unexpected": "shape"}]
        sink = RedisMetricSink(redis_service, prefix="test")

        metrics = await sink.list_metrics()

        assert len(metrics) == 1
        assert metrics[0].session_id == good["session_id"]
        redis_service.lrange.assert_awaited_once_with("test:metrics:deflection")


class TestSummarizeDeflection:

    def test_empty(self):
        summary = summarize_deflection([])

        assert summary["overall"] == {
            "total_sessions": 0,
            "deflected": 0,
            "deflection_rate": 0.0,
            "avg_steps_completed": 0.0,
            "avg_time_to_resolution_ms": 0,
        }
        assert summary["by_category"] == {}
        assert summary["by_flow"] == {}

    def test_buckets(self):
        summary = summarize_deflection([
            metric(deflected=True, steps=3, ms=30000),
            metric(deflected=False, steps=5, ms=90000),
            metric(flow_id="dripping_tap", category="plumbing", deflected=True, steps=2, ms=10000),
            metric(flow_id="blocked_drain", category=None, deflected=False, steps=1, ms=5000),
        ])

        overall = summary["overall"]
        assert overall["total_sessions"] == 4
        assert overall["deflected"] == 2
        assert overall["deflection_rate"] == 0.5
        assert overall["avg_steps_completed"] == 2.75
        assert overall["avg_time_to_resolution_ms"] == 33750

        assert summary["by_flow"]["boiler_no_heat"]["deflection_rate"] == 0.5
        assert summary["by_flow"]["boiler_no_heat"]["avg_steps_completed"] == 4.0
        assert summary["by_category"]["plumbing"]["total_sessions"] == 1
        assert summary["by_category"]["unknown"]["deflected"] == 0

    def test_rate_is_rounded(self):
        summary = summarize_deflection([metric(deflected=True), metric(deflected=False, steps=5),
                                        metric(deflected=False, steps=6)])

        assert summary["overall"]["deflection_rate"] == 0.3333


def at(day, hour=12):
    return datetime(2026, 3, day, hour, tzinfo=timezone.utc)


def session(flow_id, status, reason=None, started=None):
    return SessionState(
        flow_id=flow_id,
        status=status,
        outcome_reason=reason,
        started_at=started or at(10),
    )


class TestResolveDateRange:

    def test_explicit_range(self):
        start, end = resolve_date_range(datetime(2026, 3, 1), at(5))

        assert start == datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert end == at(5)

    def test_defaults_to_recent_days(self):
        start, end = resolve_date_range(end=at(5), days=7)

        assert end - start == timedelta(days=7)
        assert end > at(5)

    def test_window_filters(self):
        start, end = at(2), at(4)
        old = metric()
        old.created_at = at(1)
        recent = metric(steps=9)
        recent.created_at = at(3)

        assert metrics_between([old, recent], start, end) == [recent]
        assert sessions_between([session("a", SessionStatus.ACTIVE, started=at(3)),
                                 session("b", SessionStatus.ACTIVE, started=at(5))], start, end)[0].flow_id == "a"


class TestFlowPerformance:

    def test_counts_and_reasons(self):
        sessions = [
            session("boiler_no_heat", SessionStatus.COMPLETED),
            session("boiler_no_heat", SessionStatus.ESCALATED, "Low pressure"),
            session("boiler_no_heat", SessionStatus.ESCALATED, "Low pressure"),
            session("boiler_no_heat", SessionStatus.ESCALATED, "Frustrated"),
            session("boiler_no_heat", SessionStatus.ABANDONED),
            session("dripping_tap", SessionStatus.COMPLETED),
        ]
        metrics = [metric(steps=3, ms=30000), metric(deflected=False, steps=5, ms=90000)]

        [boiler, tap] = flow_performance(sessions, metrics)

        assert boiler["flow_id"] == "boiler_no_heat"
        assert boiler["total_sessions"] == 5
        assert boiler["completed_sessions"] == 1
        assert boiler["escalated_sessions"] == 3
        assert boiler["abandoned_sessions"] == 1
        assert boiler["deflection_rate"] == 0.2
        assert boiler["avg_steps_completed"] == 4.0
        assert boiler["avg_time_to_resolution_ms"] == 60000
        assert boiler["common_escalation_reasons"] == [
            {"reason": "Low pressure", "count": 2},
            {"reason": "Frustrated", "count": 1},
        ]
        assert tap["deflection_rate"] == 1.0
        assert tap["avg_steps_completed"] == 0.0

    def test_reasons_are_capped(self):
        sessions = [session("blocked_drain", SessionStatus.ESCALATED, f"reason {i}") for i in range(7)]

        [drain] = flow_performance(sessions, [])

        assert len(drain["common_escalation_reasons"]) == 5

    def test_empty(self):
        assert flow_performance([], [metric()]) == []


class TestDeflectionTrends:

    @pytest.fixture
    def metrics(self):
        items = []
        for day, deflected in ((2, True), (2, False), (3, True), (31, True)):
            item = metric(deflected=deflected, steps=day)
            item.created_at = at(day)
            items.append(item)
        return items

    def test_daily(self, metrics):
        trends = deflection_trends(metrics)

        assert [t["period"] for t in trends] == ["2026-03-02", "2026-03-03", "2026-03-31"]
        assert trends[0] == {"period": "2026-03-02", "total_sessions": 2, "deflected": 1, "deflection_rate": 0.5}

    def test_weekly_uses_iso_weeks(self, metrics):
        trends = deflection_trends(metrics, "weekly")

        assert [t["period"] for t in trends] == ["2026-W10", "2026-W14"]
        assert trends[0]["total_sessions"] == 3

    def test_monthly(self, metrics):
        [march] = deflection_trends(metrics, "monthly")

        assert march["period"] == "2026-03"
        assert march["deflection_rate"] == 0.75

    def test_unknown_period(self, metrics):
        with pytest.raises(ValueError):
            deflection_trends(metrics, "hourly")
