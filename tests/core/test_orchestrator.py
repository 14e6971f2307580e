# tests/core/test_orchestrator.py
"""
Tests for TroubleshootingOrchestrator: flow selection, input validation,
read-only views and lazy service wiring.
"""

import asyncio

import pytest

from fixflow.core import orchestrator as orchestrator_module
from fixflow.core.config import settings
from fixflow.core.exceptions import ValidationError
from fixflow.core.orchestrator import TroubleshootingOrchestrator, get_orchestrator, init_orchestrator
from fixflow.models.session_state import ResultStatus
from fixflow.prompts import engine_messages as messages
from fixflow.services.session_store import InMemorySessionStore


@pytest.fixture
def orchestrator(engine):
    return TroubleshootingOrchestrator(flow_engine=engine)


class TestStartTroubleshooting:

    async def test_start_by_description(self, orchestrator):
        result = await orchestrator.start_troubleshooting("issue-1", "heating", "my boiler has no heat")

        assert result.session_status == ResultStatus.ACTIVE
        assert result.next_step_id == "check_power"
        assert result.session_id

    async def test_start_by_category(self, orchestrator):
        result = await orchestrator.start_troubleshooting("issue-2", "plumbing", "")

        assert result.next_step_id == "identify_location"

    async def test_missing_issue_id_gets_temp_id(self, orchestrator, issue_tracker):
        await orchestrator.start_troubleshooting(None, "heating", "no heat")

        [issue_id] = issue_tracker.issues
        assert issue_id.startswith("temp_")

    async def test_no_matching_flow(self, orchestrator, session_store):
        result = await orchestrator.start_troubleshooting("issue-3", "electrical", "flickering lights")

        assert result.response == messages.FLOW_NOT_FOUND
        assert result.session_status == ResultStatus.ESCALATED
        assert await session_store.list_sessions() == []


class TestContinueTroubleshooting:

    async def test_reply(self, orchestrator):
        start = await orchestrator.start_troubleshooting("issue-1", "heating", "no heat")

        result = await orchestrator.continue_troubleshooting(start.session_id, "yes")

        assert result.next_step_id == "check_pressure"

    async def test_empty_message_is_rejected(self, orchestrator):
        start = await orchestrator.start_troubleshooting("issue-1", "heating", "no heat")

        with pytest.raises(ValidationError):
            await orchestrator.continue_troubleshooting(start.session_id, "   ")

    async def test_media_without_text_is_accepted(self, orchestrator):
        start = await orchestrator.start_troubleshooting("issue-1", "heating", "no heat")

        result = await orchestrator.continue_troubleshooting(
            start.session_id, "", ["https://cdn.example.com/boiler.jpg"]
        )

        assert result.session_status == ResultStatus.ACTIVE


class TestViews:

    async def test_session_info(self, orchestrator):
        start = await orchestrator.start_troubleshooting("issue-1", "heating", "no heat")
        await orchestrator.continue_troubleshooting(start.session_id, "yes")

        info = await orchestrator.get_session_info(start.session_id)

        assert info["flow_name"] == "Boiler Not Heating"
        assert info["current_step_id"] == "check_pressure"
        assert info["total_steps_in_flow"] > 0
        assert info["status"] == "active"
        assert len(info["step_history"]) == 1

    async def test_session_info_missing(self, orchestrator):
        assert await orchestrator.get_session_info("missing") is None

    async def test_deflection_summary(self, orchestrator):
        start = await orchestrator.start_troubleshooting("issue-1", "heating", "no heat")
        await orchestrator.continue_troubleshooting(start.session_id, "yes")
        await orchestrator.continue_troubleshooting(start.session_id, "1.2 bar")
        await orchestrator.continue_troubleshooting(start.session_id, "the timer was off")

        summary = await orchestrator.get_deflection_summary()

        assert summary["overall"]["total_sessions"] == 1
        assert summary["overall"]["deflection_rate"] == 1.0
        assert summary["by_flow"]["boiler_no_heat"]["deflected"] == 1
        assert summary["by_category"]["heating"]["total_sessions"] == 1

    async def test_flow_performance(self, orchestrator):
        resolved = await orchestrator.start_troubleshooting("issue-1", "heating", "no heat")
        for message in ("yes", "1.2 bar", "the timer was off"):
            await orchestrator.continue_troubleshooting(resolved.session_id, message)
        await orchestrator.start_troubleshooting("issue-2", "heating", "no heat")
        await orchestrator.start_troubleshooting("issue-3", "plumbing", "dripping tap")

        report = await orchestrator.get_flow_performance()

        [boiler, tap] = report["flows"]
        assert boiler["flow_id"] == "boiler_no_heat"
        assert boiler["total_sessions"] == 2
        assert boiler["completed_sessions"] == 1
        assert boiler["deflection_rate"] == 0.5
        assert boiler["avg_steps_completed"] == 3.0
        assert tap["total_sessions"] == 1
        assert report["start"] < report["end"]

    async def test_deflection_trends(self, orchestrator):
        start = await orchestrator.start_troubleshooting("issue-1", "heating", "no heat")
        for message in ("yes", "1.2 bar", "the timer was off"):
            await orchestrator.continue_troubleshooting(start.session_id, message)

        report = await orchestrator.get_deflection_trends("monthly")

        assert report["period"] == "monthly"
        [bucket] = report["trends"]
        assert bucket["total_sessions"] == 1
        assert bucket["deflection_rate"] == 1.0

    async def test_deflection_trends_unknown_period(self, orchestrator):
        with pytest.raises(ValidationError):
            await orchestrator.get_deflection_trends("hourly")

    def test_list_flows(self, orchestrator):
        flows = orchestrator.list_flows()

        assert [f["id"] for f in flows] == ["boiler_no_heat", "dripping_tap", "blocked_drain"]
        assert flows[0]["category"] == "heating"
        assert all(f["step_count"] > 0 for f in flows)

    async def test_health_check(self, orchestrator):
        health = await orchestrator.health_check()

        assert health["overall"] == "healthy"
        assert health["flow_engine"] == "healthy"
        assert health["services"] == {"gpt": "disabled", "redis": "in_memory"}
        assert health["summary"] == {"flows": 3, "sessions_in_flight": 0}

    async def test_health_check_before_initialization(self):
        health = await TroubleshootingOrchestrator().health_check()

        assert health["overall"] == "ready"
        assert health["flow_engine"] == "not_initialized"


class TestLazyInitialization:

    async def test_without_credentials_uses_memory(self, monkeypatch):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
        monkeypatch.setattr(settings, "REDIS_URL", None)
        orchestrator = TroubleshootingOrchestrator()

        result = await orchestrator.start_troubleshooting("issue-1", "plumbing", "dripping tap")

        assert result.next_step_id == "identify_location"
        assert orchestrator.gpt_service is None
        assert orchestrator.redis_service is None
        assert isinstance(orchestrator.flow_engine.session_store, InMemorySessionStore)
        assert orchestrator.flow_engine.interpreter.classifier is None

    def test_global_instance(self, monkeypatch):
        monkeypatch.setattr(orchestrator_module, "_orchestrator", None)

        first = get_orchestrator()
        assert get_orchestrator() is first

        replaced = init_orchestrator()
        assert replaced is not first
        assert get_orchestrator() is replaced


class UnreachableRedis:
    """RedisService stand-in whose connect yields to the loop and then fails"""

    created = 0

    def __init__(self):
        UnreachableRedis.created += 1

    async def initialize(self):
        await asyncio.sleep(0.01)

    def is_connected(self):
        return False


class TestConcurrentInitialization:

    async def test_first_requests_share_one_engine(self, monkeypatch):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
        monkeypatch.setattr(settings, "REDIS_URL", "redis://127.0.0.1:1/0")
        monkeypatch.setattr(orchestrator_module, "RedisService", UnreachableRedis)
        monkeypatch.setattr(UnreachableRedis, "created", 0)
        orchestrator = TroubleshootingOrchestrator()

        first, second = await asyncio.gather(
            orchestrator.start_troubleshooting("issue-1", "heating", "no heat"),
            orchestrator.start_troubleshooting("issue-2", "heating", "no heat"),
        )

        assert UnreachableRedis.created == 1
        assert orchestrator.redis_service is None
        for started in (first, second):
            result = await orchestrator.continue_troubleshooting(started.session_id, "yes")
            assert result.session_status == ResultStatus.ACTIVE
            assert result.next_step_id == "check_pressure"
