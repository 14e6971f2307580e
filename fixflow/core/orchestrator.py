# fixflow/core/orchestrator.py
"""
Troubleshooting orchestrator - the interface the HTTP layer talks to.

Wires the flow engine to its collaborators from settings (Redis-backed when
REDIS_URL is set, in-memory otherwise), picks a flow for new issues and
exposes read-only views for monitoring.
"""

import asyncio
import time
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from fixflow.core.config import settings
from fixflow.core.exceptions import ValidationError
from fixflow.core.flow_engine import FlowEngine, create_flow_engine, select_flow_for_issue
from fixflow.flows import FLOW_REGISTRY, validate_flow
from fixflow.models.flow_models import TroubleshootingOutcome
from fixflow.models.session_state import EngineResult, ResultStatus
from fixflow.prompts import engine_messages as messages
from fixflow.services.gpt_service import GPTService
from fixflow.services.issue_tracker import InMemoryIssueTracker, RedisIssueTracker
from fixflow.services.metric_sink import (
    REPORT_WINDOW_DAYS,
    InMemoryMetricSink,
    RedisMetricSink,
    deflection_trends,
    flow_performance,
    metrics_between,
    resolve_date_range,
    sessions_between,
    summarize_deflection,
)
from fixflow.services.redis_service import RedisService
from fixflow.services.session_store import InMemorySessionStore, RedisSessionStore

logger = logging.getLogger(__name__)


class TroubleshootingOrchestrator:
    """
    Main interface for troubleshooting conversations.

    Services are created on first use so the app can answer health checks
    before Redis or OpenAI are reachable.
    """

    def __init__(self, flow_engine: Optional[FlowEngine] = None):
        """
        Args:
            flow_engine: Pre-wired engine (tests); built from settings if omitted
        """
        self.flow_engine = flow_engine
        self.gpt_service: Optional[GPTService] = None
        self.redis_service: Optional[RedisService] = None
        self._services_initialized = flow_engine is not None
        self._init_lock = asyncio.Lock()

        if flow_engine is None:
            logger.info("Orchestrator created (services will be lazy-loaded)")

    async def _ensure_services_initialized(self) -> None:
        if self._services_initialized:
            return

        # Concurrent first requests must share one engine and one set of stores
        async with self._init_lock:
            if not self._services_initialized:
                await self._build_services()

    async def _build_services(self) -> None:
        logger.info("Initializing services (lazy loading)...")

        if settings.OPENAI_API_KEY:
            self.gpt_service = GPTService()
        else:
            logger.warning("No OPENAI_API_KEY - replies are matched by pattern only")

        redis_service = None
        if settings.REDIS_URL:
            redis_service = RedisService()
            await redis_service.initialize()
            if not redis_service.is_connected():
                logger.warning("Redis unavailable - falling back to in-memory stores")
                redis_service = None

        prefix = settings.SESSION_KEY_PREFIX
        if redis_service is not None:
            session_store = RedisSessionStore(redis_service, prefix=prefix)
            metric_sink = RedisMetricSink(redis_service, prefix=prefix)
            issue_tracker = RedisIssueTracker(redis_service, prefix=prefix)
        else:
            session_store = InMemorySessionStore()
            metric_sink = InMemoryMetricSink()
            issue_tracker = InMemoryIssueTracker()

        self.redis_service = redis_service
        self.flow_engine = create_flow_engine(
            session_store=session_store,
            metric_sink=metric_sink,
            issue_tracker=issue_tracker,
            classifier=self.gpt_service,
            classifier_timeout=settings.CLASSIFIER_TIMEOUT_SECONDS,
        )
        self._services_initialized = True
        logger.info("Services initialized successfully")

    async def start_troubleshooting(
        self,
        issue_id: Optional[str],
        category: Optional[str],
        description: str
    ) -> EngineResult:
        """
        Select a flow for the issue and start a session on it.

        Without an issue id a temp_<timestamp> id is used so the session can
        still be tracked.
        """
        await self._ensure_services_initialized()

        if not issue_id:
            issue_id = f"temp_{int(time.time() * 1000)}"

        flow_id = select_flow_for_issue(category, description or "", self.flow_engine.registry)
        if flow_id is None:
            logger.info(f"No troubleshooting flow for issue {issue_id} (category={category})")
            return EngineResult(
                response=messages.FLOW_NOT_FOUND,
                session_status=ResultStatus.ESCALATED,
                outcome=TroubleshootingOutcome.ESCALATED_COMPLEX,
            )

        return await self.flow_engine.start_session(issue_id, flow_id, description)

    async def continue_troubleshooting(
        self,
        session_id: str,
        message: str,
        media_urls: Optional[List[str]] = None
    ) -> EngineResult:
        """
        Raises:
            ValidationError: Neither text nor media was sent
        """
        await self._ensure_services_initialized()

        if not (message and message.strip()) and not media_urls:
            raise ValidationError("Message cannot be empty", field="message")

        return await self.flow_engine.process_response(session_id, message or "", media_urls)

    async def get_session_info(self, session_id: str) -> Optional[Dict[str, Any]]:
        await self._ensure_services_initialized()

        session = await self.flow_engine.session_store.load(session_id)
        if session is None:
            return None

        info = session.model_dump(mode="json")
        flow = self.flow_engine.registry.get(session.flow_id)
        info["flow_name"] = flow.name if flow else None
        info["total_steps_in_flow"] = len(flow.steps) if flow else 0
        return info

    async def get_deflection_summary(self) -> Dict[str, Any]:
        await self._ensure_services_initialized()
        return summarize_deflection(await self.flow_engine.metric_sink.list_metrics())

    async def get_flow_performance(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        days: int = REPORT_WINDOW_DAYS
    ) -> Dict[str, Any]:
        """Per-flow session outcomes for sessions started inside the window."""
        await self._ensure_services_initialized()
        start, end = resolve_date_range(start, end, days)

        sessions = sessions_between(await self.flow_engine.session_store.list_sessions(), start, end)
        metrics = metrics_between(await self.flow_engine.metric_sink.list_metrics(), start, end)

        return {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "flows": flow_performance(sessions, metrics),
        }

    async def get_deflection_trends(
        self,
        period: str = "daily",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        days: int = REPORT_WINDOW_DAYS
    ) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: Unknown period
        """
        await self._ensure_services_initialized()
        start, end = resolve_date_range(start, end, days)
        metrics = metrics_between(await self.flow_engine.metric_sink.list_metrics(), start, end)

        try:
            trends = deflection_trends(metrics, period)
        except ValueError as e:
            raise ValidationError(str(e), field="period", value=period) from e

        return {
            "period": period,
            "start": start.isoformat(),
            "end": end.isoformat(),
            "trends": trends,
        }

    def list_flows(self) -> List[Dict[str, Any]]:
        registry = self.flow_engine.registry if self.flow_engine else FLOW_REGISTRY

        return [
            {
                "id": flow.id,
                "name": flow.name,
                "description": flow.description,
                "category": flow.category.value,
                "safe_for_diy": flow.safe_for_diy,
                "estimated_time_minutes": flow.estimated_time_minutes,
                "step_count": len(flow.steps),
            }
            for flow in registry.values()
        ]

    async def health_check(self) -> Dict[str, Any]:
        """
        Check health of the orchestrator and its services.

        Returns:
            Dict with health status
        """
        health_status = {
            "orchestrator": "healthy",
            "flow_engine": "unknown",
            "services": {},
            "overall": "healthy"
        }

        try:
            if not self._services_initialized:
                health_status["flow_engine"] = "not_initialized"
                health_status["services"]["status"] = "lazy_loading_enabled"
                health_status["overall"] = "ready"
                return health_status

            problems = {
                flow_id: issues
                for flow_id, issues in ((f.id, validate_flow(f)) for f in self.flow_engine.registry.values())
                if issues
            }
            if problems:
                health_status["flow_engine"] = f"issues: {sum(len(v) for v in problems.values())}"
                health_status["overall"] = "warning"
            else:
                health_status["flow_engine"] = "healthy"

            if self.gpt_service:
                try:
                    gpt_status = await self.gpt_service.health_check()
                    health_status["services"]["gpt"] = "healthy" if gpt_status.get("healthy") else "unhealthy"
                except Exception as e:
                    health_status["services"]["gpt"] = f"error: {str(e)[:50]}"
                    health_status["overall"] = "warning"
            else:
                health_status["services"]["gpt"] = "disabled"

            if self.redis_service:
                try:
                    redis_status = await self.redis_service.health_check()
                    health_status["services"]["redis"] = "healthy" if redis_status.get("healthy") else "unhealthy"
                except Exception as e:
                    # Redis is optional, so don't mark overall as warning
                    health_status["services"]["redis"] = f"error: {str(e)[:50]}"
            else:
                health_status["services"]["redis"] = "in_memory"

            health_status["summary"] = {
                "flows": len(self.flow_engine.registry),
                "sessions_in_flight": len(self.flow_engine.locks),
            }

        except Exception as e:
            health_status["orchestrator"] = f"error: {str(e)}"
            health_status["overall"] = "unhealthy"

        return health_status

    async def shutdown(self) -> None:
        for service in (self.gpt_service, self.redis_service):
            if service is not None:
                await service.shutdown()


# Global orchestrator instance
_orchestrator: Optional[TroubleshootingOrchestrator] = None


def get_orchestrator() -> TroubleshootingOrchestrator:
    global _orchestrator

    if _orchestrator is None:
        logger.info("Creating new orchestrator instance")
        _orchestrator = TroubleshootingOrchestrator()

    return _orchestrator


def init_orchestrator(flow_engine: Optional[FlowEngine] = None) -> TroubleshootingOrchestrator:
    """Replace the global orchestrator, optionally around a pre-wired engine."""
    global _orchestrator
    _orchestrator = TroubleshootingOrchestrator(flow_engine=flow_engine)
    return _orchestrator
