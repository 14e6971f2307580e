# fixflow/core/flow_engine.py
"""
Flow engine: the session state machine.

A session is created at the first step of a flow and advanced one user
reply at a time. Each reply is interpreted, a transition action is picked
and the action is executed against the session store.

Session lifecycle:
    active -> active | completed | escalated
completed and escalated are terminal; paused and abandoned are only set by
whatever handles inactivity outside the engine.

Collaborators (session store, metric sink, issue tracker, interpreter) are
injected so the engine can be driven entirely in memory.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Mapping, Optional

from fixflow.core.exceptions import SessionError
from fixflow.core.response_interpreter import (
    ResponseInterpreter,
    extract_data_from_message,
    media_from_urls,
)
from fixflow.flows import FLOW_REGISTRY, find_flow_by_keywords, get_flow_by_id, get_flows_by_category
from fixflow.models.flow_models import (
    AlwaysCondition,
    AttemptCountExceedsCondition,
    EndFlowAction,
    EscalateAction,
    ExpressionCondition,
    Flow,
    GotoStepAction,
    MediaReceivedCondition,
    ResolveAction,
    ResponseMatchesCondition,
    RetryStepAction,
    Step,
    TroubleshootingOutcome,
)
from fixflow.models.session_state import (
    EngineResult,
    ResponseInterpretation,
    ResultStatus,
    Sentiment,
    SessionState,
    SessionStatus,
    StepHistoryEntry,
    utcnow,
)
from fixflow.prompts import engine_messages as messages
from fixflow.services.issue_tracker import IssueStatus, IssueTracker
from fixflow.services.metric_sink import MetricSink
from fixflow.services.session_store import SessionStore

logger = logging.getLogger(__name__)

# A response_matches condition only fires at or above this confidence
RESPONSE_MATCH_MIN_CONFIDENCE = 0.7
# Below this (or when the interpreter asks for it) the step is retried
CLARIFICATION_CONFIDENCE = 0.6
# The only expression the engine understands is a confidence check
EXPRESSION_CONFIDENCE = 0.8


class _KeepUnknown(dict):
    def __missing__(self, key):
        return "{" + key + "}"


def render_template(template: str, data: Mapping[str, Any]) -> str:
    """Fill {placeholders} from collected data; unknown ones stay as written."""
    try:
        return template.format_map(_KeepUnknown(data))
    except (ValueError, IndexError, KeyError, AttributeError):
        return template


class SessionLockRegistry:
    """
    One asyncio.Lock per session id.

    Locks are dropped again once nobody holds or waits for them, so the
    registry only grows with the number of sessions in flight.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, session_id: str):
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._users[session_id] = self._users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[session_id] -= 1
            if self._users[session_id] == 0:
                del self._users[session_id]
                self._locks.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._locks)


class FlowEngine:
    """
    Runs troubleshooting sessions against the flow registry.

    Every public entry point returns an EngineResult; configuration and
    persistence problems surface as polite escalations or retry prompts,
    never as exceptions.
    """

    def __init__(
        self,
        session_store: SessionStore,
        interpreter: ResponseInterpreter,
        metric_sink: MetricSink,
        issue_tracker: IssueTracker,
        registry: Optional[Mapping[str, Flow]] = None
    ):
        self.session_store = session_store
        self.interpreter = interpreter
        self.metric_sink = metric_sink
        self.issue_tracker = issue_tracker
        self.registry = FLOW_REGISTRY if registry is None else registry
        self.locks = SessionLockRegistry()

        logger.info(f"FlowEngine initialized with {len(self.registry)} flows")

    # ===========================================
    # SESSION START
    # ===========================================

    async def start_session(self, issue_id: Optional[str], flow_id: str, initial_message: str = "") -> EngineResult:
        logger.info(f"Starting session for issue {issue_id} with flow '{flow_id}'")
        if initial_message:
            logger.debug(f"Initial message: '{initial_message[:100]}'")

        flow = get_flow_by_id(flow_id, self.registry)
        if flow is None:
            logger.error(f"Flow not found: {flow_id}")
            return EngineResult(
                response=messages.FLOW_NOT_FOUND,
                session_status=ResultStatus.ESCALATED,
                outcome=TroubleshootingOutcome.ESCALATED_COMPLEX,
            )

        first_step = flow.first_step
        session = SessionState(
            issue_id=issue_id,
            flow_id=flow.id,
            current_step_id=first_step.id,
            max_attempts=flow.max_attempts,
        )

        try:
            session = await self.session_store.create(session)
        except Exception as e:
            logger.error(f"Failed to create session for issue {issue_id}: {e}", exc_info=True)
            return EngineResult(
                response=messages.START_ERROR,
                session_status=ResultStatus.ESCALATED,
                outcome=TroubleshootingOutcome.ESCALATED_COMPLEX,
            )

        logger.info(f"Session created: {session.id}")

        if issue_id:
            await self._set_issue_status(issue_id, IssueStatus.AI_HELPING, {"ai_resolution_attempted": True})

        response = messages.WELCOME_PREAMBLE.format(minutes=flow.estimated_time_minutes)
        if flow.safety_warning:
            response += messages.SAFETY_NOTE.format(warning=flow.safety_warning)
        response += render_template(first_step.template, session.collected_data)

        return EngineResult(
            response=response,
            session_status=ResultStatus.ACTIVE,
            next_step_id=first_step.id,
            session_id=session.id,
            media_url=first_step.media_url,
        )

    # ===========================================
    # REPLY PROCESSING
    # ===========================================

    async def process_response(
        self,
        session_id: str,
        user_message: str,
        media_urls: Optional[List[str]] = None
    ) -> EngineResult:
        """
        Advance a session by one user reply.

        Replies for the same session are serialized; the second one sees the
        state committed by the first.
        """
        async with self.locks.hold(session_id):
            return await self._process_locked(session_id, user_message, media_urls)

    async def _process_locked(
        self,
        session_id: str,
        user_message: str,
        media_urls: Optional[List[str]]
    ) -> EngineResult:
        logger.info(
            f"Processing reply for session {session_id}: '{user_message[:100]}' "
            f"(media: {bool(media_urls)})"
        )

        try:
            session = await self.session_store.load(session_id)
        except SessionError as e:
            logger.error(f"Failed to load session {session_id}: {e}")
            session = None

        if session is None:
            logger.error(f"Session not found: {session_id}")
            return EngineResult(
                response=messages.SESSION_NOT_FOUND,
                session_status=ResultStatus.ESCALATED,
                outcome=TroubleshootingOutcome.ABANDONED,
                session_id=session_id,
            )

        if not session.is_active:
            completed = session.status == SessionStatus.COMPLETED
            return EngineResult(
                response=messages.SESSION_ENDED,
                session_status=ResultStatus.RESOLVED if completed else ResultStatus.ESCALATED,
                outcome=TroubleshootingOutcome.RESOLVED_DIY if completed else TroubleshootingOutcome.ABANDONED,
                session_id=session.id,
            )

        flow = get_flow_by_id(session.flow_id, self.registry)
        if flow is None:
            logger.error(f"Session {session.id} references unknown flow '{session.flow_id}'")
            return EngineResult(
                response=messages.FLOW_LOAD_ERROR,
                session_status=ResultStatus.ESCALATED,
                outcome=TroubleshootingOutcome.ESCALATED_COMPLEX,
                session_id=session.id,
            )

        current_step = flow.get_step(session.current_step_id)
        if current_step is None:
            logger.error(f"Session {session.id} is on unknown step '{session.current_step_id}'")
            return EngineResult(
                response=messages.STEP_LOST,
                session_status=ResultStatus.ESCALATED,
                outcome=TroubleshootingOutcome.ESCALATED_COMPLEX,
                session_id=session.id,
            )

        interpretation = await self.interpreter.interpret_user_response(
            user_message, current_step, session.collected_data
        )

        if current_step.extract:
            extracted = extract_data_from_message(user_message, current_step.extract)
            interpretation.extracted_data = {**extracted, **interpretation.extracted_data}

        # Attachments from the transport win over anything the interpreter saw
        media = media_from_urls(media_urls)
        if media is not None:
            interpretation.media_received = media

        action = self.determine_transition(
            current_step,
            interpretation,
            session.attempt_count + 1,
            session.max_attempts
        )

        return await self.execute_transition(
            session, flow, current_step, action, user_message, interpretation
        )

    # ===========================================
    # TRANSITION SELECTION
    # ===========================================

    def determine_transition(
        self,
        step: Step,
        interpretation: ResponseInterpretation,
        current_attempt: int,
        max_attempts: int
    ):
        """
        Pick the action for this reply.

        Declared transitions first, in order. Then the engine's own safety
        nets: attempt budget, frustration, low confidence. Finally the
        step's fallback.
        """
        logger.debug(
            f"Determining transition on '{step.id}': matched={interpretation.matched_response_id} "
            f"confidence={interpretation.confidence} attempt={current_attempt}/{max_attempts}"
        )

        for transition in step.transitions:
            if self.evaluate_condition(transition.condition, interpretation, current_attempt):
                logger.debug(f"Transition matched: {transition.action.type}")
                return transition.action

        if current_attempt >= max_attempts:
            logger.info(f"Attempt budget exhausted on '{step.id}', using fallback")
            return step.fallback_transition.action

        if interpretation.sentiment == Sentiment.FRUSTRATED and current_attempt > 1:
            return EscalateAction(reason=messages.FRUSTRATED_REASON, collect_data=[])

        if interpretation.needs_clarification or interpretation.confidence < CLARIFICATION_CONFIDENCE:
            return RetryStepAction(message=messages.LOW_CONFIDENCE_RETRY)

        return step.fallback_transition.action

    def evaluate_condition(self, condition, interpretation: ResponseInterpretation, current_attempt: int) -> bool:
        if isinstance(condition, AlwaysCondition):
            return True

        if isinstance(condition, ResponseMatchesCondition):
            return (
                interpretation.matched_response_id == condition.response_id
                and interpretation.confidence >= RESPONSE_MATCH_MIN_CONFIDENCE
            )

        if isinstance(condition, AttemptCountExceedsCondition):
            return current_attempt > condition.count

        if isinstance(condition, MediaReceivedCondition):
            media = interpretation.media_received
            return media is not None and media.type == condition.media_type

        if isinstance(condition, ExpressionCondition):
            # Not an expression language: only a confidence check is recognised
            if "confidence" in condition.expr:
                return interpretation.confidence >= EXPRESSION_CONFIDENCE
            return False

        return False

    # ===========================================
    # TRANSITION EXECUTION
    # ===========================================

    async def execute_transition(
        self,
        session: SessionState,
        flow: Flow,
        current_step: Step,
        action,
        user_message: str,
        interpretation: ResponseInterpretation
    ) -> EngineResult:
        logger.info(f"Session {session.id}: executing {getattr(action, 'type', type(action).__name__)} on '{current_step.id}'")

        entry = StepHistoryEntry(
            step_id=current_step.id,
            user_response=user_message,
            interpreted_as=interpretation.matched_response_id or "unrecognized",
            action_taken=getattr(action, "type", "unknown"),
        )
        history = [*session.step_history, entry]
        collected = {**session.collected_data, **interpretation.extracted_data}

        if isinstance(action, GotoStepAction):
            next_step = flow.get_step(action.step_id)
            if next_step is None:
                logger.error(f"Flow '{flow.id}' has no step '{action.step_id}' (from '{current_step.id}')")
                return await self._escalate(session, messages.STEP_NOT_FOUND_REASON, [], history, collected)

            saved = await self._save(session, {
                "current_step_id": next_step.id,
                "step_history": history,
                "collected_data": collected,
                "attempt_count": 0,
            })
            if saved is None:
                return self._save_failed(session)

            return EngineResult(
                response=render_template(next_step.template, collected),
                session_status=ResultStatus.ACTIVE,
                next_step_id=next_step.id,
                session_id=session.id,
                media_url=next_step.media_url,
            )

        if isinstance(action, ResolveAction):
            completed = await self.complete_session(
                session, TroubleshootingOutcome.RESOLVED_DIY, action.resolution, history, collected
            )
            if completed is None:
                return self._save_failed(session)

            return EngineResult(
                response=messages.RESOLVED.format(resolution=action.resolution),
                session_status=ResultStatus.RESOLVED,
                outcome=TroubleshootingOutcome.RESOLVED_DIY,
                session_id=session.id,
            )

        if isinstance(action, EscalateAction):
            return await self._escalate(session, action.reason, action.collect_data, history, collected)

        if isinstance(action, RetryStepAction):
            saved = await self._save(session, {
                "step_history": history,
                "collected_data": collected,
                "attempt_count": session.attempt_count + 1,
            })
            if saved is None:
                return self._save_failed(session)

            response = action.message or (
                messages.RETRY_PREFIX + render_template(current_step.template, collected)
            )
            return EngineResult(
                response=response,
                session_status=ResultStatus.ACTIVE,
                next_step_id=current_step.id,
                session_id=session.id,
            )

        if isinstance(action, EndFlowAction):
            completed = await self.complete_session(
                session, action.outcome, messages.FLOW_ENDED_REASON, history, collected
            )
            if completed is None:
                return self._save_failed(session)

            resolved = action.outcome == TroubleshootingOutcome.RESOLVED_DIY
            return EngineResult(
                response=messages.END_FLOW_MESSAGES[action.outcome.value],
                session_status=ResultStatus.RESOLVED if resolved else ResultStatus.ESCALATED,
                outcome=action.outcome,
                session_id=session.id,
            )

        logger.error(f"Unknown action type on step '{current_step.id}': {action!r}")
        return await self._escalate(session, messages.UNKNOWN_ACTION_REASON, [], history, collected)

    async def _escalate(
        self,
        session: SessionState,
        reason: str,
        collect_data: List[str],
        history: List[StepHistoryEntry],
        collected: Dict[str, Any]
    ) -> EngineResult:
        logger.info(f"Escalating session {session.id}: {reason} (collect: {collect_data})")

        completed = await self.complete_session(
            session, TroubleshootingOutcome.ESCALATED_COMPLEX, reason, history, collected
        )
        if completed is None:
            return self._save_failed(session)

        if session.issue_id:
            await self._set_issue_status(
                session.issue_id, IssueStatus.AWAITING_DETAILS, {"ai_resolution_accepted": False}
            )

        response = messages.ESCALATION_INTRO
        if collect_data:
            response += messages.ESCALATION_COLLECT_INTRO
            for index, item in enumerate(collect_data, start=1):
                response += messages.ESCALATION_COLLECT_ITEM.format(index=index, item=item)
        else:
            response += messages.ESCALATION_NO_DATA

        return EngineResult(
            response=response,
            session_status=ResultStatus.ESCALATED,
            outcome=TroubleshootingOutcome.ESCALATED_COMPLEX,
            data_to_collect=list(collect_data),
            session_id=session.id,
        )

    # ===========================================
    # COMPLETION AND PERSISTENCE
    # ===========================================

    async def complete_session(
        self,
        session: SessionState,
        outcome: TroubleshootingOutcome,
        reason: str,
        step_history: Optional[List[StepHistoryEntry]] = None,
        collected_data: Optional[Dict[str, Any]] = None
    ) -> Optional[SessionState]:
        """
        Close a session with the given outcome and record its metric.

        Returns the stored session, or None when the store rejected the write.
        Metric and issue tracker failures are logged only.
        """
        now = utcnow()
        fields: Dict[str, Any] = {
            "status": SessionStatus.COMPLETED if outcome == TroubleshootingOutcome.RESOLVED_DIY else SessionStatus.ESCALATED,
            "outcome": outcome,
            "outcome_reason": reason,
            "completed_at": now,
        }
        if step_history is not None:
            fields["step_history"] = step_history
        if collected_data is not None:
            fields["collected_data"] = collected_data

        completed = await self._save(session, fields)
        if completed is None:
            return None

        flow = get_flow_by_id(completed.flow_id, self.registry)
        was_deflected = outcome == TroubleshootingOutcome.RESOLVED_DIY

        if completed.step_history:
            elapsed = now - completed.step_history[0].timestamp
            time_to_resolution_ms = int(elapsed.total_seconds() * 1000)
        else:
            time_to_resolution_ms = 0

        try:
            await self.metric_sink.record_deflection(
                issue_id=completed.issue_id,
                session_id=completed.id,
                flow_id=completed.flow_id,
                issue_category=flow.category.value if flow else None,
                was_deflected=was_deflected,
                deflection_type="diy_resolved" if was_deflected else None,
                steps_completed=len(completed.step_history),
                total_steps_in_flow=len(flow.steps) if flow else 0,
                time_to_resolution_ms=time_to_resolution_ms,
            )
        except Exception as e:
            logger.error(f"Failed to record deflection metric for session {completed.id}: {e}")

        if completed.issue_id and was_deflected:
            await self._set_issue_status(
                completed.issue_id,
                IssueStatus.RESOLVED_DIY,
                {"ai_resolution_accepted": True, "resolved_at": now.isoformat()}
            )

        logger.info(f"Session completed: {completed.id} outcome={outcome.value} deflected={was_deflected}")
        return completed

    async def _save(self, session: SessionState, fields: Dict[str, Any]) -> Optional[SessionState]:
        try:
            return await self.session_store.update(session.id, fields, expected_version=session.version)
        except SessionError as e:
            logger.error(f"Failed to update session {session.id}: {e}")
            return None

    def _save_failed(self, session: SessionState) -> EngineResult:
        return EngineResult(
            response=messages.SAVE_FAILED,
            session_status=ResultStatus.ACTIVE,
            next_step_id=session.current_step_id,
            session_id=session.id,
        )

    async def _set_issue_status(self, issue_id: str, status: str, extra_fields: Optional[Dict[str, Any]] = None) -> None:
        try:
            await self.issue_tracker.set_status(issue_id, status, extra_fields)
        except Exception as e:
            logger.error(f"Failed to set issue {issue_id} to '{status}': {e}")


def select_flow_for_issue(
    category: Optional[str],
    description: str,
    registry: Optional[Mapping[str, Flow]] = None
) -> Optional[str]:
    """Keyword match on the description first, then the first flow of the category."""
    registry = FLOW_REGISTRY if registry is None else registry
    logger.info(f"Selecting flow for issue: category={category} description='{description[:100]}'")

    keywords = description.lower().split()
    flow_id = find_flow_by_keywords(keywords, registry)
    if flow_id:
        logger.info(f"Found flow by keywords: {flow_id}")
        return flow_id

    in_category = get_flows_by_category(category, registry)
    if in_category:
        logger.info(f"Found flow by category: {in_category[0].id}")
        return in_category[0].id

    logger.info("No matching flow found")
    return None


def create_flow_engine(
    session_store: SessionStore,
    metric_sink: MetricSink,
    issue_tracker: IssueTracker,
    classifier=None,
    classifier_timeout: Optional[float] = 15.0,
    registry: Optional[Mapping[str, Flow]] = None
) -> FlowEngine:
    """Wire a FlowEngine with a ResponseInterpreter around the given classifier."""
    interpreter = ResponseInterpreter(classifier=classifier, timeout=classifier_timeout)
    return FlowEngine(
        session_store=session_store,
        interpreter=interpreter,
        metric_sink=metric_sink,
        issue_tracker=issue_tracker,
        registry=registry,
    )
