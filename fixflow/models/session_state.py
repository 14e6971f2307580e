# fixflow/models/session_state.py

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from fixflow.models.flow_models import MediaType, TroubleshootingOutcome


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStatus(str, Enum):
    ACTIVE = "active"
    # paused/abandoned are set by the external inactivity collaborator, never by the engine
    PAUSED = "paused"
    COMPLETED = "completed"
    ESCALATED = "escalated"
    ABANDONED = "abandoned"


class ResultStatus(str, Enum):
    """Session status as reported to the chat channel"""
    ACTIVE = "active"
    RESOLVED = "resolved"
    ESCALATED = "escalated"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    FRUSTRATED = "frustrated"


class StepHistoryEntry(BaseModel):
    step_id: str
    timestamp: datetime = Field(default_factory=utcnow)
    user_response: str
    interpreted_as: str
    action_taken: str


class SessionState(BaseModel):
    """
    One persisted run of a flow against one issue.

    step_history is append-only and collected_data only ever grows; version
    is bumped by the store on every update and used for optimistic
    concurrency control.
    """
    id: str = Field(default_factory=lambda: uuid4().hex)
    issue_id: Optional[str] = None
    flow_id: str
    current_step_id: Optional[str] = None
    step_history: List[StepHistoryEntry] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.ACTIVE
    attempt_count: int = 0
    max_attempts: int = 3
    collected_data: Dict[str, Any] = Field(default_factory=dict)
    outcome: Optional[TroubleshootingOutcome] = None
    outcome_reason: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    last_activity_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE


class MediaReceived(BaseModel):
    type: MediaType
    url: str


class ResponseInterpretation(BaseModel):
    """Classification of one user message against one step"""
    matched_response_id: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    media_received: Optional[MediaReceived] = None
    sentiment: Sentiment = Sentiment.NEUTRAL
    needs_clarification: bool = False

    @classmethod
    def safe_default(cls) -> "ResponseInterpretation":
        """Result used whenever the semantic tier fails"""
        return cls(
            matched_response_id=None,
            confidence=0.0,
            extracted_data={},
            sentiment=Sentiment.NEUTRAL,
            needs_clarification=True,
        )


class EngineResult(BaseModel):
    """What the engine hands back to the chat channel"""
    response: str
    session_status: ResultStatus
    outcome: Optional[TroubleshootingOutcome] = None
    next_step_id: Optional[str] = None
    data_to_collect: Optional[List[str]] = None
    session_id: Optional[str] = None
    media_url: Optional[str] = None


class DeflectionMetric(BaseModel):
    """Analytics record written once per completed session"""
    id: str = Field(default_factory=lambda: uuid4().hex)
    issue_id: Optional[str] = None
    session_id: str
    flow_id: str
    issue_category: Optional[str] = None
    was_deflected: bool
    deflection_type: Optional[str] = None
    steps_completed: int = 0
    total_steps_in_flow: int = 0
    time_to_resolution_ms: int = 0
    created_at: datetime = Field(default_factory=utcnow)
