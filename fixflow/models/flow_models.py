# fixflow/models/flow_models.py
"""
Flow schema: the static step graphs the engine walks.

Flows are declared as plain data and validated into these frozen models
once, when the registry is imported.
"""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class IssueCategory(str, Enum):
    HEATING = "heating"
    PLUMBING = "plumbing"
    ELECTRICAL = "electrical"
    APPLIANCE = "appliance"
    GENERAL = "general"


class StepType(str, Enum):
    QUESTION = "question"
    INSTRUCTION = "instruction"
    CONFIRMATION = "confirmation"
    MEDIA_REQUEST = "media_request"
    BRANCH = "branch"


class MediaType(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"


class TroubleshootingOutcome(str, Enum):
    """Terminal classification of a session"""
    RESOLVED_DIY = "resolved_diy"
    NEEDS_CALLOUT = "needs_callout"
    ESCALATED_COMPLEX = "escalated_complex"
    ESCALATED_SAFETY = "escalated_safety"
    ABANDONED = "abandoned"


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# =============================================================================
# TRANSITION CONDITIONS
# =============================================================================

class AlwaysCondition(_FrozenModel):
    type: Literal["always"] = "always"


class ResponseMatchesCondition(_FrozenModel):
    type: Literal["response_matches"] = "response_matches"
    response_id: str


class AttemptCountExceedsCondition(_FrozenModel):
    type: Literal["attempt_count_exceeds"] = "attempt_count_exceeds"
    count: int


class MediaReceivedCondition(_FrozenModel):
    type: Literal["media_received"] = "media_received"
    media_type: MediaType


class ExpressionCondition(_FrozenModel):
    type: Literal["expression"] = "expression"
    expr: str


TransitionCondition = Annotated[
    Union[
        AlwaysCondition,
        ResponseMatchesCondition,
        AttemptCountExceedsCondition,
        MediaReceivedCondition,
        ExpressionCondition,
    ],
    Field(discriminator="type"),
]


# =============================================================================
# TRANSITION ACTIONS
# =============================================================================

class GotoStepAction(_FrozenModel):
    type: Literal["goto_step"] = "goto_step"
    step_id: str


class ResolveAction(_FrozenModel):
    type: Literal["resolve"] = "resolve"
    resolution: str


class EscalateAction(_FrozenModel):
    type: Literal["escalate"] = "escalate"
    reason: str
    collect_data: List[str] = Field(default_factory=list)


class RetryStepAction(_FrozenModel):
    type: Literal["retry_step"] = "retry_step"
    message: Optional[str] = None


class EndFlowAction(_FrozenModel):
    type: Literal["end_flow"] = "end_flow"
    outcome: TroubleshootingOutcome


TransitionAction = Annotated[
    Union[
        GotoStepAction,
        ResolveAction,
        EscalateAction,
        RetryStepAction,
        EndFlowAction,
    ],
    Field(discriminator="type"),
]


class FlowTransition(_FrozenModel):
    """A (condition, action) pair; the first satisfied condition fires"""
    condition: TransitionCondition
    action: TransitionAction


# =============================================================================
# STEPS AND FLOWS
# =============================================================================

class ExpectedResponse(_FrozenModel):
    """One recognised answer shape for a step"""
    id: str
    patterns: List[str] = Field(default_factory=list)
    semantic_match: str = ""
    examples: List[str] = Field(default_factory=list)


class Step(_FrozenModel):
    """A node in the flow graph"""
    id: str
    type: StepType
    template: str
    expected_responses: List[ExpectedResponse] = Field(default_factory=list)
    transitions: List[FlowTransition] = Field(default_factory=list)
    fallback_transition: FlowTransition
    media_url: Optional[str] = None
    confirmation_required: bool = False
    extract: List[str] = Field(default_factory=list)

    def response_ids(self) -> List[str]:
        return [r.id for r in self.expected_responses]


class Flow(_FrozenModel):
    """An issue-resolution procedure: a directed graph of steps"""
    id: str
    name: str
    description: str
    category: IssueCategory
    trigger_keywords: List[str]
    safe_for_diy: bool = True
    safety_warning: Optional[str] = None
    max_attempts: int = Field(default=3, ge=1)
    estimated_time_minutes: int = 10
    steps: List[Step] = Field(min_length=1)
    escalation_data_needed: List[str] = Field(default_factory=list)

    @property
    def first_step(self) -> Step:
        return self.steps[0]

    def get_step(self, step_id: Optional[str]) -> Optional[Step]:
        if step_id is None:
            return None
        for step in self.steps:
            if step.id == step_id:
                return step
        return None
