# fixflow/flows/__init__.py
"""
Flow registry.

Flows are validated once at import and exposed through a read-only mapping
keyed by flow id. Iteration order is registration order, which decides ties
in keyword selection.
"""
import re
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional

from fixflow.flows.blocked_drain import BLOCKED_DRAIN_FLOW
from fixflow.flows.boiler_no_heat import BOILER_NO_HEAT_FLOW
from fixflow.flows.dripping_tap import DRIPPING_TAP_FLOW
from fixflow.models.flow_models import (
    Flow,
    GotoStepAction,
    ResponseMatchesCondition,
)

# Minimum score before a flow is picked from free text
KEYWORD_MATCH_THRESHOLD = 2

FLOW_REGISTRY: Mapping[str, Flow] = MappingProxyType({
    flow.id: flow
    for flow in (BOILER_NO_HEAT_FLOW, DRIPPING_TAP_FLOW, BLOCKED_DRAIN_FLOW)
})


def get_flow_by_id(flow_id: str, registry: Optional[Mapping[str, Flow]] = None) -> Optional[Flow]:
    registry = FLOW_REGISTRY if registry is None else registry
    return registry.get(flow_id)


def get_flows_by_category(category, registry: Optional[Mapping[str, Flow]] = None) -> List[Flow]:
    """Flows in the category, in registry order. Unknown categories match nothing."""
    registry = FLOW_REGISTRY if registry is None else registry
    if not category:
        return []
    # IssueCategory is a str enum, so raw strings compare equal to members
    return [flow for flow in registry.values() if flow.category == category]


def find_flow_by_keywords(
    keywords: Iterable[str],
    registry: Optional[Mapping[str, Flow]] = None
) -> Optional[str]:
    """
    Pick the flow whose trigger keywords best match the given words.

    Each (keyword, trigger) pair scores 2 on an exact case-insensitive match,
    otherwise 1 if either string contains the other. Short words can
    therefore score against several triggers at once. The highest total wins,
    ties go to the earlier flow, and nothing is returned below
    KEYWORD_MATCH_THRESHOLD.
    """
    registry = FLOW_REGISTRY if registry is None else registry
    words = [k.strip().lower() for k in keywords if k and k.strip()]

    best_id: Optional[str] = None
    best_score = 0

    for flow in registry.values():
        score = 0
        for trigger in flow.trigger_keywords:
            trigger = trigger.lower()
            for word in words:
                if word == trigger:
                    score += 2
                elif word in trigger or trigger in word:
                    score += 1

        if score > best_score:
            best_id = flow.id
            best_score = score

    if best_score < KEYWORD_MATCH_THRESHOLD:
        return None
    return best_id


def validate_flow(flow: Flow) -> List[str]:
    """Return a list of authoring problems; empty when the flow is sound."""
    problems = []
    step_ids = [step.id for step in flow.steps]

    seen = set()
    for step_id in step_ids:
        if step_id in seen:
            problems.append(f"duplicate step id '{step_id}'")
        seen.add(step_id)

    for step in flow.steps:
        response_ids = set(step.response_ids())

        for transition in [*step.transitions, step.fallback_transition]:
            action = transition.action
            if isinstance(action, GotoStepAction) and action.step_id not in seen:
                problems.append(f"{step.id}: goto_step target '{action.step_id}' does not exist")

            condition = transition.condition
            if isinstance(condition, ResponseMatchesCondition) and condition.response_id not in response_ids:
                problems.append(f"{step.id}: transition references undeclared response '{condition.response_id}'")

        for expected in step.expected_responses:
            for pattern in expected.patterns:
                try:
                    re.compile(pattern, re.IGNORECASE)
                except re.error as e:
                    problems.append(f"{step.id}/{expected.id}: pattern {pattern!r} does not compile ({e})")

    return problems


__all__ = [
    'FLOW_REGISTRY',
    'KEYWORD_MATCH_THRESHOLD',
    'get_flow_by_id',
    'get_flows_by_category',
    'find_flow_by_keywords',
    'validate_flow',
]
