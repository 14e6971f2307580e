# fixflow/flows/builders.py
"""
Shorthand for declaring flow data.

Each helper returns the plain dict that Flow.model_validate expects, so the
flow modules stay declarative and readable.
"""

from typing import Any, Dict, List, Optional

Data = Dict[str, Any]


# Actions

def goto(step_id: str) -> Data:
    return {"type": "goto_step", "step_id": step_id}


def resolve(resolution: str) -> Data:
    return {"type": "resolve", "resolution": resolution}


def escalate(reason: str, collect_data: Optional[List[str]] = None) -> Data:
    return {"type": "escalate", "reason": reason, "collect_data": list(collect_data or [])}


def retry(message: Optional[str] = None) -> Data:
    return {"type": "retry_step", "message": message}


def end_flow(outcome: str) -> Data:
    return {"type": "end_flow", "outcome": outcome}


# Transitions

def on_response(response_id: str, action: Data) -> Data:
    return {"condition": {"type": "response_matches", "response_id": response_id}, "action": action}


def on_media(media_type: str, action: Data) -> Data:
    return {"condition": {"type": "media_received", "media_type": media_type}, "action": action}


def after_attempts(count: int, action: Data) -> Data:
    return {"condition": {"type": "attempt_count_exceeds", "count": count}, "action": action}


def always(action: Data) -> Data:
    return {"condition": {"type": "always"}, "action": action}


# Expected responses

def response(response_id: str, patterns: List[str], semantic_match: str, examples: List[str]) -> Data:
    return {
        "id": response_id,
        "patterns": patterns,
        "semantic_match": semantic_match,
        "examples": examples,
    }
