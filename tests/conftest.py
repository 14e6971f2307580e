# tests/conftest.py
"""
Shared fixtures for fixflow tests.

Everything runs in memory: the session store, metric sink and issue tracker
use their in-memory implementations and the language classifier is a
scripted stub.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from fixflow.core.flow_engine import FlowEngine
from fixflow.core.response_interpreter import ResponseInterpreter
from fixflow.services.issue_tracker import InMemoryIssueTracker
from fixflow.services.metric_sink import InMemoryMetricSink
from fixflow.services.session_store import InMemorySessionStore


class StubClassifier:
    """
    Deterministic LanguageClassifier.

    Returns the queued replies in order (the last one repeats), raises
    `error` when set and sleeps `delay` seconds before answering.
    """

    def __init__(
        self,
        replies: Optional[List[Any]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0
    ):
        self.replies = list(replies or [])
        self.error = error
        self.delay = delay
        self.calls: List[Dict[str, str]] = []

    async def classify(self, system_prompt: str, user_message: str) -> Dict[str, Any]:
        self.calls.append({"system_prompt": system_prompt, "user_message": user_message})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if not self.replies:
            return {"matchedResponseId": None, "confidence": 0.3, "needsClarification": True}
        if len(self.replies) > 1:
            return self.replies.pop(0)
        return self.replies[0]


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def metric_sink():
    return InMemoryMetricSink()


@pytest.fixture
def issue_tracker():
    return InMemoryIssueTracker()


@pytest.fixture
def classifier():
    return StubClassifier()


@pytest.fixture
def interpreter(classifier):
    return ResponseInterpreter(classifier=classifier, timeout=1.0)


@pytest.fixture
def engine(session_store, interpreter, metric_sink, issue_tracker):
    """FlowEngine over the built-in flow registry"""
    return FlowEngine(
        session_store=session_store,
        interpreter=interpreter,
        metric_sink=metric_sink,
        issue_tracker=issue_tracker,
    )


@pytest.fixture
def build_engine(session_store, metric_sink, issue_tracker, classifier):
    """Factory for engines over a custom registry or store"""

    def _build(registry=None, store=None, timeout=1.0):
        return FlowEngine(
            session_store=store or session_store,
            interpreter=ResponseInterpreter(classifier=classifier, timeout=timeout),
            metric_sink=metric_sink,
            issue_tracker=issue_tracker,
            registry=registry,
        )

    return _build
