# fixflow/services/issue_tracker.py
"""
Issue tracker collaborator.

Tenant issues live in an external system; the engine only pushes status
changes. Status strings are owned by that system.
"""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

from fixflow.core.exceptions import FixFlowError
from fixflow.models.session_state import utcnow
from fixflow.services.redis_service import RedisService

logger = logging.getLogger(__name__)


class IssueStatus(str, Enum):
    AI_HELPING = "ai_helping"
    RESOLVED_DIY = "resolved_diy"
    AWAITING_DETAILS = "awaiting_details"


def _status_value(status) -> str:
    return status.value if isinstance(status, Enum) else str(status)


class IssueTracker(ABC):

    @abstractmethod
    async def set_status(self, issue_id: str, status: str, extra_fields: Optional[Dict[str, Any]] = None) -> None:
        """Set the issue's status and merge extra_fields into its record."""

    @abstractmethod
    async def get_issue(self, issue_id: str) -> Optional[Dict[str, Any]]:
        pass


class InMemoryIssueTracker(IssueTracker):

    def __init__(self):
        self.issues: Dict[str, Dict[str, Any]] = {}

    async def set_status(self, issue_id: str, status: str, extra_fields: Optional[Dict[str, Any]] = None) -> None:
        issue = self.issues.setdefault(issue_id, {"id": issue_id})
        issue.update(extra_fields or {})
        issue["status"] = _status_value(status)
        issue["updated_at"] = utcnow().isoformat()
        logger.debug(f"Issue {issue_id} -> {issue['status']}")

    async def get_issue(self, issue_id: str) -> Optional[Dict[str, Any]]:
        issue = self.issues.get(issue_id)
        return dict(issue) if issue else None


class RedisIssueTracker(IssueTracker):
    """Issue records as JSON under {prefix}:issue:{id}"""

    def __init__(self, redis_service: RedisService, prefix: str = "fixflow"):
        self.redis = redis_service
        self.prefix = prefix

    def _key(self, issue_id: str) -> str:
        return f"{self.prefix}:issue:{issue_id}"

    async def set_status(self, issue_id: str, status: str, extra_fields: Optional[Dict[str, Any]] = None) -> None:
        await self.redis.ensure_initialized()

        def mutate(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            issue = dict(current or {"id": issue_id})
            issue.update(extra_fields or {})
            issue["status"] = _status_value(status)
            issue["updated_at"] = utcnow().isoformat()
            return issue

        try:
            await self.redis.update_json(self._key(issue_id), mutate)
        except FixFlowError as e:
            logger.error(f"Failed to update issue {issue_id}: {e}")
            raise

    async def get_issue(self, issue_id: str) -> Optional[Dict[str, Any]]:
        await self.redis.ensure_initialized()
        return await self.redis.get(self._key(issue_id))
