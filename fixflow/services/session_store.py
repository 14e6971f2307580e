# fixflow/services/session_store.py
"""
Session persistence.

The engine only sees the SessionStore interface. Updates are partial and
optionally guarded by the version the caller loaded; a stale version means
another writer committed first and raises SessionConflictError.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from fixflow.core.exceptions import (
    RedisServiceError,
    SessionConflictError,
    SessionNotFoundError,
    SessionStoreError,
)
from fixflow.models.session_state import SessionState, SessionStatus, utcnow
from fixflow.services.redis_service import RedisService

logger = logging.getLogger(__name__)

# Fields that callers may never overwrite through update()
_PROTECTED_FIELDS = {"id", "version", "started_at"}


def apply_update(session: SessionState, fields: Dict[str, Any]) -> SessionState:
    """Return a copy of session with fields applied, activity touched and version bumped."""
    bad = _PROTECTED_FIELDS.intersection(fields)
    if bad:
        raise SessionStoreError(f"Cannot update protected fields: {sorted(bad)}", session_id=session.id)

    data = session.model_dump()
    data.update(fields)
    data["last_activity_at"] = utcnow()
    data["version"] = session.version + 1

    try:
        return SessionState.model_validate(data)
    except PydanticValidationError as e:
        raise SessionStoreError(f"Invalid session update: {e}", session_id=session.id) from e


def check_version(session: SessionState, expected_version: Optional[int]) -> None:
    if expected_version is not None and session.version != expected_version:
        raise SessionConflictError(
            f"Session {session.id} was modified concurrently",
            session_id=session.id,
            expected_version=expected_version,
            actual_version=session.version,
        )


class SessionStore(ABC):
    """Abstract session persistence"""

    @abstractmethod
    async def load(self, session_id: str) -> Optional[SessionState]:
        """Return the session or None when it does not exist."""

    @abstractmethod
    async def create(self, session: SessionState) -> SessionState:
        """Persist a new session."""

    @abstractmethod
    async def update(
        self,
        session_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None
    ) -> SessionState:
        """
        Apply a partial update.

        Raises:
            SessionNotFoundError: Unknown session id
            SessionConflictError: expected_version is stale
            SessionStoreError: The backend failed
        """

    @abstractmethod
    async def list_sessions(
        self,
        status: Optional[SessionStatus] = None,
        limit: Optional[int] = None
    ) -> List[SessionState]:
        """Sessions, most recently active first."""


class InMemorySessionStore(SessionStore):
    """Process-local store used in development and tests"""

    def __init__(self):
        self._sessions: Dict[str, SessionState] = {}
        self._lock = asyncio.Lock()

    async def load(self, session_id: str) -> Optional[SessionState]:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def create(self, session: SessionState) -> SessionState:
        async with self._lock:
            if session.id in self._sessions:
                raise SessionStoreError(f"Session {session.id} already exists", session_id=session.id)
            self._sessions[session.id] = session.model_copy(deep=True)
        return session

    async def update(
        self,
        session_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None
    ) -> SessionState:
        async with self._lock:
            current = self._sessions.get(session_id)
            if current is None:
                raise SessionNotFoundError(f"Session {session_id} not found", session_id=session_id)
            check_version(current, expected_version)
            updated = apply_update(current, fields)
            self._sessions[session_id] = updated
        return updated.model_copy(deep=True)

    async def list_sessions(
        self,
        status: Optional[SessionStatus] = None,
        limit: Optional[int] = None
    ) -> List[SessionState]:
        sessions = [s for s in self._sessions.values() if status is None or s.status == status]
        sessions.sort(key=lambda s: s.last_activity_at, reverse=True)
        if limit is not None:
            sessions = sessions[:limit]
        return [s.model_copy(deep=True) for s in sessions]


class RedisSessionStore(SessionStore):
    """
    Sessions as JSON documents in Redis.

    Keys: {prefix}:session:{id}. Versioned updates use WATCH/MULTI so two
    writers can never both commit against the same version.
    """

    def __init__(self, redis_service: RedisService, prefix: str = "fixflow", ttl: Optional[int] = None):
        self.redis = redis_service
        self.prefix = prefix
        self.ttl = ttl

    def _key(self, session_id: str) -> str:
        return f"{self.prefix}:session:{session_id}"

    async def load(self, session_id: str) -> Optional[SessionState]:
        await self.redis.ensure_initialized()
        data = await self.redis.get(self._key(session_id))
        if data is None:
            return None
        try:
            return SessionState.model_validate(data)
        except PydanticValidationError as e:
            raise SessionStoreError(f"Corrupt session record: {e}", session_id=session_id) from e

    async def create(self, session: SessionState) -> SessionState:
        await self.redis.ensure_initialized()
        if not self.redis.is_connected():
            raise SessionStoreError("Redis is not connected", session_id=session.id)

        created = await self.redis.set(self._key(session.id), session.model_dump(mode="json"), ttl=self.ttl)
        if not created:
            raise SessionStoreError(f"Failed to store session {session.id}", session_id=session.id)
        return session

    async def update(
        self,
        session_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None
    ) -> SessionState:
        await self.redis.ensure_initialized()
        result: Dict[str, SessionState] = {}

        def mutate(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            if current is None:
                raise SessionNotFoundError(f"Session {session_id} not found", session_id=session_id)
            try:
                session = SessionState.model_validate(current)
            except PydanticValidationError as e:
                raise SessionStoreError(f"Corrupt session record: {e}", session_id=session_id) from e
            check_version(session, expected_version)
            result["session"] = apply_update(session, fields)
            return result["session"].model_dump(mode="json")

        try:
            await self.redis.update_json(self._key(session_id), mutate, ttl=self.ttl)
        except RedisServiceError as e:
            raise SessionStoreError(f"Failed to update session: {e.message}", session_id=session_id) from e

        return result["session"]

    async def list_sessions(
        self,
        status: Optional[SessionStatus] = None,
        limit: Optional[int] = None
    ) -> List[SessionState]:
        await self.redis.ensure_initialized()
        keys = await self.redis.keys(f"{self.prefix}:session:*")
        sessions = []
        for data in await self.redis.mget(keys):
            if data is None:
                continue
            try:
                session = SessionState.model_validate(data)
            except PydanticValidationError:
                logger.warning("Skipping corrupt session record")
                continue
            if status is None or session.status == status:
                sessions.append(session)

        sessions.sort(key=lambda s: s.last_activity_at, reverse=True)
        if limit is not None:
            sessions = sessions[:limit]
        return sessions
