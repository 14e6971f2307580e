# fixflow/core/exceptions.py
"""
Core exceptions for the troubleshooting engine.

Every error raised inside fixflow derives from FixFlowError so callers
(the orchestrator, the HTTP layer) can turn it into a polite reply instead
of leaking a stack trace to the tenant.

Keyword context passed to an error becomes both an attribute and, when
set, an entry in ``details``.
"""

from typing import Optional, Dict, Any


class FixFlowError(Exception):
    """Base exception for all fixflow errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, **context: Any):
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

        for name, value in context.items():
            setattr(self, name, value)
            if value is not None:
                self.details[name] = value

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(FixFlowError):
    """Bad input from the tenant or an API caller"""

    def __init__(self, message: str, field: Optional[str] = None, value: Optional[Any] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, field=field)
        self.value = value
        # Raw values may not be JSON friendly
        if value is not None:
            self.details['value'] = str(value)


class ServiceError(FixFlowError):
    """An external service (OpenAI, Redis) failed or is not ready"""

    def __init__(self, message: str, service_name: Optional[str] = None, operation: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None, **context: Any):
        super().__init__(message, details, service_name=service_name, operation=operation, **context)


class GPTServiceError(ServiceError):
    def __init__(self, message: str, model: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "GPT", details=details, model=model)


class RedisServiceError(ServiceError):
    def __init__(self, message: str, key: Optional[str] = None, operation: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "Redis", operation, details, key=key)


class ConfigurationError(FixFlowError):
    """Settings are missing or out of range"""

    def __init__(self, message: str, component: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, component=component)


class SessionError(FixFlowError):
    """Errors in session persistence and state handling"""

    def __init__(self, message: str, session_id: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None, **context: Any):
        super().__init__(message, details, session_id=session_id, **context)


class SessionNotFoundError(SessionError):
    """The session id is unknown to the store"""


class SessionConflictError(SessionError):
    """
    A concurrent writer committed first.

    Raised when an update carries an expected_version that no longer
    matches the stored record.
    """

    def __init__(self, message: str, session_id: Optional[str] = None,
                 expected_version: Optional[int] = None, actual_version: Optional[int] = None):
        super().__init__(
            message,
            session_id,
            expected_version=expected_version,
            actual_version=actual_version,
        )


class SessionStoreError(SessionError):
    """The backing store could not read or write a session"""
