# fixflow/core/service_base.py
"""
Shared lifecycle for the network-backed services (OpenAI and Redis).

A service connects on first use. Concurrent first requests share one
connection attempt, and a service that failed to connect can be retried by
calling initialize() again.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from fixflow.core.exceptions import ConfigurationError, ServiceError


class BaseService(ABC):
    """
    Connect-once wrapper around a third-party client.

    Subclasses set a config object, build the client in _initialize_client
    and report on it in health_check. _validate_config and _cleanup are
    optional hooks.
    """

    def __init__(self, config: Any, logger: Optional[logging.Logger] = None):
        self.config = config
        self.service_name = type(self).__name__
        self.logger = logger or logging.getLogger(self.service_name)
        self._client: Any = None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @abstractmethod
    async def _initialize_client(self) -> Any:
        """Build and return the client. May return None for a disabled service."""

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return {"healthy": bool, "status": str, "details": {...}}"""

    def _validate_config(self) -> None:
        """Raise ConfigurationError when the config cannot work."""

    async def _cleanup(self) -> None:
        """Release the client's resources."""

    async def initialize(self) -> None:
        """
        Connect the service. Safe to call repeatedly and concurrently.

        Raises:
            ConfigurationError: The config was rejected by _validate_config
            ServiceError: The client could not be built
        """
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return

            self._validate_config()
            self.logger.info(f"Connecting {self.service_name}")
            try:
                self._client = await self._initialize_client()
            except ConfigurationError:
                raise
            except Exception as e:
                self.logger.error(f"{self.service_name} failed to start: {e}", exc_info=True)
                raise ServiceError(
                    f"Failed to initialize {self.service_name}",
                    service_name=self.service_name,
                    operation="initialize",
                    details={'cause': str(e), 'error_type': type(e).__name__}
                ) from e

            self._initialized = True

    async def ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def client(self) -> Any:
        """The live client; raises ServiceError before initialize()."""
        if self._client is None:
            raise ServiceError(
                f"{self.service_name} has no client. Call initialize() first.",
                service_name=self.service_name
            )
        return self._client

    async def shutdown(self) -> None:
        """Close the client. Errors are logged, never raised."""
        if not self._initialized:
            return

        try:
            await self._cleanup()
        except Exception:
            self.logger.error(f"Error while closing {self.service_name}", exc_info=True)
        finally:
            self._client = None
            self._initialized = False
            self.logger.info(f"{self.service_name} closed")

    def get_metrics(self) -> Dict[str, Any]:
        return {
            "service_name": self.service_name,
            "initialized": self._initialized,
            "connected": self._client is not None,
        }
