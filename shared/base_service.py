"""
Base service class for token lifecycle services.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from shared.config import TokenServiceConfig
from shared.errors import ServiceClosedError
from shared.logging import get_logger
from shared.metrics import MetricsCollector, get_metrics_collector


class BaseService:
    """Base service class with common functionality.

    Tracks in-flight operations so ``close()`` can drain them before the
    collaborators are released. Once closing starts, new operations fail with
    :class:`ServiceClosedError`.
    """

    def __init__(self, service_name: str, config: TokenServiceConfig,
                 metrics: Optional[MetricsCollector] = None):
        self.service_name = service_name
        self.config = config
        self.logger = get_logger(f"{service_name}.service")
        self.metrics = metrics if metrics is not None else get_metrics_collector(service_name)

        self._closing = False
        self._closed = False
        self._in_flight = 0
        self._drained = asyncio.Event()
        self._drained.set()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def closing(self) -> bool:
        return self._closing

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[None]:
        """Register an in-flight operation for the duration of the block."""
        if self._closing:
            raise ServiceClosedError(
                f"{self.service_name} is closed",
                details={"operation": name}
            )

        self._in_flight += 1
        self._drained.clear()
        try:
            yield
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._drained.set()

    async def close(self) -> None:
        """Stop accepting calls, drain in-flight work, release collaborators."""
        if self._closing:
            return
        self._closing = True

        try:
            await asyncio.wait_for(self._drained.wait(), timeout=self.config.drain_timeout_seconds)
        except asyncio.TimeoutError:
            self.logger.warning(
                "Drain timed out, releasing resources with operations in flight",
                in_flight=self._in_flight
            )

        await self._release_resources()
        self._closed = True
        self.logger.info("Service closed", service=self.service_name)

    async def _release_resources(self) -> None:
        """Release resources the service created itself. Override in subclasses.

        Collaborators handed in by the caller stay open; their owner closes them.
        """
