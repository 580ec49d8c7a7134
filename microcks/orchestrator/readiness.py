"""Detect when a freshly started backend can accept calls."""

import asyncio
import logging
from collections.abc import AsyncIterable, Awaitable, Callable
from enum import Enum

from microcks.orchestrator.cancellation import CancellationToken, linked_scope
from microcks.orchestrator.errors import OperationCancelledError

logger = logging.getLogger(__name__)


class ReadinessState(str, Enum):
    """Phases of the readiness watcher."""

    WATCHING_STARTUP_SIGNAL = "watching_startup_signal"
    POLLING_HEALTH = "polling_health"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class ReadinessWatcher:
    """Watch backend logs for a startup marker, then poll the health check.

    Readiness is advisory: ``wait_until_ready`` never raises because of a
    failed health check or a cancellation, it ends in ``UNHEALTHY`` instead.
    """

    def __init__(
        self,
        health_check: Callable[[], Awaitable[bool]],
        marker: str = "Started MicrocksApplication",
        retries: int = 3,
        retry_delay: float = 0.1,
        startup_timeout: float | None = None,
    ) -> None:
        """Initialize watcher.

        Args:
            health_check: Performs one health call, returns True when healthy
            marker: Case-insensitive log fragment announcing a finished boot
            retries: Maximum number of health calls
            retry_delay: Seconds between health calls
            startup_timeout: Optional bound on the log-watch phase

        """
        self.health_check = health_check
        self.marker = marker.lower()
        self.retries = retries
        self.retry_delay = retry_delay
        self.startup_timeout = startup_timeout
        self.state = ReadinessState.WATCHING_STARTUP_SIGNAL

    async def wait_until_ready(
        self,
        log_lines: AsyncIterable[str] | None = None,
        token: CancellationToken | None = None,
    ) -> ReadinessState:
        """Run the watcher to a terminal state and return it."""
        self.state = ReadinessState.WATCHING_STARTUP_SIGNAL
        if log_lines is not None:
            async with linked_scope(token, timeout=self.startup_timeout) as scope:
                await self._watch_startup_signal(log_lines, scope)

        self.state = ReadinessState.POLLING_HEALTH
        self.state = await self._poll_health(token or CancellationToken())
        return self.state

    async def _watch_startup_signal(
        self, log_lines: AsyncIterable[str], scope: CancellationToken
    ) -> None:
        """Return once the marker shows up, the stream ends, or scope fires."""
        watch = asyncio.ensure_future(self._find_marker(log_lines))
        cancelled = asyncio.ensure_future(scope.wait())
        try:
            await asyncio.wait({watch, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            watch.cancel()
            cancelled.cancel()
            await asyncio.gather(watch, cancelled, return_exceptions=True)

        if watch.cancelled():
            logger.info("Stopped watching backend logs before startup marker")
            return
        error = watch.exception()
        if error is not None:
            logger.warning(f"Backend log stream failed: {error}", exc_info=error)
        elif watch.result():
            logger.info("Backend startup marker found in logs")
        else:
            logger.info("Backend log stream ended without startup marker")

    async def _find_marker(self, log_lines: AsyncIterable[str]) -> bool:
        try:
            async for line in log_lines:
                if self.marker in line.lower():
                    return True
            return False
        finally:
            aclose = getattr(log_lines, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _poll_health(self, token: CancellationToken) -> ReadinessState:
        logger.info("Waiting for backend to be healthy")

        for attempt in range(1, self.retries + 1):
            if token.cancelled:
                logger.info("Health check cancelled")
                return ReadinessState.UNHEALTHY

            try:
                healthy = await self.health_check()
            except Exception as e:
                logger.warning(f"Health check attempt {attempt} failed: {e}")
                healthy = False

            if healthy:
                logger.info(f"Backend healthy after {attempt} health check(s)")
                return ReadinessState.HEALTHY

            try:
                await token.sleep(self.retry_delay)
            except OperationCancelledError:
                logger.info("Health check cancelled")
                return ReadinessState.UNHEALTHY

        logger.info("Backend is unhealthy")
        return ReadinessState.UNHEALTHY
