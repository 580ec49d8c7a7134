"""Cooperative cancellation tokens and linked cancellation scopes.

A token only signals; it never interrupts a request that is already in
flight. Loops check ``token.cancelled`` at their check points and use
``token.sleep`` for delays that should end early once the token fires.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from microcks.orchestrator.errors import OperationCancelledError


class CancellationToken:
    """One-shot cancellation signal shared between a caller and a callee."""

    def __init__(self) -> None:
        """Create a token that has not been cancelled yet."""
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation and notify registered callbacks once."""
        if self._event.is_set():
            return
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` when the token fires.

        Returns:
            A function that unregisters the callback.

        """
        if self.cancelled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def unregister() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unregister

    async def wait(self) -> None:
        """Block until the token fires."""
        await self._event.wait()

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds unless the token fires first.

        Raises:
            OperationCancelledError: If the token is or becomes cancelled

        """
        if self.cancelled:
            raise OperationCancelledError("Operation cancelled")
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise OperationCancelledError("Operation cancelled")


@asynccontextmanager
async def linked_scope(
    *parents: CancellationToken | None,
    timeout: float | None = None,
) -> AsyncIterator[CancellationToken]:
    """Yield a token that fires when any parent fires or ``timeout`` elapses.

    The deadline timer and the parent registrations are released on every
    exit path, so a scope never outlives the ``async with`` block.
    """
    token = CancellationToken()
    unregisters = [parent.register(token.cancel) for parent in parents if parent]
    handle = None
    if timeout is not None:
        handle = asyncio.get_running_loop().call_later(max(timeout, 0), token.cancel)

    try:
        yield token
    finally:
        if handle is not None:
            handle.cancel()
        for unregister in unregisters:
            unregister()
