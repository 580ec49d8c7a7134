"""Error types raised by the orchestration core."""

import asyncio

import aiohttp

# Transport-level failures that are worth retrying.
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    aiohttp.ClientConnectionError,
    asyncio.TimeoutError,
)


class MicrocksOrchestratorError(RuntimeError):
    """Base class for orchestration failures."""


class ArtifactSyncError(MicrocksOrchestratorError):
    """An artifact was rejected by the backend."""

    def __init__(self, artifact: str, status: int) -> None:
        """Record the artifact description and the status that was returned."""
        super().__init__(f"Failed to synchronize artifact '{artifact}': {status}")
        self.artifact = artifact
        self.status = status


class BackendRequestError(MicrocksOrchestratorError):
    """The backend answered a request with an unexpected status code."""

    def __init__(self, operation: str, status: int, body: str = "") -> None:
        """Record the failed operation and the response details."""
        super().__init__(f"Failed to {operation}: {status} {body}".rstrip())
        self.operation = operation
        self.status = status
        self.body = body


class OperationCancelledError(MicrocksOrchestratorError):
    """A cancellation token fired while an operation was waiting."""
