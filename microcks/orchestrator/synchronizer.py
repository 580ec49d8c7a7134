"""Push configured artifacts into the backend with bounded retries."""

import logging
from collections.abc import Awaitable, Callable

from microcks.orchestrator.cancellation import CancellationToken
from microcks.orchestrator.clients.base import MicrocksClient
from microcks.orchestrator.errors import TRANSIENT_ERRORS, ArtifactSyncError
from microcks.orchestrator.models.artifact import (
    ArtifactRef,
    MainArtifact,
    RemoteArtifact,
    SecondaryArtifact,
    order_artifacts,
)

logger = logging.getLogger(__name__)

HTTP_CREATED = 201

_ACTIONS = {
    "main": "uploading main artifact",
    "secondary": "uploading secondary artifact",
    "remote": "importing remote artifact",
    "snapshot": "importing snapshot",
}


class ArtifactSynchronizer:
    """Upload, download, and import artifacts in category order."""

    def __init__(
        self,
        client: MicrocksClient,
        max_attempts: int = 5,
        retry_delay: float = 0.1,
    ) -> None:
        """Initialize synchronizer with a client and its retry budget."""
        self.client = client
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.synchronized: set[ArtifactRef] = set()

    async def synchronize(
        self,
        artifacts: list[ArtifactRef],
        token: CancellationToken | None = None,
    ) -> None:
        """Synchronize ``artifacts`` one after another.

        Main files go first, then secondary files, remote URLs, and snapshots.
        Artifacts this synchronizer already pushed are skipped. The first
        failing artifact aborts the pass.
        """
        pending = [a for a in order_artifacts(artifacts) if a not in self.synchronized]
        if not pending:
            logger.info("No artifacts to synchronize")
            return

        logger.info(f"Synchronizing {len(pending)} artifacts")
        for artifact in pending:
            await self.sync(artifact, token)
            self.synchronized.add(artifact)

        logger.info("Artifact synchronization completed")

    async def sync(
        self, artifact: ArtifactRef, token: CancellationToken | None = None
    ) -> None:
        """Synchronize a single artifact.

        Raises:
            ArtifactSyncError: If the backend does not answer 201 Created
            OperationCancelledError: If ``token`` fires during a retry delay

        """
        await self._with_retry(
            lambda: self._send(artifact),
            artifact.describe(),
            _ACTIONS[artifact.kind],
            token or CancellationToken(),
        )

    async def _send(self, artifact: ArtifactRef) -> int:
        """Issue the wire call for one artifact and return its status code."""
        if isinstance(artifact, (MainArtifact, SecondaryArtifact)):
            main = isinstance(artifact, MainArtifact)
            return await self.client.upload_artifact(artifact.path, main)
        if isinstance(artifact, RemoteArtifact):
            return await self.client.download_artifact(artifact.url, artifact.main)
        return await self.client.import_artifact(artifact.path)

    async def _with_retry(
        self,
        call: Callable[[], Awaitable[int]],
        name: str,
        action: str,
        token: CancellationToken,
    ) -> None:
        """Run ``call`` until it returns, retrying transient failures only.

        Once the attempts are used up the last transient failure is re-raised.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                status = await call()
            except TRANSIENT_ERRORS as e:
                if attempt >= self.max_attempts:
                    logger.error(
                        f"Giving up {action} '{name}' after {attempt} attempts: {e}"
                    )
                    raise
                logger.warning(
                    f"Transient error {action} '{name}', attempt {attempt}: {e}"
                )
                await token.sleep(self.retry_delay)
                continue

            if status != HTTP_CREATED:
                logger.error(f"Failed {action} '{name}' with status code {status}")
                raise ArtifactSyncError(name, status)

            logger.info(f"Artifact '{name}' synchronized successfully")
            return
