"""Follow the log output of a running backend container."""

import asyncio
import logging
from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


async def follow_container_logs(
    container: str, runtime: str = "docker"
) -> AsyncIterator[str]:
    """Yield log lines of ``container`` as they are written.

    The sequence ends when the container stops. The child process is
    terminated whenever the consumer stops iterating early.

    Args:
        container: Container name or ID
        runtime: Container CLI to use (e.g., "docker", "podman")

    Yields:
        Decoded log lines without trailing newline

    """
    logger.info(f"Following logs of container {container} with {runtime}")

    process = await asyncio.create_subprocess_exec(
        runtime,
        "logs",
        "--follow",
        container,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )

    try:
        if process.stdout is None:  # pragma: no cover
            return
        async for raw_line in process.stdout:
            yield raw_line.decode(errors="replace").rstrip("\r\n")
    finally:
        if process.returncode is None:
            process.terminate()
        await process.wait()
        logger.debug(f"Log follower for {container} exited with {process.returncode}")
