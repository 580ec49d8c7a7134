"""Single entry point combining readiness, synchronization, and testing."""

import asyncio
import logging
from collections.abc import AsyncIterable
from datetime import date
from urllib.parse import urlsplit, urlunsplit

import aiohttp

from microcks.orchestrator.cancellation import CancellationToken
from microcks.orchestrator.clients.base import MicrocksClient
from microcks.orchestrator.clients.http import HttpMicrocksClient
from microcks.orchestrator.models.artifact import ArtifactRef
from microcks.orchestrator.models.backend_config import BackendConfig
from microcks.orchestrator.models.test_request import TestRequest
from microcks.orchestrator.models.test_result import RequestResponsePair, TestResult
from microcks.orchestrator.readiness import ReadinessState, ReadinessWatcher
from microcks.orchestrator.synchronizer import ArtifactSynchronizer
from microcks.orchestrator.test_runner import TestExecutionCoordinator

logger = logging.getLogger(__name__)


class MicrocksProvider:
    """Orchestrates one backend instance.

    The backend client is created on first use and reused for the lifetime
    of the provider.
    """

    def __init__(
        self, config: BackendConfig, client: MicrocksClient | None = None
    ) -> None:
        """Initialize provider for the backend described by ``config``."""
        self.config = config
        self._client = client
        self._synchronizer: ArtifactSynchronizer | None = None

    @property
    def name(self) -> str:
        """Logical backend name."""
        return self.config.name

    @property
    def base_url(self) -> str:
        """Backend base URL."""
        return self.config.base_url

    @property
    def client(self) -> MicrocksClient:
        """Backend client, built once."""
        if self._client is None:
            self._client = HttpMicrocksClient(
                self.config.base_url, self.config.request_timeout
            )
        return self._client

    async def is_healthy(self) -> bool:
        """Call the health endpoint once; transport errors count as unhealthy."""
        try:
            status = await self.client.check_health()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Health check against {self.base_url} failed: {e}")
            return False

        if 200 <= status < 300:
            return True
        logger.info(f"Health check against {self.base_url} returned {status}")
        return False

    async def wait_until_ready(
        self,
        log_lines: AsyncIterable[str] | None = None,
        token: CancellationToken | None = None,
    ) -> ReadinessState:
        """Wait for the startup marker in ``log_lines``, then poll health."""
        watcher = ReadinessWatcher(
            self.is_healthy,
            marker=self.config.startup_marker,
            retries=self.config.health_retries,
            retry_delay=self.config.health_retry_delay,
            startup_timeout=self.config.startup_timeout,
        )
        return await watcher.wait_until_ready(log_lines, token)

    async def synchronize_artifacts(
        self,
        artifacts: list[ArtifactRef] | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        """Push artifacts not yet synchronized by this provider.

        Defaults to the artifacts of the configuration.
        """
        if self._synchronizer is None:
            self._synchronizer = ArtifactSynchronizer(
                self.client,
                max_attempts=self.config.sync_attempts,
                retry_delay=self.config.sync_retry_delay,
            )
        await self._synchronizer.synchronize(
            self.config.artifacts if artifacts is None else artifacts, token
        )

    async def run_test(
        self, request: TestRequest, token: CancellationToken | None = None
    ) -> TestResult:
        """Run a conformance test; see ``TestExecutionCoordinator.run_test``."""
        return await self._coordinator().run_test(request, token)

    async def get_messages(
        self, test_result: TestResult, operation_name: str
    ) -> list[RequestResponsePair]:
        """Fetch the messages exchanged while testing ``operation_name``."""
        return await self._coordinator().get_messages(test_result, operation_name)

    async def get_service_invocations_count(
        self, service_name: str, service_version: str, day: date | None = None
    ) -> float:
        """Return how many times a mock was invoked on ``day`` (default today)."""
        statistic = await self.client.get_invocation_statistic(
            service_name, service_version, day or date.today()
        )
        return statistic.daily_count if statistic else 0

    def rest_mock_endpoint(self, service_name: str, service_version: str) -> str:
        """URL of the REST mock for a service."""
        return f"{self.base_url}/rest/{service_name}/{service_version}"

    def soap_mock_endpoint(self, service_name: str, service_version: str) -> str:
        """URL of the SOAP mock for a service."""
        return f"{self.base_url}/soap/{service_name}/{service_version}"

    def graphql_mock_endpoint(self, service_name: str, service_version: str) -> str:
        """URL of the GraphQL mock for a service."""
        return f"{self.base_url}/graphql/{service_name}/{service_version}"

    def grpc_mock_endpoint(self) -> str:
        """Base URL with the ``grpc`` scheme."""
        parts = urlsplit(self.base_url)
        return urlunsplit(("grpc", parts.netloc, parts.path, "", ""))

    def _coordinator(self) -> TestExecutionCoordinator:
        return TestExecutionCoordinator(
            self.client,
            initial_delay=self.config.test_initial_delay,
            poll_interval=self.config.test_poll_interval,
            grace_period=self.config.test_grace_period,
        )


async def on_ready(
    config: BackendConfig,
    log_lines: AsyncIterable[str] | None = None,
    token: CancellationToken | None = None,
    client: MicrocksClient | None = None,
) -> MicrocksProvider:
    """Bring a freshly reachable backend into service.

    Waits for readiness, then synchronizes the configured artifacts once.
    Synchronization failures propagate; an unhealthy backend is only logged.
    """
    provider = MicrocksProvider(config, client)
    logger.info(f"Backend {config.name} reachable at {config.base_url}")

    state = await provider.wait_until_ready(log_lines, token)
    if state is not ReadinessState.HEALTHY:
        logger.warning(f"Backend {config.name} not confirmed healthy, continuing")

    await provider.synchronize_artifacts(token=token)
    return provider


class ProviderRegistry:
    """Keeps the providers of several backends, looked up by name."""

    def __init__(self) -> None:
        """Create an empty registry."""
        self._providers: dict[str, MicrocksProvider] = {}

    def register(self, provider: MicrocksProvider) -> None:
        """Register ``provider`` under its backend name."""
        if provider.name in self._providers:
            raise ValueError(f"Backend already registered: {provider.name}")
        self._providers[provider.name] = provider

    def get(self, name: str) -> MicrocksProvider:
        """Return the provider registered as ``name``.

        Raises:
            ValueError: If ``name`` is empty
            KeyError: If no provider is registered under ``name``

        """
        if not name:
            raise ValueError("Backend name must not be empty")
        try:
            return self._providers[name]
        except KeyError:
            raise KeyError(f"No backend registered as '{name}'") from None

    def names(self) -> list[str]:
        """Names of the registered backends."""
        return sorted(self._providers)

    async def on_backend_ready(
        self,
        config: BackendConfig,
        log_lines: AsyncIterable[str] | None = None,
        token: CancellationToken | None = None,
    ) -> MicrocksProvider:
        """Run ``on_ready`` for a backend and register the resulting provider."""
        provider = await on_ready(config, log_lines, token)
        self.register(provider)
        return provider
