"""Abstract interface for the wire calls made against the backend."""

from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path

from microcks.orchestrator.models.test_request import TestRequest
from microcks.orchestrator.models.test_result import (
    DailyInvocationStatistic,
    RequestResponsePair,
    TestResult,
)


class MicrocksClient(ABC):
    """Wire calls against one backend.

    Artifact calls return the raw status code so that callers decide what
    counts as success. Transport failures propagate as raised by the
    underlying HTTP library.
    """

    @abstractmethod
    async def check_health(self) -> int:
        """Call the health endpoint and return its status code."""

    @abstractmethod
    async def upload_artifact(self, path: Path, main: bool) -> int:
        """Upload a local artifact file.

        Args:
            path: File to send as multipart field ``file``
            main: Whether the backend should treat it as a main artifact

        Returns:
            Response status code

        """

    @abstractmethod
    async def import_artifact(self, path: Path) -> int:
        """Import a repository snapshot file and return the status code."""

    @abstractmethod
    async def download_artifact(self, url: str, main: bool) -> int:
        """Ask the backend to fetch an artifact from ``url``."""

    @abstractmethod
    async def submit_test(self, request: TestRequest) -> TestResult:
        """Start a test run and return its initial result."""

    @abstractmethod
    async def refresh_test_result(self, test_result_id: str) -> TestResult:
        """Fetch the current state of a test run."""

    @abstractmethod
    async def get_messages(
        self, test_result_id: str, test_case_id: str
    ) -> list[RequestResponsePair]:
        """Fetch the messages exchanged for one test case."""

    @abstractmethod
    async def get_invocation_statistic(
        self, service_name: str, service_version: str, day: date
    ) -> DailyInvocationStatistic | None:
        """Fetch mock invocation counters, or ``None`` when there are none."""
