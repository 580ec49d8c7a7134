"""aiohttp implementation of the backend client."""

import logging
import mimetypes
from collections.abc import Mapping
from datetime import date
from pathlib import Path
from urllib.parse import quote

import aiohttp
from yarl import URL

from microcks.orchestrator.clients.base import MicrocksClient
from microcks.orchestrator.errors import BackendRequestError
from microcks.orchestrator.models.test_request import TestRequest
from microcks.orchestrator.models.test_result import (
    DailyInvocationStatistic,
    RequestResponsePair,
    TestResult,
)

logger = logging.getLogger(__name__)


class HttpMicrocksClient(MicrocksClient):
    """Backend client talking HTTP.

    Holds only the immutable base URL and timeout; every call opens its own
    session, so one instance can be shared by concurrent callers.
    """

    def __init__(self, base_url: str, request_timeout: float = 30.0) -> None:
        """Initialize client for the backend at ``base_url``."""
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=request_timeout)

    def _session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(timeout=self.timeout)

    async def check_health(self) -> int:
        """Call the health endpoint and return its status code."""
        async with self._session() as session:
            async with session.get(f"{self.base_url}/api/health") as response:
                return response.status

    async def upload_artifact(self, path: Path, main: bool) -> int:
        """Upload a local artifact file as main or secondary artifact."""
        url = f"{self.base_url}/api/artifact/upload"
        params = {"mainArtifact": "true" if main else "false"}

        async with self._session() as session:
            with path.open("rb") as stream:
                data = self._file_form(path, stream)
                async with session.post(url, params=params, data=data) as response:
                    return response.status

    async def import_artifact(self, path: Path) -> int:
        """Import a repository snapshot file."""
        url = f"{self.base_url}/api/import"

        async with self._session() as session:
            with path.open("rb") as stream:
                data = self._file_form(path, stream)
                async with session.post(url, data=data) as response:
                    return response.status

    async def download_artifact(self, url: str, main: bool) -> int:
        """Ask the backend to download and import the artifact at ``url``."""
        endpoint = f"{self.base_url}/api/artifact/download"
        params = {"mainArtifact": "true" if main else "false", "url": url}

        async with self._session() as session:
            async with session.post(endpoint, params=params) as response:
                return response.status

    async def submit_test(self, request: TestRequest) -> TestResult:
        """Start a test run and return its initial result."""
        payload = request.model_dump(mode="json", by_alias=True, exclude_none=True)

        async with self._session() as session:
            async with session.post(
                f"{self.base_url}/api/tests", json=payload
            ) as response:
                if response.status not in (200, 201):
                    text = await response.text()
                    raise BackendRequestError("submit test", response.status, text)

                data: Mapping[str, object] = await response.json()

        return TestResult.model_validate(data)

    async def refresh_test_result(self, test_result_id: str) -> TestResult:
        """Fetch the current state of a test run."""
        url = f"{self.base_url}/api/tests/{quote(test_result_id, safe='')}"

        async with self._session() as session:
            async with session.get(url) as response:
                if response.status != 200:
                    text = await response.text()
                    raise BackendRequestError(
                        "refresh test result", response.status, text
                    )

                data: Mapping[str, object] = await response.json()

        return TestResult.model_validate(data)

    async def get_messages(
        self, test_result_id: str, test_case_id: str
    ) -> list[RequestResponsePair]:
        """Fetch the messages exchanged for one test case.

        ``test_case_id`` is already URL-encoded and is sent untouched.
        """
        url = URL(
            f"{self.base_url}/api/tests/{quote(test_result_id, safe='')}"
            f"/messages/{test_case_id}",
            encoded=True,
        )

        async with self._session() as session:
            async with session.get(url) as response:
                if response.status != 200:
                    text = await response.text()
                    raise BackendRequestError("get messages", response.status, text)

                data = await response.json()
                if not isinstance(data, list):
                    raise BackendRequestError(
                        "get messages", response.status, "expected a JSON list"
                    )

        return [RequestResponsePair.model_validate(item) for item in data]

    async def get_invocation_statistic(
        self, service_name: str, service_version: str, day: date
    ) -> DailyInvocationStatistic | None:
        """Fetch mock invocation counters for a service on ``day``."""
        url = (
            f"{self.base_url}/api/metrics/invocations/"
            f"{quote(service_name, safe='')}/{quote(service_version, safe='')}"
        )
        params = {"day": day.strftime("%Y%m%d")}

        async with self._session() as session:
            async with session.get(url, params=params) as response:
                if response.status == 204:
                    return None
                if response.status != 200:
                    text = await response.text()
                    raise BackendRequestError(
                        "get invocation statistics", response.status, text
                    )

                text = await response.text()

        if not text.strip():
            return None
        return DailyInvocationStatistic.model_validate_json(text)

    def _file_form(self, path: Path, stream: object) -> aiohttp.FormData:
        """Build the multipart body carrying ``stream`` as field ``file``."""
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        data = aiohttp.FormData()
        data.add_field("file", stream, filename=path.name, content_type=content_type)
        logger.debug(f"Prepared multipart upload for {path.name} ({content_type})")
        return data
