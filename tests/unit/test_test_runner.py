"""Tests for the test execution coordinator."""

import asyncio
from unittest.mock import AsyncMock

import aiohttp
import pytest

from microcks.orchestrator.cancellation import CancellationToken
from microcks.orchestrator.errors import BackendRequestError
from microcks.orchestrator.models.test_request import TestRequest, TestRunnerType
from microcks.orchestrator.models.test_result import (
    Request,
    RequestResponsePair,
    Response,
    TestCaseResult,
    TestResult,
    TestStepResult,
)
from microcks.orchestrator.test_runner import (
    TestExecutionCoordinator,
    build_test_case_id,
)


@pytest.fixture
def test_request() -> TestRequest:
    """Create a test request with no timeout."""
    return TestRequest(
        service_id="API Pastries:0.0.1",
        runner_type=TestRunnerType.OPEN_API_SCHEMA,
        test_endpoint="http://bad-impl:3001",
        timeout=0,
    )


def _result(in_progress: bool, success: bool = False) -> TestResult:
    return TestResult(id="abc", test_number=2, in_progress=in_progress, success=success)


async def test_run_test_polls_until_complete(
    client: AsyncMock, test_request: TestRequest
) -> None:
    """run_test polls until the run leaves the in-progress state."""
    client.submit_test.return_value = _result(True)
    client.refresh_test_result.side_effect = [
        _result(True),
        _result(False, success=True),
        _result(False, success=True),
    ]
    coordinator = TestExecutionCoordinator(
        client, initial_delay=0, poll_interval=0.01, grace_period=5
    )

    result = await coordinator.run_test(test_request)

    assert result.success is True
    assert result.in_progress is False
    client.submit_test.assert_awaited_once_with(test_request)
    assert client.refresh_test_result.await_count == 3
    client.refresh_test_result.assert_awaited_with("abc")


async def test_run_test_returns_within_one_poll_cycle(
    client: AsyncMock, test_request: TestRequest
) -> None:
    """A run finishing on the first poll returns after initial delay plus poll."""
    client.submit_test.return_value = _result(True)
    client.refresh_test_result.return_value = _result(False, success=True)
    coordinator = TestExecutionCoordinator(client)
    loop = asyncio.get_running_loop()
    start = loop.time()

    result = await coordinator.run_test(test_request)

    elapsed = loop.time() - start
    assert result.in_progress is False
    assert 0.09 <= elapsed < 0.5


async def test_run_test_returns_in_progress_result_after_deadline(
    client: AsyncMock, test_request: TestRequest
) -> None:
    """A run that never completes yields its in-progress result, not an error."""
    client.submit_test.return_value = _result(True)
    client.refresh_test_result.return_value = _result(True)
    coordinator = TestExecutionCoordinator(
        client, initial_delay=0.01, poll_interval=0.01, grace_period=0.1
    )
    loop = asyncio.get_running_loop()
    start = loop.time()

    result = await asyncio.wait_for(coordinator.run_test(test_request), 2)

    assert result.in_progress is True
    assert loop.time() - start >= 0.09


async def test_run_test_deadline_includes_request_timeout(
    client: AsyncMock, test_request: TestRequest
) -> None:
    """The polling deadline is the request timeout plus the grace period."""
    request = test_request.model_copy(update={"timeout": 0.2})
    client.submit_test.return_value = _result(True)
    client.refresh_test_result.return_value = _result(True)
    coordinator = TestExecutionCoordinator(
        client, initial_delay=0, poll_interval=0.01, grace_period=0.05
    )
    loop = asyncio.get_running_loop()
    start = loop.time()

    await asyncio.wait_for(coordinator.run_test(request), 2)

    assert loop.time() - start >= 0.24


async def test_run_test_stops_polling_on_caller_cancellation(
    client: AsyncMock, test_request: TestRequest
) -> None:
    """A caller cancellation ends polling and returns the latest result."""
    client.submit_test.return_value = _result(True)
    client.refresh_test_result.return_value = _result(True)
    coordinator = TestExecutionCoordinator(
        client, initial_delay=10, poll_interval=10, grace_period=60
    )
    token = CancellationToken()
    asyncio.get_running_loop().call_later(0.02, token.cancel)

    result = await asyncio.wait_for(coordinator.run_test(test_request, token), 2)

    assert result.in_progress is True
    client.refresh_test_result.assert_awaited_once_with("abc")


async def test_run_test_propagates_refresh_failure(
    client: AsyncMock, test_request: TestRequest
) -> None:
    """A failing refresh call is surfaced to the caller."""
    client.submit_test.return_value = _result(True)
    client.refresh_test_result.side_effect = BackendRequestError(
        "refresh test result", 500
    )
    coordinator = TestExecutionCoordinator(client, initial_delay=0)

    with pytest.raises(BackendRequestError, match="refresh test result"):
        await coordinator.run_test(test_request)


async def test_run_test_continues_polling_after_transient_error(
    client: AsyncMock, test_request: TestRequest
) -> None:
    """A dropped connection while polling is logged and polling goes on."""
    client.submit_test.return_value = _result(True)
    client.refresh_test_result.side_effect = [
        aiohttp.ClientConnectionError("reset"),
        _result(False, success=True),
        _result(False, success=True),
    ]
    coordinator = TestExecutionCoordinator(
        client, initial_delay=0, poll_interval=0, grace_period=5
    )

    result = await coordinator.run_test(test_request)

    assert result.success is True
    assert client.refresh_test_result.await_count == 3


async def test_run_test_keeps_last_result_when_final_refresh_fails(
    client: AsyncMock, test_request: TestRequest
) -> None:
    """A transient error on the final refresh returns the last polled result."""
    client.submit_test.return_value = _result(True)
    client.refresh_test_result.side_effect = [
        _result(False, success=True),
        asyncio.TimeoutError(),
    ]
    coordinator = TestExecutionCoordinator(client, initial_delay=0)

    result = await coordinator.run_test(test_request)

    assert result.success is True
    assert result.in_progress is False


async def test_run_test_reports_schema_mismatch(
    client: AsyncMock, test_request: TestRequest
) -> None:
    """A bad implementation yields a failed result with the mismatch message."""
    failed = TestResult(
        id="abc",
        test_number=1,
        in_progress=False,
        success=False,
        test_case_results=[
            TestCaseResult(
                operation_name="GET /pastries",
                success=False,
                test_step_results=[
                    TestStepResult(
                        success=False,
                        message="string found, number expected",
                    )
                ],
            )
        ],
    )
    client.submit_test.return_value = _result(True)
    client.refresh_test_result.return_value = failed
    coordinator = TestExecutionCoordinator(client, initial_delay=0)

    result = await coordinator.run_test(test_request)

    assert result.success is False
    assert len(result.test_case_results) == 1
    message = result.test_case_results[0].test_step_results[0].message
    assert message is not None
    assert "string found, number expected" in message


def test_build_test_case_id_encodes_operation_name() -> None:
    """Slashes become '!' and the operation name is URL-encoded."""
    result = TestResult(id="abc", test_number=2)

    assert build_test_case_id(result, "GET /pastries") == "abc-2-GET+%21pastries"


def test_build_test_case_id_nested_path() -> None:
    """Every slash of a nested path is replaced."""
    result = TestResult(id="r1", test_number=1)

    assert (
        build_test_case_id(result, "GET /pastries/{name}")
        == "r1-1-GET+%21pastries%21%7Bname%7D"
    )


async def test_get_messages_uses_composite_test_case_id(client: AsyncMock) -> None:
    """get_messages fetches the pairs of the derived test case in one call."""
    pair = RequestResponsePair(
        request=Request(content=None), response=Response(status="200")
    )
    client.get_messages.return_value = [pair, pair, pair]
    coordinator = TestExecutionCoordinator(client)

    messages = await coordinator.get_messages(_result(False), "GET /pastries")

    assert len(messages) == 3
    client.get_messages.assert_awaited_once_with("abc", "abc-2-GET+%21pastries")
