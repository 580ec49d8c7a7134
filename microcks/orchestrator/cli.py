"""CLI entry point for backend orchestration."""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path

import typer
from pydantic import ValidationError

from microcks.orchestrator.config_loader import load_backend_config
from microcks.orchestrator.log_stream import follow_container_logs
from microcks.orchestrator.models.backend_config import BackendConfig
from microcks.orchestrator.models.test_request import TestRequest, TestRunnerType
from microcks.orchestrator.models.test_result import RequestResponsePair, TestResult
from microcks.orchestrator.provider import MicrocksProvider, on_ready

# Configure logging - force reconfiguration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
    force=True,
)
logger = logging.getLogger(__name__)

app = typer.Typer()


def _load_config(config_file: Path) -> BackendConfig:
    """Load configuration, letting MICROCKS_URL override the base URL."""
    config = load_backend_config(config_file)
    if "MICROCKS_URL" in os.environ:
        base_url = os.environ["MICROCKS_URL"].rstrip("/")
        config = config.model_copy(update={"base_url": base_url})
    return config


@app.command()
def sync(
    config_file: Path = typer.Option(..., "--config", help="Backend config YAML"),  # noqa: B008
    container: str | None = typer.Option(
        None, help="Container whose logs announce backend startup"
    ),
    runtime: str = typer.Option("docker", help="Container CLI used to read logs"),
) -> None:
    """Wait for the backend and synchronize configured artifacts."""
    try:
        config = _load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Failed to load config: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    logger.info(f"Backend: {config.name} at {config.base_url}")
    logger.info(f"Artifacts configured: {len(config.artifacts)}")

    log_lines = follow_container_logs(container, runtime) if container else None

    try:
        asyncio.run(on_ready(config, log_lines))
    except Exception as e:
        logger.exception("Artifact synchronization failed")
        typer.echo(f"Error synchronizing artifacts: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Synchronized {len(config.artifacts)} artifacts into {config.name}")


@app.command()
def test(
    config_file: Path = typer.Option(..., "--config", help="Backend config YAML"),  # noqa: B008
    service_id: str = typer.Option(..., help="Service under test, 'name:version'"),
    endpoint: str = typer.Option(..., help="URL of the implementation to test"),
    runner_type: TestRunnerType = typer.Option(  # noqa: B008
        TestRunnerType.OPEN_API_SCHEMA, help="Validation strategy"
    ),
    timeout: float = typer.Option(5.0, help="Seconds the backend may spend"),
    operation: list[str] | None = typer.Option(  # noqa: B008
        None, help="Restrict the run to an operation (repeatable)"
    ),
) -> None:
    """Run a conformance test and print its outcome as JSON."""
    try:
        config = _load_config(config_file)
        request = TestRequest(
            service_id=service_id,
            runner_type=runner_type,
            test_endpoint=endpoint,
            timeout=timeout,
            filtered_operations=operation or None,
        )
    except (FileNotFoundError, ValueError, ValidationError) as e:
        logger.error(f"Invalid test invocation: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    provider = MicrocksProvider(config)

    try:
        result, messages = asyncio.run(_run_test(provider, request))
    except Exception as e:
        logger.exception("Test execution failed")
        typer.echo(f"Error running test: {e}", err=True)
        raise typer.Exit(code=1)

    for case in result.test_case_results:
        if case.success:
            logger.info(f"✓ {case.operation_name}")
        else:
            logger.error(f"✗ {case.operation_name}")
            for step in case.test_step_results:
                if step.message:
                    logger.error(f"  Message: {step.message}")

    output = {
        "id": result.id,
        "service_id": service_id,
        "endpoint": endpoint,
        "success": result.success,
        "in_progress": result.in_progress,
        "operations": [
            {
                "operation": case.operation_name,
                "success": case.success,
                "messages": [
                    step.message for step in case.test_step_results if step.message
                ],
                "exchanges": len(messages.get(case.operation_name, [])),
            }
            for case in result.test_case_results
        ],
    }
    typer.echo(json.dumps(output, indent=2))

    if result.in_progress:
        logger.error(f"Test {result.id} did not complete in time")
        raise typer.Exit(code=1)
    if not result.success:
        logger.error(f"Test {result.id} failed")
        raise typer.Exit(code=1)


async def _run_test(
    provider: MicrocksProvider, request: TestRequest
) -> tuple[TestResult, dict[str, list[RequestResponsePair]]]:
    """Run the test, then collect the exchanges of failed operations."""
    result = await provider.run_test(request)
    messages: dict[str, list[RequestResponsePair]] = {}
    for case in result.test_case_results:
        if not case.success:
            pairs = await provider.get_messages(result, case.operation_name)
            messages[case.operation_name] = pairs
    return result, messages


if __name__ == "__main__":  # pragma: no cover
    app()
