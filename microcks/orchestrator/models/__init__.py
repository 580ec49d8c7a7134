"""Data models for artifacts, configuration, test requests, and results."""

from microcks.orchestrator.models.artifact import (
    ArtifactRef,
    MainArtifact,
    RemoteArtifact,
    SecondaryArtifact,
    SnapshotArtifact,
    order_artifacts,
)
from microcks.orchestrator.models.backend_config import BackendConfig
from microcks.orchestrator.models.test_request import (
    Header,
    OAuth2ClientContext,
    TestRequest,
    TestRunnerType,
)
from microcks.orchestrator.models.test_result import (
    DailyInvocationStatistic,
    Parameter,
    Request,
    RequestResponsePair,
    Response,
    TestCaseResult,
    TestResult,
    TestStepResult,
)

__all__ = [
    "ArtifactRef",
    "BackendConfig",
    "DailyInvocationStatistic",
    "Header",
    "MainArtifact",
    "OAuth2ClientContext",
    "Parameter",
    "RemoteArtifact",
    "Request",
    "RequestResponsePair",
    "Response",
    "SecondaryArtifact",
    "SnapshotArtifact",
    "TestCaseResult",
    "TestRequest",
    "TestResult",
    "TestRunnerType",
    "TestStepResult",
    "order_artifacts",
]
