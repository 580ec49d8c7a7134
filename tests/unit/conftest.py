"""Shared fixtures for unit tests."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from microcks.orchestrator.clients.base import MicrocksClient
from microcks.orchestrator.models.artifact import (
    MainArtifact,
    SecondaryArtifact,
    SnapshotArtifact,
)


@pytest.fixture
def client() -> AsyncMock:
    """Create a backend client double."""
    return AsyncMock(spec=MicrocksClient)


@pytest.fixture
def artifact_dir(tmp_path: Path) -> Path:
    """Create a directory holding a few artifact files."""
    (tmp_path / "pastries-openapi.yaml").write_text("openapi: 3.0.2\n")
    (tmp_path / "pastries-postman.json").write_text("{}\n")
    (tmp_path / "repository.json").write_text("{}\n")
    return tmp_path


@pytest.fixture
def main_artifact(artifact_dir: Path) -> MainArtifact:
    """Create a main artifact reference."""
    return MainArtifact(path=artifact_dir / "pastries-openapi.yaml")


@pytest.fixture
def secondary_artifact(artifact_dir: Path) -> SecondaryArtifact:
    """Create a secondary artifact reference."""
    return SecondaryArtifact(path=artifact_dir / "pastries-postman.json")


@pytest.fixture
def snapshot_artifact(artifact_dir: Path) -> SnapshotArtifact:
    """Create a snapshot artifact reference."""
    return SnapshotArtifact(path=artifact_dir / "repository.json")
