"""Artifact references pushed into the backend during synchronization."""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, FilePath


class _Artifact(BaseModel):
    model_config = ConfigDict(frozen=True)


class MainArtifact(_Artifact):
    """Primary service-defining file (e.g. an OpenAPI contract)."""

    kind: Literal["main"] = "main"
    path: FilePath = Field(..., description="Local artifact file")

    def describe(self) -> str:
        """Return a short label used in logs and errors."""
        return self.path.name


class SecondaryArtifact(_Artifact):
    """Supplementary file (e.g. a Postman collection or examples)."""

    kind: Literal["secondary"] = "secondary"
    path: FilePath = Field(..., description="Local artifact file")

    def describe(self) -> str:
        """Return a short label used in logs and errors."""
        return self.path.name


class RemoteArtifact(_Artifact):
    """Artifact the backend downloads itself from a URL."""

    kind: Literal["remote"] = "remote"
    url: str = Field(..., min_length=1, description="Remote artifact URL")
    main: bool = Field(default=True, description="Import as a main artifact")

    def describe(self) -> str:
        """Return a short label used in logs and errors."""
        return self.url


class SnapshotArtifact(_Artifact):
    """Repository snapshot imported wholesale."""

    kind: Literal["snapshot"] = "snapshot"
    path: FilePath = Field(..., description="Local snapshot file")

    def describe(self) -> str:
        """Return a short label used in logs and errors."""
        return self.path.name


ArtifactRef = Annotated[
    MainArtifact | SecondaryArtifact | RemoteArtifact | SnapshotArtifact,
    Field(discriminator="kind"),
]

# Synchronization order: main, then secondary, then remote, then snapshots.
SYNC_ORDER: dict[str, int] = {"main": 0, "secondary": 1, "remote": 2, "snapshot": 3}


def order_artifacts(artifacts: list[ArtifactRef]) -> list[ArtifactRef]:
    """Sort artifacts by category, keeping configured order within a category."""
    return sorted(artifacts, key=lambda artifact: SYNC_ORDER[artifact.kind])
