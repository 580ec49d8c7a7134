"""Configuration for one orchestrated backend instance."""

from pydantic import BaseModel, Field, field_validator

from microcks.orchestrator.models.artifact import ArtifactRef


class BackendConfig(BaseModel):
    """Connection settings, artifacts, and timings for a backend."""

    name: str = Field(default="microcks", min_length=1, description="Logical name")
    base_url: str = Field(..., min_length=1, description="Backend base URL")
    artifacts: list[ArtifactRef] = Field(
        default_factory=list, description="Artifacts to synchronize once ready"
    )
    startup_marker: str = Field(
        default="Started MicrocksApplication",
        min_length=1,
        description="Log line fragment printed once the backend has booted",
    )
    startup_timeout: float | None = Field(
        default=None, gt=0, description="Bound on waiting for the startup marker"
    )
    health_retries: int = Field(default=3, ge=1)
    health_retry_delay: float = Field(default=0.1, ge=0)
    sync_attempts: int = Field(default=5, ge=1)
    sync_retry_delay: float = Field(default=0.1, ge=0)
    test_initial_delay: float = Field(default=0.1, ge=0)
    test_poll_interval: float = Field(default=0.2, ge=0)
    test_grace_period: float = Field(default=1.0, ge=0)
    request_timeout: float = Field(
        default=30.0, gt=0, description="Total timeout of a single HTTP call"
    )

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("base_url must not be empty")
        return value
