"""Load backend configuration from YAML files."""

from pathlib import Path

import yaml

from microcks.orchestrator.models.backend_config import BackendConfig


def load_backend_config(config_file: Path) -> BackendConfig:
    """Load and validate a backend configuration.

    Relative artifact paths are resolved against the directory holding
    ``config_file``.

    Args:
        config_file: Path to the YAML configuration

    Returns:
        Parsed backend configuration

    Raises:
        FileNotFoundError: If the file or a configured artifact doesn't exist
        ValueError: If YAML is invalid or doesn't match schema

    """
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file}")

    try:
        with config_file.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_file}: {e}") from e

    if data is None:
        raise ValueError(f"Empty config file: {config_file}")
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {config_file}")

    artifacts = data.get("artifacts") or []
    if not isinstance(artifacts, list):
        raise ValueError(f"'artifacts' must be a list in {config_file}")
    data["artifacts"] = [
        _resolve_artifact_path(entry, config_file.parent) for entry in artifacts
    ]

    try:
        return BackendConfig.model_validate(data)
    except Exception as e:
        raise ValueError(f"Invalid backend config schema in {config_file}: {e}") from e


def _resolve_artifact_path(entry: object, base_dir: Path) -> object:
    """Anchor a relative ``path`` of an artifact entry at ``base_dir``."""
    if not isinstance(entry, dict) or "path" not in entry:
        return entry

    path = Path(str(entry["path"]))
    if not path.is_absolute():
        path = base_dir / path
    if not path.exists():
        raise FileNotFoundError(f"Artifact file not found: {path}")
    return {**entry, "path": path}
