"""Engine settings and per-repository doc testing configuration, with YAML support."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Any, Protocol

import yaml
from pydantic import Field, ValidationError

from docverify_core.errors import DocTestConfigError
from docverify_core.schemas import BaseSchema, DocTestConfig

logger = logging.getLogger(__name__)


class EngineSettings(BaseSchema):
    """Process-level settings shared by every suite run."""

    sandbox_root: str = str(Path(tempfile.gettempdir()) / "docverify-sandbox")
    max_output_bytes: int = Field(default=50_000, ge=1)
    max_workers: int = Field(default=4, ge=1)
    max_documents: int = Field(default=50, ge=1)
    history_db_path: str = ".docverify/history.db"
    safe_path: str = "/usr/local/bin:/usr/bin:/bin"
    memory_limit_mb: int | None = 512
    show_progress: bool = False


def load_settings(yaml_path: str | Path) -> EngineSettings:
    """Load engine settings from a YAML file.

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        ValueError: If YAML is invalid or has out-of-range values
    """
    yaml_path = Path(yaml_path)

    if not yaml_path.exists():
        raise FileNotFoundError(f"Settings file not found: {yaml_path}")

    with open(yaml_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data:
        raise ValueError(f"Empty or invalid YAML file: {yaml_path}")

    try:
        return EngineSettings.from_dict(data)
    except Exception as e:
        raise ValueError(f"Invalid settings in {yaml_path}: {e}") from e


def save_settings(settings: EngineSettings, yaml_path: str | Path) -> None:
    yaml_path = Path(yaml_path)
    yaml_path.parent.mkdir(parents=True, exist_ok=True)
    with open(yaml_path, "w", encoding="utf-8") as f:
        yaml.dump(settings.to_dict(), f, default_flow_style=False, sort_keys=False, indent=2)


def parse_doc_test_config(data: dict[str, Any] | None) -> DocTestConfig:
    """Validate a raw ``doc_testing`` mapping, filling in defaults."""
    try:
        return DocTestConfig.from_dict(data or {})
    except ValidationError as e:
        raise DocTestConfigError(f"Invalid doc testing configuration: {e}") from e


class ConfigStore(Protocol):
    def get(self, repository_id: str) -> DocTestConfig: ...

    def update(self, repository_id: str, **changes: Any) -> DocTestConfig: ...


class YamlConfigStore:
    """
    Per-repository doc testing config kept in one YAML file.

    Layout::

        repositories:
          my-repo:
            doc_testing:
              enabled: true
              languages: [python, js]
              timeout: 10

    A repository without an entry gets the defaults (doc testing disabled).
    """

    def __init__(self, yaml_path: str | Path) -> None:
        self.yaml_path = Path(yaml_path)

    def _load(self) -> dict[str, Any]:
        if not self.yaml_path.exists():
            return {}
        try:
            with open(self.yaml_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise DocTestConfigError(f"Unreadable config file {self.yaml_path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise DocTestConfigError(f"Config file {self.yaml_path} must contain a mapping")
        return data

    def get(self, repository_id: str) -> DocTestConfig:
        repositories = self._load().get("repositories") or {}
        entry = repositories.get(repository_id) or {}
        return parse_doc_test_config(entry.get("doc_testing"))

    def update(self, repository_id: str, **changes: Any) -> DocTestConfig:
        """Merge partial changes over the current config and persist the result."""
        data = self._load()
        current = self.get(repository_id).to_dict()
        unknown = set(changes) - set(current)
        if unknown:
            raise DocTestConfigError(f"Unknown config option(s): {', '.join(sorted(unknown))}")
        current.update({key: value for key, value in changes.items() if value is not None})
        config = parse_doc_test_config(current)

        repositories = data.setdefault("repositories", {})
        entry = repositories.setdefault(repository_id, {})
        entry["doc_testing"] = config.to_dict()

        self.yaml_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.yaml_path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, indent=2)
        logger.info(f"Updated doc testing config for {repository_id}")
        return config
