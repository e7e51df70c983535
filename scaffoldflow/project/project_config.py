"""Project configuration: which tools back each collaborator.

Example scaffoldflow.yaml:
    tracking: false
    collaborators:
      scaffold-generator:
        command: php artisan blueprint:build --json
        artifact_kind: model
      migrator:
        command: [php, artisan, migrate, --force]
        output_format: lines
        artifact_kind: migration
        timeout_seconds: 300
      code-formatter:
        command: vendor/bin/pint --format=json
        cwd: app
        env: {XDEBUG_MODE: "off"}

An optional ``phases:`` list replaces the default phase table; each entry
uses the keys accepted by :func:`scaffoldflow.workflow.phase_specs.phase_from_dict`.
"""

import logging
import shlex
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from scaffoldflow.collaborators.base import CollaboratorAdapter
from scaffoldflow.collaborators.command import CommandCollaborator
from scaffoldflow.config import ArtifactKind, EngineSettings
from scaffoldflow.errors import ConfigurationError
from scaffoldflow.workflow.phase_registry import PhaseRegistry
from scaffoldflow.workflow.phase_specs import default_registry, registry_from_dicts

logger = logging.getLogger(__name__)


class CollaboratorConfig(BaseModel):
    """How to run one external collaborator."""

    command: list[str]
    timeout_seconds: float | None = None  # Default: EngineSettings.command_timeout
    output_format: Literal["json", "lines", "none"] = "json"
    artifact_kind: ArtifactKind = ArtifactKind.FORMATTED_FILE
    cwd: str | None = None  # Relative to the config file's directory
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("command", mode="before")
    @classmethod
    def _split_command(cls, value: Any) -> Any:
        if isinstance(value, str):
            return shlex.split(value)
        return value

    @field_validator("command")
    @classmethod
    def _non_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("command must not be empty")
        return value


class ProjectConfig(BaseModel):
    """Contents of scaffoldflow.yaml."""

    collaborators: dict[str, CollaboratorConfig] = Field(default_factory=dict)
    phases: list[dict[str, Any]] | None = None
    tracking: bool = False
    base_dir: Path = Field(default=Path("."), exclude=True)

    def build_registry(self) -> PhaseRegistry:
        """Phase table from ``phases:`` or the default one."""
        if self.phases is None:
            return default_registry()
        return registry_from_dicts(self.phases)

    def build_adapter(self, settings: EngineSettings | None = None) -> CollaboratorAdapter:
        """Adapter with a CommandCollaborator per configured collaborator."""
        settings = settings or EngineSettings()
        adapter = CollaboratorAdapter()
        for collaborator_id, cfg in self.collaborators.items():
            cwd = self.base_dir / cfg.cwd if cfg.cwd else self.base_dir
            adapter.register(
                CommandCollaborator(
                    collaborator_id,
                    cfg.command,
                    cwd=cwd,
                    timeout=cfg.timeout_seconds or settings.command_timeout,
                    output_format=cfg.output_format,
                    artifact_kind=cfg.artifact_kind,
                    env=cfg.env or None,
                )
            )
        return adapter

    def missing_collaborators(self, registry: PhaseRegistry, known: list[str]) -> list[str]:
        """Collaborator ids used by ``registry`` that nothing provides."""
        provided = set(self.collaborators) | set(known)
        needed = []
        for phase in registry:
            specs = [*phase.actions, *([phase.rollback] if phase.rollback else [])]
            for spec in specs:
                if spec.collaborator_id not in provided and spec.collaborator_id not in needed:
                    needed.append(spec.collaborator_id)
        return needed


def load_project_config(path: Path | str) -> ProjectConfig:
    """Load and validate a project configuration file.

    Args:
        path: Path to scaffoldflow.yaml

    Returns:
        ProjectConfig with ``base_dir`` set to the file's directory

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    try:
        config = ProjectConfig.model_validate({**data, "base_dir": path.parent.resolve()})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config file {path}", detail=str(e)) from e

    logger.info(f"Loaded {len(config.collaborators)} collaborator(s) from {path}")
    return config
