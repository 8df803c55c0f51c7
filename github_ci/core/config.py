"""Configuration file (``.github-ci.yaml``) models and persistence."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import structlog
import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from github_ci.exceptions import ConfigError

log = structlog.get_logger("github_ci.config")

VersionFormat = Literal["tag", "hash", "major"]

DEFAULT_CONFIG_FILE = ".github-ci.yaml"
DEFAULT_WORKFLOWS_PATH = ".github/workflows"
DEFAULT_CONSTRAINT = "^1.0.0"
DEFAULT_FORMAT: VersionFormat = "tag"
DEFAULT_TIMEOUT = 300.0  # seconds, whole command


class ActionConfig(BaseModel):
    """Per-action settings. ``version`` is accepted as a legacy key.

    Unknown keys are kept so that saving does not drop settings owned by
    other tools sharing the file.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    constraint: str = Field(
        default=DEFAULT_CONSTRAINT,
        validation_alias=AliasChoices("constraint", "version"),
    )


class UpgradeConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    format: VersionFormat = Field(
        default=DEFAULT_FORMAT,
        validation_alias=AliasChoices("format", "version"),
    )
    actions: dict[str, ActionConfig] = Field(default_factory=dict)


class Config(BaseModel):
    model_config = ConfigDict(extra="allow")

    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    upgrade: UpgradeConfig = Field(default_factory=UpgradeConfig)

    @property
    def version_format(self) -> VersionFormat:
        return self.upgrade.format

    def action_constraint(self, name: str) -> str | None:
        """Constraint configured for *name*, or ``None`` if the action is unlisted."""
        entry = self.upgrade.actions.get(name)
        return entry.constraint if entry is not None else None

    def set_action_constraint(self, name: str, constraint: str = DEFAULT_CONSTRAINT) -> None:
        self.upgrade.actions[name] = ActionConfig(constraint=constraint)


def load_config(path: str | Path) -> Config:
    """Load *path*; a missing file yields the default configuration."""
    path = Path(path)
    if not path.is_file():
        log.debug("config.defaults", path=str(path))
        return Config()

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"failed to read config {path}: {exc}") from exc

    if raw is None:
        return Config()
    if not isinstance(raw, dict):
        raise ConfigError(f"config {path} must be a mapping, got {type(raw).__name__}")

    # Empty sections (``upgrade:`` or a bare ``actions/checkout:``) parse as None.
    if raw.get("upgrade") is None:
        raw.pop("upgrade", None)
    upgrade = raw.get("upgrade")
    if isinstance(upgrade, dict):
        if upgrade.get("actions") is None:
            upgrade.pop("actions", None)
        actions = upgrade.get("actions")
        if isinstance(actions, dict):
            for name, entry in actions.items():
                if entry is None:
                    actions[name] = {}

    try:
        return Config.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"invalid config {path}: {exc}") from exc


def save_config(cfg: Config, path: str | Path) -> None:
    path = Path(path)
    data = cfg.model_dump(mode="json")
    try:
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"failed to write config {path}: {exc}") from exc
    log.debug("config.saved", path=str(path), actions=len(cfg.upgrade.actions))
