"""YAML configuration for the replicant tool and CLI."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .supervisor.runner import (
    DEFAULT_ABORT_GRACE_SECONDS,
    DEFAULT_HEARTBEAT_SECONDS,
    SupervisorSettings,
)
from .supervisor.events import DEFAULT_MAX_EVENTS
from .supervisor.session import RECON_TOOLS
from .supervisor.truncate import DEFAULT_MAX_BYTES, DEFAULT_MAX_LINES
from .tools.offworld import DEFAULT_OW_BINARY, DEFAULT_OW_TIMEOUT_SECONDS

DEFAULT_CONFIG_NAME = "replicant.yaml"


class ConfigError(ValueError):
    """Raised when a configuration file cannot be read or validated."""


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class BudgetConfig(_Section):
    max_turns: int = Field(default=10, gt=0)
    max_tool_calls: int = Field(default=60, gt=0)


class OffworldConfig(_Section):
    binary: str = DEFAULT_OW_BINARY
    timeout_seconds: float = Field(default=DEFAULT_OW_TIMEOUT_SECONDS, gt=0)


class SupervisorConfig(_Section):
    heartbeat_seconds: float = Field(default=DEFAULT_HEARTBEAT_SECONDS, gt=0)
    max_events: int = Field(default=DEFAULT_MAX_EVENTS, gt=0)
    max_output_lines: int = Field(default=DEFAULT_MAX_LINES, gt=0)
    max_output_bytes: int = Field(default=DEFAULT_MAX_BYTES, gt=0)
    abort_grace_seconds: float = Field(default=DEFAULT_ABORT_GRACE_SECONDS, ge=0)

    def to_settings(self) -> SupervisorSettings:
        return SupervisorSettings(
            heartbeat_seconds=self.heartbeat_seconds,
            max_events=self.max_events,
            max_output_lines=self.max_output_lines,
            max_output_bytes=self.max_output_bytes,
            abort_grace_seconds=self.abort_grace_seconds,
        )


class AgentConfig(_Section):
    model: Optional[str] = None
    tools: List[str] = Field(default_factory=lambda: list(RECON_TOOLS))


class SessionConfig(_Section):
    factory: Optional[str] = None


class LoggingConfig(_Section):
    level: str = "WARNING"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if not isinstance(logging.getLevelName(normalized), int):
            raise ValueError(f"unknown logging level {value!r}")
        return normalized


class ReplicantConfig(_Section):
    """Top-level configuration; every section is optional."""

    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    offworld: OffworldConfig = Field(default_factory=OffworldConfig)
    supervisor: SupervisorConfig = Field(default_factory=SupervisorConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def parse_config(data: Any) -> ReplicantConfig:
    """Validate an already-loaded YAML document."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")
    try:
        return ReplicantConfig.model_validate(data)
    except ValidationError as error:
        raise ConfigError(f"Invalid configuration: {error}") from error


def load_config(config_path: Path | str | None = None) -> ReplicantConfig:
    """Load ``config_path``.

    Without an explicit path, a missing ``replicant.yaml`` in the working
    directory yields the defaults. An explicit path must exist.
    """
    if config_path is None:
        path = Path(DEFAULT_CONFIG_NAME)
        if not path.exists():
            return ReplicantConfig()
    else:
        path = Path(config_path)
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config {path}: {error}") from error

    return parse_config(data)


__all__ = [
    "AgentConfig",
    "BudgetConfig",
    "ConfigError",
    "DEFAULT_CONFIG_NAME",
    "LoggingConfig",
    "OffworldConfig",
    "ReplicantConfig",
    "SessionConfig",
    "SupervisorConfig",
    "load_config",
    "parse_config",
]
