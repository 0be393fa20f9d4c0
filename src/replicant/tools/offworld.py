"""Thin wrapper around the Offworld ``ow`` command line.

Only four command shapes may ever reach the process runner::

    ow --version
    ow map show <repo> --json
    ow map search <term> --json
    ow pull <repo> --clone-only

Anything else is rejected before execution so that a hostile task or repo
hint cannot smuggle extra flags into the invocation.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.type_adapter import TypeAdapter

from ..host import AbortSignal, CommandRunner, ExecResult

LOGGER = logging.getLogger(__name__)

DEFAULT_OW_BINARY = "ow"
DEFAULT_OW_TIMEOUT_SECONDS = 20 * 60
OW_INSTALL_HINT = "Install Offworld: curl -fsSL https://offworld.sh/install | bash"

T = TypeVar("T")


class OffworldErrorCode(str, Enum):
    """Failure taxonomy for repository resolution."""

    OW_MISSING = "ow_missing"
    REPO_UNRESOLVED = "repo_unresolved"
    REPO_AMBIGUOUS = "repo_ambiguous"
    MISSING_ASSETS = "missing_assets"
    PULL_REJECTED = "pull_rejected"
    PULL_FAILED = "pull_failed"
    INVALID_MAP = "invalid_map"


class OffworldError(RuntimeError):
    """Raised when a repository cannot be resolved into a usable local clone."""

    def __init__(
        self,
        message: str,
        code: OffworldErrorCode,
        remediation: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.remediation = remediation
        self.details: Dict[str, Any] = dict(details or {})

    @property
    def message(self) -> str:
        return str(self)


class MapShowEntry(BaseModel):
    """Payload of ``ow map show <repo> --json``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    found: bool
    scope: Optional[str] = None
    qualified_name: Optional[str] = Field(default=None, alias="qualifiedName")
    full_name: Optional[str] = Field(default=None, alias="fullName")
    local_path: Optional[str] = Field(default=None, alias="localPath")
    primary: Optional[str] = None
    reference_path: Optional[str] = Field(default=None, alias="referencePath")
    keywords: List[str] = Field(default_factory=list)


class MapSearchEntry(BaseModel):
    """Single ranked hit from ``ow map search <term> --json``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    qualified_name: str = Field(alias="qualifiedName")
    full_name: str = Field(alias="fullName")
    local_path: str = Field(default="", alias="localPath")
    primary: str = ""
    keywords: List[str] = Field(default_factory=list)
    score: float = 0.0


def build_pull_args(repo: str) -> list[str]:
    """Arguments for a clone-only fetch of ``repo``."""
    return ["pull", repo, "--clone-only"]


def format_ow_command(args: Sequence[str], binary: str = DEFAULT_OW_BINARY) -> str:
    """Render ``args`` as the shell command a user could run by hand."""
    return " ".join([binary, *args])


def is_allowed_command(args: Sequence[str]) -> bool:
    """Return ``True`` when ``args`` matches one of the permitted command shapes."""
    shape = list(args)
    if shape == ["--version"]:
        return True
    if len(shape) == 4 and shape[0] == "map" and shape[1] in {"show", "search"} and shape[3] == "--json":
        return _is_positional(shape[2])
    if len(shape) == 3 and shape[0] == "pull" and shape[2] == "--clone-only":
        return _is_positional(shape[1])
    return False


def _is_positional(value: str) -> bool:
    return bool(value.strip()) and not value.startswith("-")


def _parse_json(raw: str, context: str, model: type[T]) -> T:
    """Decode ``raw`` and validate it against ``model``; failures are ``invalid_map``."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as error:
        raise OffworldError(
            f"Failed to parse JSON from {context}.",
            OffworldErrorCode.INVALID_MAP,
            details={"context": context, "raw": raw},
        ) from error
    try:
        return TypeAdapter(model).validate_python(data)
    except ValidationError as error:
        raise OffworldError(
            f"Unexpected JSON shape from {context}.",
            OffworldErrorCode.INVALID_MAP,
            details={"context": context, "raw": raw, "errors": error.errors()},
        ) from error


class OffworldCLI:
    """Allowlisted access to ``ow`` through an injected :class:`CommandRunner`."""

    def __init__(
        self,
        runner: CommandRunner,
        *,
        binary: str = DEFAULT_OW_BINARY,
        timeout: float = DEFAULT_OW_TIMEOUT_SECONDS,
        cwd: str | None = None,
        signal: AbortSignal | None = None,
    ) -> None:
        self._runner = runner
        self.binary = binary
        self.timeout = timeout
        self.cwd = cwd
        self.signal = signal

    # ------------------------------------------------------------------ ow IO
    async def _run_ow(self, args: Sequence[str]) -> ExecResult:
        if not is_allowed_command(args):
            raise OffworldError(
                f"Disallowed ow command: {format_ow_command(args, self.binary)}",
                OffworldErrorCode.INVALID_MAP,
            )
        LOGGER.debug("Running %s", format_ow_command(args, self.binary))
        return await self._runner.exec(
            self.binary,
            list(args),
            cwd=self.cwd,
            timeout=self.timeout,
            signal=self.signal,
        )

    def format_command(self, args: Sequence[str]) -> str:
        return format_ow_command(args, self.binary)

    async def ensure_installed(self) -> None:
        """Fail with ``ow_missing`` unless ``ow --version`` succeeds."""
        result = await self._run_ow(["--version"])
        if result.code != 0:
            raise OffworldError(
                "Offworld CLI (`ow`) is not available.",
                OffworldErrorCode.OW_MISSING,
                OW_INSTALL_HINT,
                {"stderr": result.stderr, "stdout": result.stdout, "code": result.code},
            )

    async def map_show(self, repo: str) -> MapShowEntry:
        args = ["map", "show", repo, "--json"]
        result = await self._run_ow(args)
        command = self.format_command(args)
        if result.code != 0:
            raise OffworldError(
                f"Failed to run {command}.",
                OffworldErrorCode.INVALID_MAP,
                details={"stderr": result.stderr, "stdout": result.stdout, "code": result.code},
            )
        return _parse_json(result.stdout, command, MapShowEntry)

    async def map_search(self, term: str) -> list[MapSearchEntry]:
        args = ["map", "search", term, "--json"]
        result = await self._run_ow(args)
        command = self.format_command(args)
        if result.code != 0:
            raise OffworldError(
                f"Failed to run {command}.",
                OffworldErrorCode.INVALID_MAP,
                details={"stderr": result.stderr, "stdout": result.stdout, "code": result.code},
            )
        return _parse_json(result.stdout, command, List[MapSearchEntry])

    async def pull(self, repo: str) -> None:
        """Fetch a clone of ``repo`` without generating reference documents."""
        args = build_pull_args(repo)
        command = self.format_command(args)
        LOGGER.info("Pulling %s via %s", repo, command)
        result = await self._run_ow(args)
        if result.code != 0:
            raise OffworldError(
                f"Failed to pull {repo}.",
                OffworldErrorCode.PULL_FAILED,
                f"Run manually: {command}",
                {"stdout": result.stdout, "stderr": result.stderr, "code": result.code, "command": command},
            )


__all__ = [
    "DEFAULT_OW_BINARY",
    "DEFAULT_OW_TIMEOUT_SECONDS",
    "MapSearchEntry",
    "MapShowEntry",
    "OW_INSTALL_HINT",
    "OffworldCLI",
    "OffworldError",
    "OffworldErrorCode",
    "build_pull_args",
    "format_ow_command",
    "is_allowed_command",
]
