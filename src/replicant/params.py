"""Parameter model for the ``replicant`` tool surface."""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

MAX_TASK_LENGTH = 4000
MAX_REPO_LENGTH = 200
MAX_CWD_LENGTH = 1000

# C0/C1 control characters, newline and tab excluded.
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")
_GITHUB_URL_PREFIX_RE = re.compile(r"^https?://github\.com/")
_GITHUB_HOST_PREFIX_RE = re.compile(r"^github\.com[:/]")
_GIT_SUFFIX_RE = re.compile(r"\.git$")


def assert_no_control_chars(value: str, field_name: str) -> None:
    """Reject ``value`` when it carries control characters other than newline/tab."""
    if _CONTROL_CHARS_RE.search(value):
        raise ValueError(f"Invalid {field_name}: control characters are not allowed.")


def normalize_repo_hint(repo: str | None) -> str | None:
    """Reduce GitHub URLs and ``owner/repo.git`` forms to a bare ``owner/repo`` slug."""
    if not repo:
        return None
    trimmed = repo.strip()
    if not trimmed:
        return None
    normalized = _GITHUB_URL_PREFIX_RE.sub("", trimmed)
    normalized = _GITHUB_HOST_PREFIX_RE.sub("", normalized)
    normalized = _GIT_SUFFIX_RE.sub("", normalized)
    return normalized.strip() or None


class ReplicantParams(BaseModel):
    """Validated input accepted by the reconnaissance tool."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    task: str = Field(
        min_length=1,
        max_length=MAX_TASK_LENGTH,
        description="What to investigate in the target codebase.",
    )
    repo: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=MAX_REPO_LENGTH,
        description="Preferred repo hint (owner/repo).",
    )
    cwd: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=MAX_CWD_LENGTH,
        description="Working directory override for Offworld commands.",
    )

    @field_validator("task", "repo", "cwd")
    @classmethod
    def _reject_control_chars(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if value is not None:
            assert_no_control_chars(value, info.field_name or "value")
        return value

    @property
    def repo_hint(self) -> str | None:
        return normalize_repo_hint(self.repo)


def validate_params(payload: ReplicantParams | Mapping[str, Any]) -> ReplicantParams:
    """Coerce ``payload`` into :class:`ReplicantParams` with a readable error."""
    if isinstance(payload, ReplicantParams):
        return payload
    try:
        return ReplicantParams.model_validate(dict(payload))
    except ValidationError as error:
        first = error.errors()[0] if error.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ())) or "params"
        message = str(first.get("msg") or error)
        # Strip pydantic's "Value error, " prefix for messages raised by validators.
        message = message.removeprefix("Value error, ")
        if message.startswith("Invalid "):
            raise ValueError(message) from error
        raise ValueError(f"Invalid {location}: {message}.") from error


__all__ = [
    "MAX_CWD_LENGTH",
    "MAX_REPO_LENGTH",
    "MAX_TASK_LENGTH",
    "ReplicantParams",
    "assert_no_control_chars",
    "normalize_repo_hint",
    "validate_params",
]
