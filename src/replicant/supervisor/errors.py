"""Failure taxonomy for supervised execution."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .events import SubprocessDetails


class SupervisorErrorKind(str, Enum):
    """Why a supervised run ended without a usable answer."""

    POLICY_VIOLATION = "policy_violation"
    BUDGET_EXHAUSTED_NO_ANSWER = "budget_exhausted_no_answer"
    UPSTREAM_ERROR = "upstream_error"
    PROMPT_FAILED = "prompt_failed"
    ABORTED = "aborted"
    UNSUPPORTED_TOOL = "unsupported_tool"
    INVALID_MODEL = "invalid_model"


class SupervisorError(RuntimeError):
    """Terminal failure of a run; keeps the run record and any partial answer."""

    def __init__(
        self,
        message: str,
        kind: SupervisorErrorKind,
        *,
        details: Optional["SubprocessDetails"] = None,
        final_text: str = "",
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.details = details
        self.final_text = final_text


__all__ = ["SupervisorError", "SupervisorErrorKind"]
