"""Execution supervisor for sandboxed reconnaissance sessions."""

from __future__ import annotations

from .errors import SupervisorError, SupervisorErrorKind
from .events import EventLog, SubprocessDetails, ToolEvent, TruncationInfo
from .phases import TERMINAL_PHASES, Phase, is_terminal
from .runner import (
    DEFAULT_MAX_TOOL_CALLS,
    DEFAULT_MAX_TURNS,
    NO_OUTPUT,
    TRUNCATION_MARKER,
    ReconSupervisor,
    SubprocessResult,
    SupervisorSettings,
    effective_budget,
    run_replicant_subprocess,
)
from .session import (
    RECON_TOOLS,
    ModelRef,
    ReconSession,
    SessionFactory,
    SessionFactoryInput,
    extract_assistant_text,
    last_assistant_message,
    load_session_factory,
    parse_model,
    select_recon_tools,
)
from .truncate import TruncationResult, truncate_head

__all__ = [
    "DEFAULT_MAX_TOOL_CALLS",
    "DEFAULT_MAX_TURNS",
    "EventLog",
    "ModelRef",
    "NO_OUTPUT",
    "Phase",
    "RECON_TOOLS",
    "ReconSession",
    "ReconSupervisor",
    "SessionFactory",
    "SessionFactoryInput",
    "SubprocessDetails",
    "SubprocessResult",
    "SupervisorError",
    "SupervisorErrorKind",
    "SupervisorSettings",
    "TERMINAL_PHASES",
    "TRUNCATION_MARKER",
    "ToolEvent",
    "TruncationInfo",
    "TruncationResult",
    "effective_budget",
    "extract_assistant_text",
    "is_terminal",
    "last_assistant_message",
    "load_session_factory",
    "parse_model",
    "run_replicant_subprocess",
    "select_recon_tools",
    "truncate_head",
]
