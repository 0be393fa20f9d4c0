"""Sandbox policy: path scoping and per-call budget enforcement."""

from .checker import (
    PATH_SENSITIVE_TOOLS,
    PolicyState,
    ToolCallDecision,
    ToolCallPolicy,
    get_tool_call_policy_violation,
)
from .scope import ResolvedScope, has_unsafe_glob_segments, is_within_path, resolve_scope

__all__ = [
    "PATH_SENSITIVE_TOOLS",
    "PolicyState",
    "ResolvedScope",
    "ToolCallDecision",
    "ToolCallPolicy",
    "get_tool_call_policy_violation",
    "has_unsafe_glob_segments",
    "is_within_path",
    "resolve_scope",
]
