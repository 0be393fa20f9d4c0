"""Tool-call policy for the reconnaissance session.

``get_tool_call_policy_violation`` is the pure decision function: given a
proposed tool call and the current budget/scope state it returns either
``None`` or a human readable violation. :class:`ToolCallPolicy` is the
stateful hook the session runtime calls before executing each tool; it
records violations in :class:`PolicyState` and decides between a hard stop
(abort the whole session) and a soft block on the final turn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional

from .scope import ResolvedScope, has_unsafe_glob_segments, is_within_path, normalize_tool_path, resolve_path

LOGGER = logging.getLogger(__name__)

PATH_SENSITIVE_TOOLS = frozenset({"read", "grep", "find", "ls"})


@dataclass(slots=True)
class PolicyState:
    """Mutable budget/violation record shared by the supervisor and the hook.

    ``violation`` and ``turn_budget_blocked`` are write-once: the first
    reason wins and later ones are only appended to ``blocked``.
    """

    turn_index: int = 0
    tool_calls: int = 0
    violation: Optional[str] = None
    turn_budget_blocked: Optional[str] = None
    blocked: List[str] = field(default_factory=list)

    def record_violation(self, reason: str) -> None:
        self.blocked.append(reason)
        if self.violation is None:
            self.violation = reason

    def record_turn_budget_block(self, reason: str) -> None:
        self.blocked.append(reason)
        if self.turn_budget_blocked is None:
            self.turn_budget_blocked = reason


@dataclass(frozen=True, slots=True)
class ToolCallDecision:
    """Answer returned to the session runtime for a blocked tool call."""

    block: bool
    reason: str


def _tool_input(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _raw_path(tool_input: Mapping[str, Any]) -> str:
    for key in ("path", "file_path"):
        candidate = tool_input.get(key)
        if isinstance(candidate, str):
            return candidate
    return "."


def get_tool_call_policy_violation(
    *,
    tool_name: str,
    input: Any,
    turn_index: int,
    tool_calls: int,
    max_turns: int,
    max_tool_calls: int,
    scope: ResolvedScope,
) -> Optional[str]:
    """Return the violation for a proposed tool call, or ``None`` when allowed."""
    if turn_index >= max_turns - 1:
        human_turn = min(turn_index + 1, max_turns)
        return (
            f"Replicant subagent turn budget exceeded ({human_turn}/{max_turns}) "
            "before producing a final answer."
        )

    if tool_calls >= max_tool_calls:
        return (
            f"Replicant subagent tool call budget exceeded ({tool_calls}/{max_tool_calls}). "
            "Narrow the task for focused exploration."
        )

    if tool_name not in PATH_SENSITIVE_TOOLS:
        return None
    if scope.is_open:
        return None

    tool_input = _tool_input(input)
    raw_path = _raw_path(tool_input)

    pattern = tool_input.get("pattern")
    if tool_name == "find" and isinstance(pattern, str) and has_unsafe_glob_segments(pattern):
        return (
            f"Replicant subagent attempted out-of-scope find pattern: {pattern}. "
            "Parent-directory and absolute patterns are not allowed."
        )

    glob = tool_input.get("glob")
    if tool_name == "grep" and isinstance(glob, str) and has_unsafe_glob_segments(glob):
        return (
            f"Replicant subagent attempted out-of-scope grep glob: {glob}. "
            "Parent-directory and absolute globs are not allowed."
        )

    resolved = resolve_path(scope.cwd, normalize_tool_path(raw_path))
    if any(is_within_path(resolved, root) for root in scope.allowed_roots):
        return None
    if any(resolved == allowed for allowed in scope.allowed_files):
        return None

    roots = ", ".join(scope.allowed_roots)
    files = ", ".join(scope.allowed_files) or "(none)"
    return (
        f"Replicant subagent attempted out-of-scope {tool_name} path: {raw_path}. "
        f"Allowed roots: {roots}. Allowed files: {files}."
    )


class ToolCallPolicy:
    """Pre-execution hook enforcing scope and budgets for one session."""

    def __init__(
        self,
        scope: ResolvedScope,
        *,
        max_turns: int,
        max_tool_calls: int,
        state: PolicyState,
    ) -> None:
        self.scope = scope
        self.max_turns = max_turns
        self.max_tool_calls = max_tool_calls
        self.state = state

    def on_tool_call(
        self,
        tool_name: str,
        input: Any,
        abort: Callable[[], Any],
    ) -> Optional[ToolCallDecision]:
        """Return a blocking decision, or ``None`` to let the call run.

        A violation on the final allowed turn only blocks that call so the
        model can still answer from what it has gathered. Any earlier
        violation aborts the session through ``abort``.
        """
        violation = get_tool_call_policy_violation(
            tool_name=tool_name,
            input=input,
            turn_index=self.state.turn_index,
            tool_calls=self.state.tool_calls,
            max_turns=self.max_turns,
            max_tool_calls=self.max_tool_calls,
            scope=self.scope,
        )
        if violation is None:
            self.state.tool_calls += 1
            return None

        if self.state.turn_index >= self.max_turns - 1:
            LOGGER.info("Blocked %s on final turn: %s", tool_name, violation)
            self.state.record_turn_budget_block(violation)
            return ToolCallDecision(block=True, reason=violation)

        LOGGER.warning("Aborting session after policy violation: %s", violation)
        self.state.record_violation(violation)
        abort()
        return ToolCallDecision(block=True, reason=violation)


__all__ = [
    "PATH_SENSITIVE_TOOLS",
    "PolicyState",
    "ToolCallDecision",
    "ToolCallPolicy",
    "get_tool_call_policy_violation",
]
