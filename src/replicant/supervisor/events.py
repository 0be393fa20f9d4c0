"""Observable run record for a supervised reconnaissance session."""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Deque, Dict, Iterator, List, Literal, Optional

from .phases import Phase, is_terminal

DEFAULT_MAX_EVENTS = 120

ToolEventType = Literal["tool_start", "tool_end"]


@dataclass(frozen=True, slots=True)
class ToolEvent:
    """Start or end of one tool execution inside the session."""

    type: ToolEventType
    tool_name: str
    timestamp: float
    args: Any = None
    is_error: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.type,
            "tool_name": self.tool_name,
            "timestamp": self.timestamp,
        }
        if self.args is not None:
            payload["args"] = self.args
        if self.is_error is not None:
            payload["is_error"] = self.is_error
        return payload


class EventLog:
    """Fixed-capacity, insertion-ordered buffer; the oldest entry is evicted first."""

    def __init__(self, capacity: int = DEFAULT_MAX_EVENTS) -> None:
        if capacity <= 0:
            raise ValueError("EventLog capacity must be positive.")
        self._items: Deque[ToolEvent] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    def append(self, event: ToolEvent) -> None:
        self._items.append(event)

    def __iter__(self) -> Iterator[ToolEvent]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> ToolEvent:
        return self._items[index]

    def starts(self) -> List[ToolEvent]:
        return [event for event in self._items if event.type == "tool_start"]

    def to_list(self) -> List[Dict[str, Any]]:
        return [event.to_dict() for event in self._items]


@dataclass(slots=True)
class TruncationInfo:
    """How the final answer was bounded."""

    final_text_truncated: bool = False
    total_lines: int = 0
    total_bytes: int = 0


@dataclass(slots=True)
class SubprocessDetails:
    """Externally observable state of one supervised run."""

    max_turns: int
    max_tool_calls: int
    phase: Phase = Phase.BOOTING
    message: str = "starting subagent"
    tool_calls: int = 0
    tool_errors: int = 0
    turns: int = 0
    exit_code: Optional[int] = None
    stop_reason: Optional[str] = None
    error_message: Optional[str] = None
    truncation: TruncationInfo = field(default_factory=TruncationInfo)
    events: EventLog = field(default_factory=EventLog)

    def set_phase(self, phase: Phase) -> bool:
        """Move to ``phase`` unless a terminal phase was already reached."""
        if is_terminal(self.phase):
            return False
        self.phase = phase
        return True

    def conclude(self, phase: Phase, exit_code: int) -> None:
        """Record the single authoritative terminal outcome of the run."""
        self.phase = phase
        self.exit_code = exit_code

    @property
    def finished(self) -> bool:
        return is_terminal(self.phase)

    def status_summary(self) -> str:
        return f"replicant {self.phase.value}: tools={self.tool_calls} errors={self.tool_errors}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "message": self.message,
            "tool_calls": self.tool_calls,
            "tool_errors": self.tool_errors,
            "turns": self.turns,
            "max_turns": self.max_turns,
            "max_tool_calls": self.max_tool_calls,
            "exit_code": self.exit_code,
            "stop_reason": self.stop_reason,
            "error_message": self.error_message,
            "truncation": asdict(self.truncation),
            "events": self.events.to_list(),
        }


__all__ = [
    "DEFAULT_MAX_EVENTS",
    "EventLog",
    "SubprocessDetails",
    "ToolEvent",
    "TruncationInfo",
]
