"""Contract between the supervisor and the external agent session runtime.

The runtime that executes model turns is not part of this package. It is
consumed through :class:`ReconSession` and created by a
:data:`SessionFactory`. Events and messages cross the boundary as plain
mappings::

    {"type": "turn_start", "turn_index": 0}
    {"type": "turn_end"}
    {"type": "tool_execution_start", "tool_name": "read", "args": {...}}
    {"type": "tool_execution_end", "tool_name": "read", "is_error": False}
    {"type": "message_update", "message": {...}}
    {"type": "message_end", "message": {...}}

    {"role": "assistant",
     "content": [{"type": "text", "text": "..."}],
     "stop_reason": "end_turn",
     "error_message": None}

The runtime must call ``policy.on_tool_call`` before executing every tool
and honour a returned blocking decision.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Iterable,
    Mapping,
    Optional,
    Protocol,
    Sequence,
)

from ..host import AbortSignal
from ..policy.checker import PolicyState, ToolCallPolicy
from ..policy.scope import ResolvedScope
from .errors import SupervisorError, SupervisorErrorKind

RECON_TOOLS: tuple[str, ...] = ("read", "grep", "find", "ls")

SessionEvent = Mapping[str, Any]
SessionListener = Callable[[SessionEvent], None]


class ReconSession(Protocol):
    """Opaque agent session driven by the supervisor."""

    @property
    def messages(self) -> Sequence[Mapping[str, Any]]: ...

    async def prompt(self, text: str) -> None: ...

    def subscribe(self, listener: SessionListener) -> Callable[[], None]: ...

    async def abort(self) -> None: ...

    def dispose(self) -> None: ...


@dataclass(frozen=True, slots=True)
class ModelRef:
    """Parsed ``provider/model`` selector; ``provider`` may be omitted."""

    model_id: str
    provider: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.provider}/{self.model_id}" if self.provider else self.model_id


@dataclass(slots=True)
class SessionFactoryInput:
    """Everything a runtime needs to boot a sandboxed reconnaissance session."""

    cwd: str
    system_prompt: str
    tools: tuple[str, ...]
    max_turns: int
    max_tool_calls: int
    scope: ResolvedScope
    policy: ToolCallPolicy
    policy_state: PolicyState
    model: Optional[ModelRef] = None
    signal: Optional[AbortSignal] = None


SessionFactory = Callable[[SessionFactoryInput], Awaitable[ReconSession]]


def parse_model(model: Optional[str]) -> Optional[ModelRef]:
    """Parse ``provider/model`` (or a bare model id); blank input means no preference."""
    if not model:
        return None
    trimmed = model.strip()
    if not trimmed:
        return None

    provider, slash, model_id = trimmed.partition("/")
    if not slash:
        return ModelRef(model_id=trimmed)

    provider = provider.strip()
    model_id = model_id.strip()
    if not provider or not model_id:
        raise SupervisorError(
            f"Invalid replicant model format: {model}. Expected provider/model.",
            SupervisorErrorKind.INVALID_MODEL,
        )
    return ModelRef(model_id=model_id, provider=provider)


def select_recon_tools(tool_names: Iterable[str]) -> tuple[str, ...]:
    """Validate ``tool_names`` against the read-only whitelist, dropping duplicates."""
    selected: list[str] = []
    for name in tool_names:
        if name in selected:
            continue
        if name not in RECON_TOOLS:
            raise SupervisorError(
                f"Replicant subagent requested unsupported tool: {name}",
                SupervisorErrorKind.UNSUPPORTED_TOOL,
            )
        selected.append(name)
    return tuple(selected)


def extract_assistant_text(message: Any) -> str:
    """Concatenate the text blocks of an assistant message."""
    if not isinstance(message, Mapping) or message.get("role") != "assistant":
        return ""
    content = message.get("content")
    if isinstance(content, str):
        return content
    if not isinstance(content, (list, tuple)):
        return ""
    blocks: list[str] = []
    for part in content:
        if isinstance(part, Mapping) and part.get("type") == "text" and isinstance(part.get("text"), str):
            blocks.append(part["text"])
    return "".join(blocks)


def last_assistant_message(messages: Sequence[Any]) -> Optional[Mapping[str, Any]]:
    for message in reversed(list(messages)):
        if isinstance(message, Mapping) and message.get("role") == "assistant":
            return message
    return None


def load_session_factory(import_path: str) -> SessionFactory:
    """Import a session factory from a ``module:attribute`` path."""
    module_name, sep, attribute = import_path.partition(":")
    if not sep or not module_name.strip() or not attribute.strip():
        raise ValueError(f"Session factory must look like 'package.module:factory', got {import_path!r}.")
    module = importlib.import_module(module_name.strip())
    factory = module
    for part in attribute.strip().split("."):
        factory = getattr(factory, part)
    if not callable(factory):
        raise TypeError(f"Session factory {import_path!r} is not callable.")
    return factory  # type: ignore[return-value]


__all__ = [
    "ModelRef",
    "RECON_TOOLS",
    "ReconSession",
    "SessionEvent",
    "SessionFactory",
    "SessionFactoryInput",
    "SessionListener",
    "extract_assistant_text",
    "last_assistant_message",
    "load_session_factory",
    "parse_model",
    "select_recon_tools",
]
