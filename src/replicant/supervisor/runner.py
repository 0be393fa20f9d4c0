"""Execution supervisor for one sandboxed reconnaissance session.

:func:`run_replicant_subprocess` boots a session through the injected
factory, follows its event stream to keep :class:`SubprocessDetails` current,
and turns whatever happened into a single outcome: a bounded final answer or
a :class:`SupervisorError` carrying the run record.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from ..host import AbortSignal
from ..policy.checker import PolicyState, ToolCallPolicy
from ..policy.scope import resolve_scope
from .errors import SupervisorError, SupervisorErrorKind
from .events import DEFAULT_MAX_EVENTS, EventLog, SubprocessDetails, ToolEvent
from .phases import Phase
from .session import (
    ReconSession,
    SessionFactory,
    SessionFactoryInput,
    extract_assistant_text,
    last_assistant_message,
    parse_model,
    select_recon_tools,
)
from .truncate import DEFAULT_MAX_BYTES, DEFAULT_MAX_LINES, truncate_head

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 8
DEFAULT_MAX_TOOL_CALLS = 40
DEFAULT_HEARTBEAT_SECONDS = 1.5
DEFAULT_ABORT_GRACE_SECONDS = 1.0
NO_OUTPUT = "(no output)"
TRUNCATION_MARKER = "\n\n[replicant output truncated]"

UpdateCallback = Callable[[str, SubprocessDetails], None]


@dataclass(slots=True)
class SupervisorSettings:
    """Tunables that do not change the meaning of a run."""

    heartbeat_seconds: float = DEFAULT_HEARTBEAT_SECONDS
    max_events: int = DEFAULT_MAX_EVENTS
    max_output_lines: int = DEFAULT_MAX_LINES
    max_output_bytes: int = DEFAULT_MAX_BYTES
    abort_grace_seconds: float = DEFAULT_ABORT_GRACE_SECONDS


@dataclass(slots=True)
class SubprocessResult:
    """Successful outcome of a supervised run."""

    final_text: str
    details: SubprocessDetails


def effective_budget(value: Optional[float], default: int) -> int:
    """Floor a positive finite budget; anything else falls back to ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number <= 0:
        return default
    return max(1, math.floor(number))


def _event_tool_name(event: Mapping[str, Any]) -> str:
    name = event.get("tool_name")
    return name if isinstance(name, str) else "unknown"


class ReconSupervisor:
    """Drives a single session from boot to a terminal phase."""

    def __init__(
        self,
        *,
        cwd: str,
        system_prompt: str,
        task_prompt: str,
        tools: Iterable[str],
        session_factory: SessionFactory,
        model: Optional[str] = None,
        max_turns: Optional[int] = None,
        max_tool_calls: Optional[int] = None,
        signal: Optional[AbortSignal] = None,
        allowed_roots: Optional[Sequence[str]] = None,
        allowed_files: Optional[Sequence[str]] = None,
        on_update: Optional[UpdateCallback] = None,
        settings: Optional[SupervisorSettings] = None,
    ) -> None:
        self.cwd = cwd
        self.system_prompt = system_prompt
        self.task_prompt = task_prompt
        self.requested_tools = list(tools)
        self.session_factory = session_factory
        self.model = model
        self.signal = signal
        self.on_update = on_update
        self.settings = settings or SupervisorSettings()
        self.scope = resolve_scope(cwd, allowed_roots, allowed_files)
        self.policy_state = PolicyState()
        self.details = SubprocessDetails(
            max_turns=effective_budget(max_turns, DEFAULT_MAX_TURNS),
            max_tool_calls=effective_budget(max_tool_calls, DEFAULT_MAX_TOOL_CALLS),
            events=EventLog(self.settings.max_events),
        )
        self.policy = ToolCallPolicy(
            self.scope,
            max_turns=self.details.max_turns,
            max_tool_calls=self.details.max_tool_calls,
            state=self.policy_state,
        )
        self.final_text = ""
        self.aborted_by_signal = False
        self._session: Optional[ReconSession] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._abort_task: Optional[asyncio.Task[Any]] = None

    # ------------------------------------------------------------------ status
    def _emit(self, message: str) -> None:
        self.details.message = message
        if self.on_update is not None:
            self.on_update(self.details.status_summary(), self.details)

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(self.settings.heartbeat_seconds)
            if self.details.finished:
                continue
            if self.details.phase is Phase.EXPLORING:
                self._emit("exploring codebase")
            else:
                self._emit("waiting for output")

    # ------------------------------------------------------------------- abort
    def _on_abort(self) -> None:
        self.aborted_by_signal = True
        self.details.set_phase(Phase.ABORTED)
        LOGGER.info("Abort signal received; stopping replicant session")
        self._request_session_abort()

    def _request_session_abort(self) -> None:
        if self._session is None or self._abort_task is not None or self._loop is None:
            return
        self._abort_task = self._loop.create_task(self._session.abort())
        self._abort_task.add_done_callback(self._log_abort_outcome)

    @staticmethod
    def _log_abort_outcome(task: "asyncio.Task[Any]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            LOGGER.warning("Session abort request failed: %s", error)

    async def _settle_abort(self) -> None:
        task = self._abort_task
        if task is None or task.done():
            return
        await asyncio.wait({task}, timeout=self.settings.abort_grace_seconds)
        if not task.done():
            LOGGER.warning(
                "Session abort did not finish within %.1fs; disposing anyway",
                self.settings.abort_grace_seconds,
            )

    # ------------------------------------------------------------------ events
    def _on_event(self, event: Any) -> None:
        if not isinstance(event, Mapping):
            return
        kind = event.get("type")
        details = self.details

        if kind == "turn_start":
            turn_index = event.get("turn_index")
            if isinstance(turn_index, int) and not isinstance(turn_index, bool):
                self.policy_state.turn_index = turn_index
            return

        if kind == "turn_end":
            details.turns += 1
            return

        if kind == "tool_execution_start":
            tool_name = _event_tool_name(event)
            details.set_phase(Phase.EXPLORING)
            details.tool_calls += 1
            details.events.append(
                ToolEvent(
                    type="tool_start",
                    tool_name=tool_name,
                    timestamp=time.time(),
                    args=event.get("args"),
                )
            )
            self._emit(f"running {tool_name}")
            return

        if kind == "tool_execution_end":
            tool_name = _event_tool_name(event)
            is_error = bool(event.get("is_error"))
            details.set_phase(Phase.EXPLORING)
            if is_error:
                details.tool_errors += 1
            details.events.append(
                ToolEvent(
                    type="tool_end",
                    tool_name=tool_name,
                    timestamp=time.time(),
                    is_error=is_error,
                )
            )
            self._emit(f"tool failed: {tool_name}" if is_error else f"tool finished: {tool_name}")
            return

        if kind == "message_update":
            details.set_phase(Phase.WRITING)
            self._emit("writing findings")
            return

        if kind == "message_end":
            message = event.get("message")
            if isinstance(message, Mapping) and message.get("role") == "assistant":
                self._capture_assistant(message)
                details.set_phase(Phase.WRITING)
                self._emit("received assistant message")

    def _capture_assistant(self, message: Mapping[str, Any]) -> None:
        text = extract_assistant_text(message)
        if text:
            self.final_text = text
        stop_reason = message.get("stop_reason")
        if isinstance(stop_reason, str):
            self.details.stop_reason = stop_reason
        error_message = message.get("error_message")
        if isinstance(error_message, str) and error_message.strip():
            self.details.error_message = error_message.strip()

    # ------------------------------------------------------------------ outcome
    def _fail(
        self,
        phase: Phase,
        kind: SupervisorErrorKind,
        message: str,
        *,
        error_message: Optional[str] = None,
    ) -> SupervisorError:
        if error_message is not None:
            self.details.error_message = error_message
        self.details.conclude(phase, 1)
        LOGGER.info("Replicant session ended in %s: %s", phase.value, message)
        self._emit(message)
        return SupervisorError(message, kind, details=self.details, final_text=self.final_text)

    def _terminal_failure(self, prompt_error: Optional[BaseException]) -> Optional[SupervisorError]:
        state = self.policy_state
        details = self.details

        if state.violation:
            return self._fail(
                Phase.ERROR,
                SupervisorErrorKind.POLICY_VIOLATION,
                state.violation,
                error_message=state.violation,
            )

        if self.aborted_by_signal:
            return self._fail(Phase.ABORTED, SupervisorErrorKind.ABORTED, "Replicant subagent was aborted.")

        if prompt_error is not None:
            text = str(prompt_error) or type(prompt_error).__name__
            return self._fail(Phase.ERROR, SupervisorErrorKind.PROMPT_FAILED, text, error_message=text)

        if not self.final_text.strip() and state.turn_budget_blocked:
            return self._fail(
                Phase.ERROR,
                SupervisorErrorKind.BUDGET_EXHAUSTED_NO_ANSWER,
                state.turn_budget_blocked,
                error_message=state.turn_budget_blocked,
            )

        if details.stop_reason == "error":
            suffix = f": {details.error_message}" if details.error_message else "."
            return self._fail(
                Phase.ERROR,
                SupervisorErrorKind.UPSTREAM_ERROR,
                f"Replicant subagent reported stopReason=error{suffix}",
            )

        if details.stop_reason == "aborted":
            suffix = f": {details.error_message}" if details.error_message else "."
            return self._fail(
                Phase.ABORTED,
                SupervisorErrorKind.ABORTED,
                f"Replicant subagent reported stopReason=aborted{suffix}",
            )

        return None

    def _finish(self) -> SubprocessResult:
        truncated = truncate_head(
            self.final_text or NO_OUTPUT,
            max_lines=self.settings.max_output_lines,
            max_bytes=self.settings.max_output_bytes,
        )
        truncation = self.details.truncation
        truncation.final_text_truncated = truncated.truncated
        truncation.total_lines = truncated.total_lines
        truncation.total_bytes = truncated.total_bytes

        output = truncated.content + TRUNCATION_MARKER if truncated.truncated else truncated.content
        self.details.conclude(Phase.DONE, 0)
        LOGGER.info(
            "Replicant session completed: tools=%d errors=%d turns=%d",
            self.details.tool_calls,
            self.details.tool_errors,
            self.details.turns,
        )
        self._emit("completed")
        return SubprocessResult(final_text=output, details=self.details)

    # --------------------------------------------------------------------- run
    async def run(self) -> SubprocessResult:
        try:
            tools = select_recon_tools(self.requested_tools)
            model = parse_model(self.model)
        except SupervisorError as error:
            error.details = self.details
            self.details.error_message = str(error)
            self.details.conclude(Phase.ERROR, 1)
            raise

        self._loop = asyncio.get_running_loop()
        heartbeat: Optional[asyncio.Task[None]] = None
        unsubscribe: Optional[Callable[[], None]] = None

        try:
            self._emit("booting in-process session")
            LOGGER.debug("Booting replicant session in %s with tools %s", self.cwd, ", ".join(tools))
            try:
                self._session = await self.session_factory(
                    SessionFactoryInput(
                        cwd=self.cwd,
                        system_prompt=self.system_prompt,
                        tools=tools,
                        max_turns=self.details.max_turns,
                        max_tool_calls=self.details.max_tool_calls,
                        scope=self.scope,
                        policy=self.policy,
                        policy_state=self.policy_state,
                        model=model,
                        signal=self.signal,
                    )
                )
            except Exception as error:
                raise self._fail(
                    Phase.ERROR,
                    SupervisorErrorKind.UPSTREAM_ERROR,
                    f"Replicant subagent failed to start: {error}",
                    error_message=str(error),
                ) from error

            session = self._session
            if self.signal is not None:
                if self.signal.aborted:
                    self._on_abort()
                else:
                    self.signal.add_listener(self._on_abort)

            heartbeat = asyncio.create_task(self._heartbeat())
            unsubscribe = session.subscribe(self._on_event)

            prompt_error: Optional[Exception] = None
            try:
                await session.prompt(self.task_prompt)
            except Exception as error:
                LOGGER.debug("Replicant prompt raised", exc_info=True)
                prompt_error = error

            last = last_assistant_message(session.messages or ())
            if last is not None:
                self._capture_assistant(last)

            failure = self._terminal_failure(prompt_error)
            if failure is not None:
                if prompt_error is not None and failure.kind is SupervisorErrorKind.PROMPT_FAILED:
                    raise failure from prompt_error
                raise failure

            return self._finish()
        finally:
            if heartbeat is not None:
                heartbeat.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await heartbeat
            if unsubscribe is not None:
                unsubscribe()
            await self._settle_abort()
            if self._session is not None:
                self._session.dispose()
            if self.signal is not None:
                self.signal.remove_listener(self._on_abort)


async def run_replicant_subprocess(
    *,
    cwd: str,
    system_prompt: str,
    task_prompt: str,
    tools: Iterable[str],
    session_factory: SessionFactory,
    model: Optional[str] = None,
    max_turns: Optional[int] = None,
    max_tool_calls: Optional[int] = None,
    signal: Optional[AbortSignal] = None,
    allowed_roots: Optional[Sequence[str]] = None,
    allowed_files: Optional[Sequence[str]] = None,
    on_update: Optional[UpdateCallback] = None,
    settings: Optional[SupervisorSettings] = None,
) -> SubprocessResult:
    """Run one reconnaissance session and return its bounded final answer.

    Raises :class:`SupervisorError` for every terminal failure; the error
    keeps the :class:`SubprocessDetails` record and any partial answer.
    """
    supervisor = ReconSupervisor(
        cwd=cwd,
        system_prompt=system_prompt,
        task_prompt=task_prompt,
        tools=tools,
        session_factory=session_factory,
        model=model,
        max_turns=max_turns,
        max_tool_calls=max_tool_calls,
        signal=signal,
        allowed_roots=allowed_roots,
        allowed_files=allowed_files,
        on_update=on_update,
        settings=settings,
    )
    return await supervisor.run()


__all__ = [
    "DEFAULT_MAX_TOOL_CALLS",
    "DEFAULT_MAX_TURNS",
    "NO_OUTPUT",
    "ReconSupervisor",
    "SubprocessResult",
    "SupervisorSettings",
    "TRUNCATION_MARKER",
    "UpdateCallback",
    "effective_budget",
    "run_replicant_subprocess",
]
