"""Host capabilities handed explicitly to the resolver and the supervisor.

Nothing in :mod:`replicant` reads ambient state for command execution,
interactive prompts or cancellation. Callers pass implementations of the
protocols below, which keeps every component testable with small fakes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence

LOGGER = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
MISSING_EXECUTABLE_EXIT_CODE = 127


@dataclass(slots=True)
class ExecResult:
    """Captured outcome of an external command."""

    stdout: str
    stderr: str
    code: int
    killed: bool = False

    @property
    def ok(self) -> bool:
        return self.code == 0


class AbortSignal:
    """Cooperative cancellation flag with synchronously dispatched listeners."""

    def __init__(self) -> None:
        self._aborted = False
        self._listeners: List[Callable[[], None]] = []

    @property
    def aborted(self) -> bool:
        return self._aborted

    def abort(self) -> None:
        """Fire the signal once; later calls are ignored."""
        if self._aborted:
            return
        self._aborted = True
        for listener in list(self._listeners):
            listener()
        self._listeners.clear()

    def add_listener(self, listener: Callable[[], None]) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


class CommandRunner(Protocol):
    """Executes a single external command and captures its output."""

    async def exec(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: Optional[str] = None,
        timeout: Optional[float] = None,
        signal: Optional[AbortSignal] = None,
    ) -> ExecResult: ...


class UserInterface(Protocol):
    """Interactive prompts available when a human is attached."""

    async def select(self, title: str, options: Sequence[str]) -> Optional[str]: ...

    async def confirm(self, title: str, message: str) -> bool: ...


class SubprocessCommandRunner:
    """:class:`CommandRunner` backed by ``asyncio`` subprocesses."""

    async def exec(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: Optional[str] = None,
        timeout: Optional[float] = None,
        signal: Optional[AbortSignal] = None,
    ) -> ExecResult:
        workdir = Path(cwd) if cwd else None
        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=workdir,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as error:
            return ExecResult(stdout="", stderr=str(error), code=MISSING_EXECUTABLE_EXIT_CODE)

        def _kill() -> None:
            if process.returncode is None:
                LOGGER.debug("Killing %s after abort signal", command)
                process.kill()

        if signal is not None:
            if signal.aborted:
                _kill()
            else:
                signal.add_listener(_kill)

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            LOGGER.warning("%s %s timed out after %ss", command, " ".join(args), timeout)
            _kill()
            await process.wait()
            return ExecResult(
                stdout="",
                stderr=f"{command} timed out after {timeout}s",
                code=TIMEOUT_EXIT_CODE,
                killed=True,
            )
        finally:
            if signal is not None:
                signal.remove_listener(_kill)

        code = process.returncode if process.returncode is not None else 1
        return ExecResult(
            stdout=stdout.decode("utf-8", errors="replace") if stdout else "",
            stderr=stderr.decode("utf-8", errors="replace") if stderr else "",
            code=code,
            killed=bool(signal is not None and signal.aborted and code != 0),
        )


__all__ = [
    "AbortSignal",
    "CommandRunner",
    "ExecResult",
    "MISSING_EXECUTABLE_EXIT_CODE",
    "SubprocessCommandRunner",
    "TIMEOUT_EXIT_CODE",
    "UserInterface",
]
