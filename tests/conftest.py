from __future__ import annotations

import inspect
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from replicant.host import AbortSignal, ExecResult  # noqa: E402
from replicant.supervisor.session import SessionFactoryInput  # noqa: E402

Handler = Callable[[str], Union[ExecResult, Awaitable[ExecResult]]]


def ok(stdout: Any = "") -> ExecResult:
    """Successful ``ow`` result; dicts and lists are encoded as JSON."""
    if not isinstance(stdout, str):
        stdout = json.dumps(stdout)
    return ExecResult(stdout=stdout, stderr="", code=0)


def failed(stderr: str, code: int = 1) -> ExecResult:
    return ExecResult(stdout="", stderr=stderr, code=code)


class FakeRunner:
    """Records ``ow`` argument strings and answers them through ``handler``."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.calls: List[str] = []
        self.commands: List[str] = []

    async def exec(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: Optional[str] = None,
        timeout: Optional[float] = None,
        signal: Optional[AbortSignal] = None,
    ) -> ExecResult:
        key = " ".join(args)
        self.calls.append(key)
        self.commands.append(command)
        result = self.handler(key)
        if inspect.isawaitable(result):
            result = await result
        return result


@dataclass
class FakeUI:
    """Scripted stand-in for an attached user."""

    choose: Optional[Callable[[str, Sequence[str]], Optional[str]]] = None
    accept_pull: bool = True
    selections: List[List[str]] = field(default_factory=list)
    confirmations: List[str] = field(default_factory=list)

    async def select(self, title: str, options: Sequence[str]) -> Optional[str]:
        self.selections.append(list(options))
        return self.choose(title, options) if self.choose else None

    async def confirm(self, title: str, message: str) -> bool:
        self.confirmations.append(message)
        return self.accept_pull


PromptScript = Callable[["FakeSession", str], Awaitable[None]]


class FakeSession:
    """In-memory session driven by a scripted ``prompt`` coroutine."""

    def __init__(self, script: PromptScript, on_abort: Optional[Callable[[], None]] = None) -> None:
        self.messages: List[Dict[str, Any]] = []
        self.script = script
        self.on_abort = on_abort
        self.listeners: List[Callable[[Any], None]] = []
        self.prompts: List[str] = []
        self.abort_calls = 0
        self.disposed = False

    def subscribe(self, listener: Callable[[Any], None]) -> Callable[[], None]:
        self.listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self.listeners:
                self.listeners.remove(listener)

        return unsubscribe

    def emit(self, event: Dict[str, Any]) -> None:
        for listener in list(self.listeners):
            listener(event)

    def reply(self, text: str, *, stop_reason: str = "end_turn", error_message: Optional[str] = None) -> None:
        """Append an assistant message and announce it like a real runtime."""
        message: Dict[str, Any] = {
            "role": "assistant",
            "content": [{"type": "text", "text": text}],
            "stop_reason": stop_reason,
        }
        if error_message is not None:
            message["error_message"] = error_message
        self.messages.append(message)
        self.emit({"type": "message_end", "message": message})

    async def prompt(self, text: str) -> None:
        self.prompts.append(text)
        await self.script(self, text)

    async def abort(self) -> None:
        self.abort_calls += 1
        if self.on_abort is not None:
            self.on_abort()

    def dispose(self) -> None:
        self.disposed = True


class FakeSessionFactory:
    def __init__(
        self,
        script: PromptScript,
        *,
        on_abort: Optional[Callable[[], None]] = None,
        setup: Optional[Callable[[SessionFactoryInput], None]] = None,
    ) -> None:
        self.script = script
        self.on_abort = on_abort
        self.setup = setup
        self.inputs: List[SessionFactoryInput] = []
        self.sessions: List[FakeSession] = []

    async def __call__(self, factory_input: SessionFactoryInput) -> FakeSession:
        self.inputs.append(factory_input)
        if self.setup is not None:
            self.setup(factory_input)
        session = FakeSession(self.script, self.on_abort)
        self.sessions.append(session)
        return session


@pytest.fixture()
def make_runner() -> Callable[[Handler], FakeRunner]:
    return FakeRunner


@pytest.fixture()
def make_session_factory() -> Callable[..., FakeSessionFactory]:
    return FakeSessionFactory


@pytest.fixture()
def ow_ok() -> Callable[[Any], ExecResult]:
    return ok


@pytest.fixture()
def ow_failed() -> Callable[..., ExecResult]:
    return failed


@pytest.fixture()
def clone_dir(tmp_path: Path) -> Path:
    """A directory that looks like a git clone."""
    clone = tmp_path / "clone"
    (clone / ".git").mkdir(parents=True)
    return clone


@pytest.fixture()
def reference_file(tmp_path: Path) -> Path:
    reference = tmp_path / "reference.md"
    reference.write_text("# reference\n", encoding="utf-8")
    return reference


@pytest.fixture()
def fake_ui() -> type[FakeUI]:
    return FakeUI
