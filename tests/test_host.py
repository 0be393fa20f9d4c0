from __future__ import annotations

import asyncio
import sys

import pytest

from replicant.host import (
    MISSING_EXECUTABLE_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    AbortSignal,
    SubprocessCommandRunner,
)


def test_abort_signal_fires_listeners_once() -> None:
    signal = AbortSignal()
    calls: list[str] = []

    def first() -> None:
        calls.append("first")

    def second() -> None:
        calls.append("second")

    signal.add_listener(first)
    signal.add_listener(first)
    signal.add_listener(second)
    signal.remove_listener(second)
    signal.abort()
    signal.abort()

    assert signal.aborted
    assert calls == ["first"]
    assert signal.listener_count == 0


def test_runner_captures_output(tmp_path) -> None:
    runner = SubprocessCommandRunner()

    result = asyncio.run(
        runner.exec(
            sys.executable,
            ["-c", "import os, sys; print(os.getcwd()); sys.stderr.write('warn')"],
            cwd=str(tmp_path),
            timeout=30,
        )
    )

    assert result.ok
    assert result.stdout.strip() == str(tmp_path.resolve())
    assert result.stderr == "warn"
    assert not result.killed


def test_runner_reports_missing_executable(tmp_path) -> None:
    result = asyncio.run(SubprocessCommandRunner().exec(str(tmp_path / "no-such-ow"), ["--version"]))

    assert result.code == MISSING_EXECUTABLE_EXIT_CODE
    assert not result.ok


def test_runner_kills_on_timeout() -> None:
    result = asyncio.run(
        SubprocessCommandRunner().exec(sys.executable, ["-c", "import time; time.sleep(30)"], timeout=0.2)
    )

    assert result.code == TIMEOUT_EXIT_CODE
    assert result.killed
    assert "timed out" in result.stderr


@pytest.mark.skipif(sys.platform == "win32", reason="relies on POSIX kill semantics")
def test_runner_kills_on_abort() -> None:
    signal = AbortSignal()

    async def scenario():
        task = asyncio.ensure_future(
            SubprocessCommandRunner().exec(
                sys.executable,
                ["-c", "import time; time.sleep(30)"],
                timeout=30,
                signal=signal,
            )
        )
        await asyncio.sleep(0.2)
        signal.abort()
        return await task

    result = asyncio.run(scenario())

    assert result.code != 0
    assert result.killed
    assert signal.listener_count == 0
