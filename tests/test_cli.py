from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

from replicant.cli import app

runner = CliRunner()

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="fake ow is a POSIX shell script")

SESSION_MODULE = '''
class Session:
    def __init__(self, factory_input):
        self.factory_input = factory_input
        self.messages = []
        self._listeners = []

    def subscribe(self, listener):
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    async def prompt(self, text):
        for listener in list(self._listeners):
            listener({"type": "tool_execution_start", "tool_name": "ls", "args": {"path": "."}})
            listener({"type": "tool_execution_end", "tool_name": "ls", "is_error": False})
        message = {
            "role": "assistant",
            "content": [{"type": "text", "text": "widget answer"}],
            "stop_reason": "end_turn",
        }
        self.messages.append(message)
        for listener in list(self._listeners):
            listener({"type": "message_end", "message": message})

    async def abort(self):
        pass

    def dispose(self):
        pass


async def create(factory_input):
    return Session(factory_input)


not_callable = 42
'''


def _write_fake_ow(tmp_path: Path, clone: Path, reference: Path) -> Path:
    show = json.dumps(
        {
            "found": True,
            "qualifiedName": "github.com:acme/widget",
            "scope": "project",
            "localPath": str(clone),
            "referencePath": str(reference),
        }
    )
    script = tmp_path / "ow"
    script.write_text(
        "\n".join(
            [
                "#!/bin/sh",
                'if [ "$1" = "--version" ]; then',
                "  echo 'ow 0.3.8'",
                "  exit 0",
                "fi",
                'if [ "$1" = "map" ] && [ "$2" = "show" ] && [ "$3" = "acme/widget" ]; then',
                "  cat <<'EOF'",
                show,
                "EOF",
                "  exit 0",
                "fi",
                'echo "unexpected: $*" >&2',
                "exit 2",
                "",
            ]
        ),
        encoding="utf-8",
    )
    script.chmod(0o755)
    return script


@pytest.fixture()
def workspace(tmp_path: Path, clone_dir: Path, reference_file: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Temporary cwd with a fake ``ow`` binary wired in through ``replicant.yaml``."""
    binary = _write_fake_ow(tmp_path, clone_dir, reference_file)
    (tmp_path / "replicant.yaml").write_text(f"offworld:\n  binary: {binary}\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_check_policy_allows_in_scope_call(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["check-policy", "read", "--input", '{"path": "src/index.ts"}', "--cwd", str(tmp_path), "--root", str(tmp_path)],
    )

    assert result.exit_code == 0
    assert result.stdout.strip() == "allowed"


def test_check_policy_reports_violation(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["check-policy", "read", "--input", '{"path": "/etc/passwd"}', "--cwd", str(tmp_path), "--root", str(tmp_path)],
    )

    assert result.exit_code == 1
    assert "out-of-scope read path: /etc/passwd" in result.stdout


def test_check_policy_reports_turn_budget(tmp_path: Path) -> None:
    result = runner.invoke(app, ["check-policy", "ls", "--turn-index", "3", "--max-turns", "4"])

    assert result.exit_code == 1
    assert "turn budget exceeded (4/4)" in result.stdout


def test_check_policy_rejects_invalid_json() -> None:
    result = runner.invoke(app, ["check-policy", "read", "--input", "{not json"])

    assert result.exit_code == 1
    assert "not valid JSON" in result.stdout


@posix_only
def test_resolve_prints_resolved_repository(workspace: Path, clone_dir: Path, reference_file: Path) -> None:
    result = runner.invoke(app, ["resolve", "look at acme/widget", "--no-interactive"])

    assert result.exit_code == 0, result.stdout
    assert "repo: acme/widget" in result.stdout
    assert f"clone: {clone_dir}" in result.stdout
    assert f"reference: {reference_file}" in result.stdout
    assert "resolved from: existing" in result.stdout


@posix_only
def test_resolve_emits_json(workspace: Path, clone_dir: Path) -> None:
    result = runner.invoke(app, ["resolve", "inspect", "--repo", "https://github.com/acme/widget", "--json"])

    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["repo"] == "acme/widget"
    assert payload["clone_path"] == str(clone_dir)
    assert payload["scope"] == "project"


def test_resolve_reports_missing_offworld(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "replicant.yaml").write_text(f"offworld:\n  binary: {tmp_path / 'missing-ow'}\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(app, ["resolve", "inspect acme/widget", "--no-interactive"])

    assert result.exit_code == 1
    assert "Offworld CLI (`ow`) is not available. [ow_missing]" in result.stdout
    assert "Install Offworld" in result.stdout


def test_resolve_rejects_invalid_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "replicant.yaml").write_text("budget:\n  max_turn: 3\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(app, ["resolve", "inspect acme/widget"])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.stdout


def test_run_requires_a_session_factory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(app, ["run", "inspect acme/widget"])

    assert result.exit_code == 1
    assert "No session factory configured" in result.stdout


def test_run_rejects_non_callable_factory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "cli_sessions_bad.py").write_text(SESSION_MODULE, encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(app, ["run", "inspect", "--session-factory", "cli_sessions_bad:not_callable"])

    assert result.exit_code == 1
    assert "Failed to load session factory cli_sessions_bad:not_callable" in result.stdout


@posix_only
def test_run_drives_a_session(workspace: Path, clone_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (workspace / "cli_sessions.py").write_text(SESSION_MODULE, encoding="utf-8")
    monkeypatch.syspath_prepend(str(workspace))

    result = runner.invoke(
        app,
        ["run", "how is acme/widget wired?", "--session-factory", "cli_sessions:create", "--expanded"],
    )

    assert result.exit_code == 0, result.stdout
    assert result.stdout.startswith("replicant (auto)\nhow is acme/widget wired?")
    assert "[ok] replicant acme/widget" in result.stdout
    assert "tool calls=1 errors=0" in result.stdout
    assert "ls ." in result.stdout
    assert result.stdout.rstrip().endswith("widget answer")


@posix_only
def test_run_emits_json(workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (workspace / "cli_sessions_json.py").write_text(SESSION_MODULE, encoding="utf-8")
    monkeypatch.syspath_prepend(str(workspace))

    result = runner.invoke(
        app,
        ["run", "inspect", "--repo", "acme/widget", "--session-factory", "cli_sessions_json:create", "--json"],
    )

    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["is_error"] is False
    assert payload["text"] == "widget answer"
    assert payload["details"]["status"] == "done"
    assert payload["details"]["subprocess"]["tool_calls"] == 1


def test_explicit_missing_config_is_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(app, ["resolve", "inspect acme/widget", "--config", str(tmp_path / "absent.yaml")])

    assert result.exit_code == 1
    assert "Config file not found" in result.stdout
