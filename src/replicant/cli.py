"""Command-line surface for replicant."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal as signals
from typing import Any, Dict, List, Optional, Sequence

import typer

from .config import DEFAULT_CONFIG_NAME, ConfigError, ReplicantConfig, load_config
from .host import AbortSignal, SubprocessCommandRunner
from .params import validate_params
from .policy.checker import get_tool_call_policy_violation
from .policy.scope import resolve_scope
from .resolution.resolver import resolve_repo
from .supervisor.session import load_session_factory
from .tool import ReplicantHost, render_call, render_result, run_replicant
from .tools.offworld import OffworldError

APP_HELP = "Offworld-powered reconnaissance subagent."

app = typer.Typer(help=APP_HELP)

LOGGER = logging.getLogger(__name__)


class TyperUI:
    """Interactive prompts on the controlling terminal."""

    async def select(self, title: str, options: Sequence[str]) -> Optional[str]:
        typer.echo(title)
        for index, option in enumerate(options, start=1):
            typer.echo(f"  {index}. {option}")
        choice = typer.prompt("Selection (blank to cancel)", default="", show_default=False).strip()
        if not choice:
            return None
        if choice.isdigit() and 1 <= int(choice) <= len(options):
            return options[int(choice) - 1]
        return choice

    async def confirm(self, title: str, message: str) -> bool:
        typer.echo(title)
        return typer.confirm(message, default=False)


def _load(config: Optional[str]) -> ReplicantConfig:
    try:
        loaded = load_config(config)
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error
    logging.basicConfig(
        level=getattr(logging, loaded.logging.level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )
    return loaded


def _echo_json(payload: Dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


def _run_with_abort(coro_factory: Any) -> Any:
    """Run ``coro_factory(signal)``; SIGINT fires the abort signal instead of killing the loop."""
    abort = AbortSignal()

    async def _main() -> Any:
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signals.SIGINT, abort.abort)
        try:
            return await coro_factory(abort)
        finally:
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(signals.SIGINT)

    return asyncio.run(_main())


@app.command()
def resolve(
    task: str = typer.Argument(..., help="Task text used to infer the repository."),
    repo: Optional[str] = typer.Option(None, "--repo", "-r", help="Repository hint (owner/repo or GitHub URL)."),
    cwd: Optional[str] = typer.Option(None, "--cwd", help="Working directory for ow commands."),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help=f"Path to the replicant configuration file (default: {DEFAULT_CONFIG_NAME} if present).",
    ),
    interactive: bool = typer.Option(
        True,
        "--interactive/--no-interactive",
        help="Prompt to pick ambiguous candidates and to confirm pulls.",
    ),
    as_json: bool = typer.Option(False, "--json", help="Emit the resolved repository as JSON."),
) -> None:
    """Resolve a task to a local Offworld clone without running the subagent."""
    loaded = _load(config)
    try:
        validated = validate_params({"task": task, "repo": repo, "cwd": cwd})
    except ValueError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error

    async def _resolve(abort: AbortSignal):
        return await resolve_repo(
            validated.task,
            runner=SubprocessCommandRunner(),
            ui=TyperUI() if interactive else None,
            repo_hint=validated.repo_hint,
            cwd=validated.cwd,
            signal=abort,
            on_status=lambda label: LOGGER.info("resolve: %s", label),
            binary=loaded.offworld.binary,
            timeout=loaded.offworld.timeout_seconds,
        )

    try:
        resolved = _run_with_abort(_resolve)
    except OffworldError as error:
        typer.echo(f"{error.message} [{error.code.value}]")
        if error.remediation:
            typer.echo(error.remediation)
        raise typer.Exit(code=1) from error

    if as_json:
        _echo_json(resolved.to_dict())
        return

    typer.echo(f"repo: {resolved.repo}")
    typer.echo(f"qualified name: {resolved.qualified_name}")
    typer.echo(f"scope: {resolved.scope}")
    typer.echo(f"clone: {resolved.clone_path}")
    typer.echo(f"reference: {resolved.reference_path or '(none)'}")
    typer.echo(f"resolved from: {resolved.resolved_from}")
    for candidate in resolved.search_candidates:
        typer.echo(f"- candidate {candidate.label}")


@app.command("check-policy")
def check_policy(
    tool_name: str = typer.Argument(..., help="Tool name, e.g. read, grep, find or ls."),
    tool_input: str = typer.Option("{}", "--input", "-i", help="Tool arguments as a JSON object."),
    cwd: str = typer.Option(".", "--cwd", help="Directory relative paths resolve against."),
    root: List[str] = typer.Option(None, "--root", help="Allowed root (repeatable)."),
    allowed_file: List[str] = typer.Option(None, "--file", help="Allowed file (repeatable)."),
    turn_index: int = typer.Option(0, "--turn-index", min=0, help="Zero-based turn index."),
    tool_calls: int = typer.Option(0, "--tool-calls", min=0, help="Tool calls already made."),
    max_turns: int = typer.Option(10, "--max-turns", min=1, help="Turn budget."),
    max_tool_calls: int = typer.Option(60, "--max-tool-calls", min=1, help="Tool-call budget."),
) -> None:
    """Evaluate one proposed tool call against scope and budgets."""
    try:
        arguments = json.loads(tool_input)
    except json.JSONDecodeError as error:
        typer.echo(f"--input is not valid JSON: {error}")
        raise typer.Exit(code=1) from error

    violation = get_tool_call_policy_violation(
        tool_name=tool_name,
        input=arguments,
        turn_index=turn_index,
        tool_calls=tool_calls,
        max_turns=max_turns,
        max_tool_calls=max_tool_calls,
        scope=resolve_scope(cwd, root or [], allowed_file or []),
    )
    if violation is None:
        typer.echo("allowed")
        return
    typer.echo(violation)
    raise typer.Exit(code=1)


@app.command()
def run(
    task: str = typer.Argument(..., help="Reconnaissance task for the subagent."),
    repo: Optional[str] = typer.Option(None, "--repo", "-r", help="Repository hint (owner/repo or GitHub URL)."),
    cwd: Optional[str] = typer.Option(None, "--cwd", help="Working directory for ow commands."),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help=f"Path to the replicant configuration file (default: {DEFAULT_CONFIG_NAME} if present).",
    ),
    factory: Optional[str] = typer.Option(
        None,
        "--session-factory",
        help="Session factory import path (module:attribute); overrides session.factory.",
    ),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model as provider/model."),
    expanded: bool = typer.Option(False, "--expanded", help="Show every tool call instead of the last few."),
    as_json: bool = typer.Option(False, "--json", help="Emit the result details as JSON."),
) -> None:
    """Resolve the repository and run the read-only reconnaissance subagent."""
    loaded = _load(config)
    factory_path = factory or loaded.session.factory
    if not factory_path:
        typer.echo("No session factory configured. Set session.factory or pass --session-factory.")
        raise typer.Exit(code=1)
    try:
        session_factory = load_session_factory(factory_path)
    except (ImportError, AttributeError, TypeError, ValueError) as error:
        typer.echo(f"Failed to load session factory {factory_path}: {error}")
        raise typer.Exit(code=1) from error

    params: Dict[str, Any] = {"task": task}
    if repo is not None:
        params["repo"] = repo
    if cwd is not None:
        params["cwd"] = cwd

    if not as_json:
        typer.echo(render_call(params))

    async def _run(abort: AbortSignal):
        host = ReplicantHost(
            runner=SubprocessCommandRunner(),
            session_factory=session_factory,
            ui=TyperUI(),
            model=model,
            signal=abort,
            config=loaded,
        )
        return await run_replicant(
            params,
            host,
            on_update=lambda status, _details: LOGGER.info("%s", status),
        )

    result = _run_with_abort(_run)
    if as_json:
        _echo_json({"text": result.text, "is_error": result.is_error, "details": result.details.to_dict()})
    else:
        typer.echo(render_result(result, expanded=expanded))
    if result.is_error:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
