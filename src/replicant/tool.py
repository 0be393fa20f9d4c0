"""The ``replicant`` tool operation.

``run_replicant`` validates the parameters, resolves the target repository
through Offworld and then supervises a read-only reconnaissance session
scoped to the resolved clone and reference document. Expected failures are
returned as structured error results instead of being raised.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional

from .config import ReplicantConfig
from .host import AbortSignal, CommandRunner, UserInterface
from .params import ReplicantParams, validate_params
from .prompts import (
    DEFAULT_AGENT,
    AgentDefinition,
    build_subprocess_system_prompt,
    build_task_prompt,
    model_for_recon,
    tools_for_agent,
)
from .resolution.disambiguate import RepoCandidate
from .resolution.resolver import ResolvedFrom, ResolvedRepo, resolve_repo
from .supervisor.errors import SupervisorError
from .supervisor.events import SubprocessDetails
from .supervisor.runner import run_replicant_subprocess
from .supervisor.session import SessionFactory
from .tools.offworld import OffworldError

LOGGER = logging.getLogger(__name__)

ToolStatus = Literal["running", "done", "error"]

PREFERRED_ARG_KEYS = ("path", "file_path", "pattern", "glob", "query", "file", "url", "type", "offset", "limit")
PATH_ARG_KEYS = frozenset({"path", "file", "file_path"})
MAX_ARG_DISPLAY = 64
MAX_SUMMARY_KEYS = 3
COLLAPSED_TOOL_CALLS = 8
TASK_PREVIEW_LENGTH = 90


@dataclass(slots=True)
class ReplicantToolDetails:
    """Structured payload attached to every tool update and result."""

    status: ToolStatus
    repo: Optional[str] = None
    qualified_name: Optional[str] = None
    scope: Optional[str] = None
    clone_path: Optional[str] = None
    reference_path: Optional[str] = None
    resolved_from: Optional[ResolvedFrom] = None
    search_candidates: tuple[RepoCandidate, ...] = ()
    phase: Optional[str] = None
    subprocess: Optional[SubprocessDetails] = None
    remediation: Optional[str] = None
    partial_text: Optional[str] = None

    @classmethod
    def for_repo(
        cls,
        status: ToolStatus,
        repo: Optional[ResolvedRepo],
        **extra: Any,
    ) -> "ReplicantToolDetails":
        if repo is None:
            return cls(status=status, **extra)
        return cls(
            status=status,
            repo=repo.repo,
            qualified_name=repo.qualified_name,
            scope=repo.scope,
            clone_path=repo.clone_path,
            reference_path=repo.reference_path or None,
            resolved_from=repo.resolved_from,
            search_candidates=repo.search_candidates,
            **extra,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "status": self.status,
            "repo": self.repo,
            "qualified_name": self.qualified_name,
            "scope": self.scope,
            "clone_path": self.clone_path,
            "reference_path": self.reference_path,
            "resolved_from": self.resolved_from,
            "search_candidates": [candidate.summary() for candidate in self.search_candidates],
            "phase": self.phase,
            "subprocess": self.subprocess.to_dict() if self.subprocess is not None else None,
            "remediation": self.remediation,
            "partial_text": self.partial_text,
        }
        return {key: value for key, value in payload.items() if value is not None}


@dataclass(slots=True)
class ToolResult:
    text: str
    details: ReplicantToolDetails
    is_error: bool = False


ToolUpdateCallback = Callable[[str, ReplicantToolDetails], None]


@dataclass(slots=True)
class ReplicantHost:
    """Capabilities the caller lends to a single tool invocation."""

    runner: CommandRunner
    session_factory: SessionFactory
    ui: Optional[UserInterface] = None
    model: Optional[str] = None
    signal: Optional[AbortSignal] = None
    config: ReplicantConfig = field(default_factory=ReplicantConfig)


def agent_from_config(config: ReplicantConfig, base: AgentDefinition = DEFAULT_AGENT) -> AgentDefinition:
    return dataclasses.replace(
        base,
        model=config.agent.model or base.model,
        tools=tuple(config.agent.tools),
    )


async def run_replicant(
    params: ReplicantParams | Mapping[str, Any],
    host: ReplicantHost,
    *,
    on_update: Optional[ToolUpdateCallback] = None,
) -> ToolResult:
    """Resolve the repository for ``params.task`` and run the reconnaissance session."""
    resolved: Optional[ResolvedRepo] = None
    subprocess_details: Optional[SubprocessDetails] = None

    def emit(status_text: str, details: ReplicantToolDetails) -> None:
        if on_update is not None:
            on_update(status_text, details)

    try:
        validated = validate_params(params)
        config = host.config
        max_turns = config.budget.max_turns
        max_tool_calls = config.budget.max_tool_calls
        agent = agent_from_config(config)

        emit("replicant: resolving Offworld map", ReplicantToolDetails(status="running", phase="booting"))

        def on_status(label: str) -> None:
            emit(f"replicant: {label}", ReplicantToolDetails(status="running", phase="booting"))

        resolved = await resolve_repo(
            validated.task,
            runner=host.runner,
            ui=host.ui,
            repo_hint=validated.repo_hint,
            cwd=validated.cwd,
            signal=host.signal,
            on_status=on_status,
            binary=config.offworld.binary,
            timeout=config.offworld.timeout_seconds,
        )

        tools = tools_for_agent(agent)
        current_repo = resolved

        def on_subprocess_update(status_text: str, details: SubprocessDetails) -> None:
            nonlocal subprocess_details
            subprocess_details = details
            emit(
                status_text,
                ReplicantToolDetails.for_repo(
                    "running",
                    current_repo,
                    phase=details.phase.value,
                    subprocess=details,
                ),
            )

        run_result = await run_replicant_subprocess(
            cwd=resolved.clone_path,
            system_prompt=build_subprocess_system_prompt(agent.system_prompt, tools, max_turns, max_tool_calls),
            task_prompt=build_task_prompt(validated.task, resolved, max_turns, max_tool_calls),
            tools=tools,
            session_factory=host.session_factory,
            model=model_for_recon(host.model, agent.model),
            max_turns=max_turns,
            max_tool_calls=max_tool_calls,
            signal=host.signal,
            allowed_roots=[resolved.clone_path],
            allowed_files=[resolved.reference_path] if resolved.reference_path else [],
            on_update=on_subprocess_update,
            settings=config.supervisor.to_settings(),
        )
        subprocess_details = run_result.details

        return ToolResult(
            text=run_result.final_text,
            details=ReplicantToolDetails.for_repo(
                "done",
                resolved,
                phase=run_result.details.phase.value,
                subprocess=run_result.details,
            ),
        )
    except Exception as error:
        message = str(error) or type(error).__name__
        remediation = error.remediation if isinstance(error, OffworldError) else None
        partial_text: Optional[str] = None
        if isinstance(error, SupervisorError):
            partial_text = error.final_text.strip() or None
            if subprocess_details is None:
                subprocess_details = error.details
        LOGGER.info("replicant failed: %s", message)

        return ToolResult(
            text=f"{message}\n\n{remediation}" if remediation else message,
            details=ReplicantToolDetails.for_repo(
                "error",
                resolved,
                phase=subprocess_details.phase.value if subprocess_details is not None else "error",
                subprocess=subprocess_details,
                remediation=remediation,
                partial_text=partial_text,
            ),
            is_error=True,
        )


# --------------------------------------------------------------------- display
def to_repo_relative_display_path(raw_path: str, repo_root: Optional[str] = None) -> str:
    if not repo_root:
        return raw_path
    root = os.path.abspath(repo_root)
    target = os.path.normpath(raw_path) if os.path.isabs(raw_path) else os.path.normpath(os.path.join(root, raw_path))
    relative = os.path.relpath(target, root)
    if relative == os.curdir:
        return "."
    if relative.startswith(os.pardir) or os.path.isabs(relative):
        return raw_path
    return relative.replace("\\", "/")


def to_offworld_reference_display_path(
    raw_path: str,
    repo_root: Optional[str] = None,
    reference_path: Optional[str] = None,
) -> Optional[str]:
    if not reference_path:
        return None
    if os.path.isabs(raw_path):
        target = os.path.abspath(raw_path)
    elif repo_root:
        target = os.path.abspath(os.path.join(repo_root, raw_path))
    else:
        target = os.path.abspath(raw_path)
    if target != os.path.abspath(reference_path):
        return None
    return f"offworld/references/{os.path.basename(reference_path)}"


def format_tool_arg_value(
    value: Any,
    key: Optional[str] = None,
    repo_root: Optional[str] = None,
    reference_path: Optional[str] = None,
) -> str:
    if isinstance(value, str):
        normalized = re.sub(r"\s+", " ", value).strip()
        if normalized and key in PATH_ARG_KEYS:
            normalized = to_offworld_reference_display_path(
                normalized, repo_root, reference_path
            ) or to_repo_relative_display_path(normalized, repo_root)
        if not normalized:
            return '""'
        if len(normalized) > MAX_ARG_DISPLAY:
            return f"{normalized[: MAX_ARG_DISPLAY - 3]}..."
        return normalized
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return f"[{len(value)}]"
    if isinstance(value, Mapping):
        return "{...}"
    return str(value)


def summarize_tool_args(
    args: Any,
    repo_root: Optional[str] = None,
    reference_path: Optional[str] = None,
) -> str:
    """One-line summary of up to three tool arguments, path-like ones first."""
    if not isinstance(args, Mapping) or not args:
        return ""
    keys = [key for key in PREFERRED_ARG_KEYS if key in args] or list(args)
    parts: List[str] = []
    for key in keys[:MAX_SUMMARY_KEYS]:
        formatted = format_tool_arg_value(args[key], key, repo_root, reference_path)
        parts.append(formatted if key in PATH_ARG_KEYS else f"{key}={formatted}")
    return " ".join(parts)


def format_tool_call_lines(
    subprocess: Optional[SubprocessDetails],
    repo_root: Optional[str] = None,
    reference_path: Optional[str] = None,
) -> List[str]:
    if subprocess is None:
        return []
    lines: List[str] = []
    for event in subprocess.events.starts():
        summary = summarize_tool_args(event.args, repo_root, reference_path)
        lines.append(f"{event.tool_name} {summary}" if summary else event.tool_name)
    return lines


def render_call(params: Mapping[str, Any]) -> str:
    """Two-line header for a pending invocation: repository and task preview."""
    repo = params.get("repo") if isinstance(params.get("repo"), str) else "(auto)"
    task = params.get("task")
    task_text = re.sub(r"\s+", " ", task).strip() if isinstance(task, str) else ""
    if len(task_text) > TASK_PREVIEW_LENGTH:
        task_text = f"{task_text[:TASK_PREVIEW_LENGTH]}..."
    return f"replicant {repo}\n{task_text or '(no task)'}"


def render_result(result: ToolResult, *, expanded: bool = False) -> str:
    """Plain-text rendering of a finished invocation."""
    details = result.details
    icon = {"done": "ok", "error": "error"}.get(details.status, "running")
    lines = [f"[{icon}] replicant {details.repo or '(unknown repo)'}"]
    if details.reference_path:
        lines.append(f"ref: {details.reference_path}")
    if details.clone_path:
        lines.append(f"path: {details.clone_path}")

    if details.subprocess is not None:
        calls = format_tool_call_lines(details.subprocess, details.clone_path, details.reference_path)
        lines.append("")
        lines.append(f"tool calls={details.subprocess.tool_calls} errors={details.subprocess.tool_errors}")
        visible = calls if expanded else calls[-COLLAPSED_TOOL_CALLS:]
        if len(calls) > len(visible):
            lines.append(f"... {len(calls) - len(visible)} earlier tool calls")
        lines.extend(visible)

    lines.append("")
    lines.append(result.text)
    if result.is_error and details.partial_text:
        lines.append("")
        lines.append("partial answer:")
        lines.append(details.partial_text)
    return "\n".join(lines)


__all__ = [
    "ReplicantHost",
    "ReplicantToolDetails",
    "ToolResult",
    "ToolUpdateCallback",
    "agent_from_config",
    "format_tool_arg_value",
    "format_tool_call_lines",
    "render_call",
    "render_result",
    "run_replicant",
    "summarize_tool_args",
    "to_offworld_reference_display_path",
    "to_repo_relative_display_path",
]
