"""Prompt templates for the reconnaissance subagent."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from .resolution.resolver import ResolvedRepo
from .supervisor.session import RECON_TOOLS

DEFAULT_MODEL = "claude-sonnet-4-5"

RECON_SYSTEM_PROMPT = "\n".join(
    [
        "You are a reconnaissance specialist for external repositories resolved by Offworld.",
        "",
        "Use the provided referencePath and clonePath as primary context.",
        "Prefer evidence from source files in the resolved clone and cite concrete line ranges.",
        "",
        "Return a direct answer to the task instead of filling a fixed template.",
        "Cite file paths with line ranges for concrete code claims.",
        "If evidence is partial, state uncertainty briefly and continue with the best-supported answer.",
        "Use short bullets only when they improve clarity; otherwise respond in compact prose.",
        "",
        "Constraints:",
        "- No edits; reconnaissance only.",
        "- Do not claim facts without file-level evidence.",
        "- Keep output concise, dense, and implementation-oriented.",
    ]
)


@dataclass(frozen=True, slots=True)
class AgentDefinition:
    """Named subagent profile: prompt, preferred model and tool list."""

    name: str
    description: str
    system_prompt: str
    model: Optional[str] = None
    tools: tuple[str, ...] = field(default_factory=lambda: RECON_TOOLS)


DEFAULT_AGENT = AgentDefinition(
    name="replicant",
    description="Offworld-powered codebase exploration specialist",
    system_prompt=RECON_SYSTEM_PROMPT,
    model=DEFAULT_MODEL,
    tools=RECON_TOOLS,
)


def tools_for_agent(agent: AgentDefinition) -> list[str]:
    """Intersect the agent's tools with the read-only whitelist, in whitelist order."""
    selected = [tool for tool in RECON_TOOLS if tool in agent.tools]
    return selected or list(RECON_TOOLS)


def model_for_recon(host_model: Optional[str], agent_model: Optional[str]) -> str:
    return host_model or agent_model or DEFAULT_MODEL


def build_subprocess_system_prompt(
    base_prompt: str,
    tools: Sequence[str],
    max_turns: int,
    max_tool_calls: int,
) -> str:
    """Append the execution-policy block to the agent's base prompt."""
    return "\n".join(
        [
            base_prompt,
            "",
            "Execution policy:",
            f"- Available tools: {', '.join(tools)}",
            "- Read referencePath first before broad source exploration.",
            "- Prefer targeted grep/ls reads over wide scans.",
            "- Stop as soon as you can answer with concrete evidence.",
            f"- Hard budget: at most {max_turns} turns and {max_tool_calls} tool calls.",
            "- If evidence is insufficient, report uncertainty instead of over-searching.",
        ]
    )


def build_task_prompt(task: str, repo: ResolvedRepo, max_turns: int, max_tool_calls: int) -> str:
    """Render the user turn: the task plus the resolved repository metadata."""
    return "\n".join(
        [
            "Task:",
            task,
            "",
            "Resolved repository metadata:",
            f"- repo: {repo.repo}",
            f"- qualifiedName: {repo.qualified_name}",
            f"- scope: {repo.scope}",
            f"- resolvedFrom: {repo.resolved_from}",
            f"- referencePath: {repo.reference_path or '(none)'}",
            f"- clonePath: {repo.clone_path}",
            "",
            "Requirements:",
            "- Read referencePath first, then inspect clonePath only as needed.",
            "- Use only the paths above as sources of truth.",
            "- Cite file paths with line ranges for all concrete code claims.",
            "- Distinguish observed facts from assumptions.",
            f"- Stay within budget: max {max_turns} turns and {max_tool_calls} tool calls.",
            "- Stop searching once you have enough evidence to answer.",
            "- Keep output concise but actionable for implementation handoff.",
        ]
    )


__all__ = [
    "AgentDefinition",
    "DEFAULT_AGENT",
    "DEFAULT_MODEL",
    "RECON_SYSTEM_PROMPT",
    "build_subprocess_system_prompt",
    "build_task_prompt",
    "model_for_recon",
    "tools_for_agent",
]
