"""Resolve a task (plus optional hint) into a verified local repository clone."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Literal, Optional

from ..host import AbortSignal, CommandRunner, UserInterface
from ..tools.offworld import (
    DEFAULT_OW_BINARY,
    DEFAULT_OW_TIMEOUT_SECONDS,
    MapShowEntry,
    OffworldCLI,
    OffworldError,
    OffworldErrorCode,
    build_pull_args,
)
from .disambiguate import RepoCandidate, select_candidate
from .hints import extract_repo_hint_from_task, extract_search_term

LOGGER = logging.getLogger(__name__)

ResolvedFrom = Literal["existing", "pulled"]
StatusCallback = Callable[[str], None]

PULL_CONFIRM_TITLE = "Pull repository with Offworld?"


@dataclass(frozen=True, slots=True)
class ResolvedRepo:
    """Verified repository assets handed to the reconnaissance session."""

    repo: str
    qualified_name: str
    scope: str
    clone_path: str
    reference_path: str
    resolved_from: ResolvedFrom
    search_candidates: tuple[RepoCandidate, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repo": self.repo,
            "qualified_name": self.qualified_name,
            "scope": self.scope,
            "clone_path": self.clone_path,
            "reference_path": self.reference_path,
            "resolved_from": self.resolved_from,
            "search_candidates": [candidate.summary() for candidate in self.search_candidates],
        }


def path_looks_like_clone(repo_path: str | Path | None) -> bool:
    """Return ``True`` for a directory carrying ``.git`` metadata (file or directory)."""
    if not repo_path:
        return False
    root = Path(repo_path)
    if not root.is_dir():
        return False
    marker = root / ".git"
    return marker.is_dir() or marker.is_file()


def usable_reference_path(reference_path: str | None) -> str:
    """Return ``reference_path`` when it names an existing regular file, else ``""``."""
    if not reference_path:
        return ""
    if reference_path.endswith("/") or reference_path.endswith("\\"):
        return ""
    return reference_path if Path(reference_path).is_file() else ""


def to_repo_slug(entry: MapShowEntry, fallback: str = "") -> str:
    """Canonical ``owner/repo`` for a map entry.

    An explicit full name wins; otherwise the segment after the last ``:`` of
    the qualified name (``github.com:owner/repo``) is used.
    """
    if entry.full_name:
        return entry.full_name
    qualified = entry.qualified_name or ""
    if ":" in qualified:
        return qualified.rsplit(":", 1)[1] or qualified
    return qualified or fallback


async def resolve_repo(
    task: str,
    *,
    runner: CommandRunner,
    ui: Optional[UserInterface] = None,
    repo_hint: Optional[str] = None,
    cwd: Optional[str] = None,
    signal: Optional[AbortSignal] = None,
    on_status: Optional[StatusCallback] = None,
    binary: str = DEFAULT_OW_BINARY,
    timeout: float = DEFAULT_OW_TIMEOUT_SECONDS,
) -> ResolvedRepo:
    """Turn ``task`` into a :class:`ResolvedRepo` or raise :class:`OffworldError`."""

    def status(label: str) -> None:
        LOGGER.debug("resolve: %s", label)
        if on_status is not None:
            on_status(label)

    ow = OffworldCLI(runner, binary=binary, timeout=timeout, cwd=cwd, signal=signal)

    status("checking-offworld")
    await ow.ensure_installed()

    selected_repo = repo_hint or extract_repo_hint_from_task(task)
    search_candidates: tuple[RepoCandidate, ...] = ()

    if not selected_repo:
        search_term = extract_search_term(task)
        if not search_term:
            raise OffworldError(
                "Task text is empty; nothing to search the Offworld map for.",
                OffworldErrorCode.REPO_UNRESOLVED,
                'Describe the task or pass `repo: "owner/repo"`.',
            )
        status("searching-map")
        matches = await ow.map_search(search_term)
        search_candidates = tuple(RepoCandidate.from_search_entry(match) for match in matches)
        if not search_candidates:
            raise OffworldError(
                "No Offworld map matches found for this task.",
                OffworldErrorCode.REPO_UNRESOLVED,
                "Pull a repository first, e.g. `ow pull owner/repo --clone-only`, "
                'then retry with `repo: "owner/repo"`.',
            )
        selected = await select_candidate(search_candidates, ui)
        selected_repo = selected.full_name

    if not selected_repo:
        raise OffworldError("Repository could not be determined.", OffworldErrorCode.REPO_UNRESOLVED)

    status("resolving-map-entry")
    show = await ow.map_show(selected_repo)
    if not show.found:
        raise OffworldError(
            f"Repository not found in Offworld map: {selected_repo}",
            OffworldErrorCode.REPO_UNRESOLVED,
            f"Run: {ow.format_command(build_pull_args(selected_repo))}",
            {"selected_repo": selected_repo},
        )

    effective_repo = to_repo_slug(show, fallback=selected_repo)
    pull_command = ow.format_command(build_pull_args(effective_repo))
    resolved_from: ResolvedFrom = "existing"

    if not path_looks_like_clone(show.local_path):
        if ui is not None:
            accepted = await ui.confirm(
                PULL_CONFIRM_TITLE,
                f"Replicant needs a local clone for {effective_repo}. Run {pull_command} now?",
            )
            if not accepted:
                raise OffworldError(
                    f"Pull canceled for {effective_repo}.",
                    OffworldErrorCode.PULL_REJECTED,
                    f"Run manually: {pull_command}",
                )
        status(f"pulling-repo ({pull_command})")
        await ow.pull(effective_repo)
        resolved_from = "pulled"
        status("re-resolving-map-entry")
        show = await ow.map_show(effective_repo)

    clone_path = show.local_path or ""
    clone_ok = path_looks_like_clone(clone_path)
    reference_path = usable_reference_path(show.reference_path)
    if show.reference_path and not reference_path:
        LOGGER.warning("Ignoring unusable reference path for %s: %s", effective_repo, show.reference_path)

    if not clone_ok:
        raise OffworldError(
            f"Offworld map entry is incomplete after resolution for {effective_repo}. clone={clone_ok}",
            OffworldErrorCode.MISSING_ASSETS,
            f"Run: {pull_command}",
            {"map": show.model_dump(by_alias=True), "clone_ok": clone_ok, "reference_ok": bool(reference_path)},
        )

    LOGGER.info("Resolved %s (%s) at %s", effective_repo, resolved_from, clone_path)
    return ResolvedRepo(
        repo=effective_repo,
        qualified_name=show.qualified_name or f"github.com:{effective_repo}",
        scope=show.scope or "unknown",
        clone_path=clone_path,
        reference_path=reference_path,
        resolved_from=resolved_from,
        search_candidates=search_candidates,
    )


__all__ = [
    "PULL_CONFIRM_TITLE",
    "ResolvedRepo",
    "path_looks_like_clone",
    "resolve_repo",
    "to_repo_slug",
    "usable_reference_path",
]
