"""Candidate disambiguation for map search results."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..host import UserInterface
from ..tools.offworld import MapSearchEntry, OffworldError, OffworldErrorCode

MAX_CANDIDATES = 6
SELECT_TITLE = "Choose repository for replicant"
EXPLICIT_REPO_REMEDIATION = "Re-run with an explicit `repo` value."

_SCORE_SUFFIX_RE = re.compile(r"\s+\(score [^)]+\)\s*$")


@dataclass(frozen=True, slots=True)
class RepoCandidate:
    """Ranked repository match returned by a map search."""

    full_name: str
    qualified_name: str = ""
    local_path: str = ""
    reference_path: str = ""
    keywords: tuple[str, ...] = field(default_factory=tuple)
    score: float = 0.0

    @classmethod
    def from_search_entry(cls, entry: MapSearchEntry) -> "RepoCandidate":
        return cls(
            full_name=entry.full_name,
            qualified_name=entry.qualified_name,
            local_path=entry.local_path,
            reference_path=entry.primary,
            keywords=tuple(entry.keywords),
            score=entry.score,
        )

    @property
    def label(self) -> str:
        return f"{self.full_name} (score {_format_score(self.score)})"

    def summary(self) -> Dict[str, Any]:
        return {"repo": self.full_name, "score": self.score}


def _format_score(score: float) -> str:
    if float(score).is_integer():
        return str(int(score))
    return repr(float(score))


def rank_candidates(candidates: Sequence[RepoCandidate]) -> List[RepoCandidate]:
    """Order candidates by descending score, keeping search order for ties."""
    return sorted(candidates, key=lambda candidate: -candidate.score)


async def select_candidate(
    candidates: Sequence[RepoCandidate],
    ui: Optional[UserInterface] = None,
) -> RepoCandidate:
    """Pick exactly one candidate, never guessing when no human is attached.

    A single candidate short-circuits. With ``ui`` the top candidates are
    offered as labelled options; without it any ambiguity is an error, even
    when one score dominates.
    """
    if not candidates:
        raise OffworldError("No repository candidates to choose from.", OffworldErrorCode.REPO_UNRESOLVED)
    if len(candidates) == 1:
        return candidates[0]

    top = rank_candidates(candidates)[:MAX_CANDIDATES]
    summaries = [candidate.summary() for candidate in top]

    if ui is None:
        raise OffworldError(
            "Multiple Offworld map matches found; repository is ambiguous in non-interactive mode.",
            OffworldErrorCode.REPO_AMBIGUOUS,
            'Re-run with an explicit `repo` value (e.g. `repo: "owner/repo"`).',
            {"candidates": summaries},
        )

    options = {candidate.label: candidate for candidate in top}
    picked = await ui.select(SELECT_TITLE, list(options))
    if not picked:
        raise OffworldError(
            "Repository selection canceled.",
            OffworldErrorCode.REPO_UNRESOLVED,
            EXPLICIT_REPO_REMEDIATION,
        )

    exact = options.get(picked)
    if exact is not None:
        return exact

    picked_repo = _SCORE_SUFFIX_RE.sub("", picked)
    for candidate in top:
        if candidate.full_name == picked_repo:
            return candidate

    raise OffworldError(
        "Repository selection did not match available candidates.",
        OffworldErrorCode.REPO_AMBIGUOUS,
        EXPLICIT_REPO_REMEDIATION,
        {"picked": picked, "candidates": summaries},
    )


__all__ = [
    "MAX_CANDIDATES",
    "RepoCandidate",
    "SELECT_TITLE",
    "rank_candidates",
    "select_candidate",
]
