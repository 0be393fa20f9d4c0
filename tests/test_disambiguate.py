from __future__ import annotations

import asyncio

import pytest

from replicant.resolution.disambiguate import (
    MAX_CANDIDATES,
    RepoCandidate,
    rank_candidates,
    select_candidate,
)
from replicant.tools.offworld import OffworldError, OffworldErrorCode


def _candidates(*pairs: tuple[str, float]) -> list[RepoCandidate]:
    return [RepoCandidate(full_name=name, qualified_name=f"github.com:{name}", score=score) for name, score in pairs]


def test_single_candidate_is_returned_without_prompting(fake_ui) -> None:
    ui = fake_ui(choose=lambda title, options: pytest.fail("select should not be called"))
    (only,) = _candidates(("acme/widgets", 0.4))

    assert asyncio.run(select_candidate([only], ui)) is only
    assert ui.selections == []


def test_non_interactive_ambiguity_never_auto_selects() -> None:
    candidates = _candidates(("badlogic/pi-mono", 0.97), ("default-anton/pi-librarian", 0.11))

    with pytest.raises(OffworldError) as excinfo:
        asyncio.run(select_candidate(candidates))

    error = excinfo.value
    assert error.code is OffworldErrorCode.REPO_AMBIGUOUS
    assert "explicit `repo`" in (error.remediation or "")
    assert error.details["candidates"] == [
        {"repo": "badlogic/pi-mono", "score": 0.97},
        {"repo": "default-anton/pi-librarian", "score": 0.11},
    ]


def test_interactive_selection_offers_ranked_labels(fake_ui) -> None:
    candidates = _candidates(("acme/low", 0.2), ("acme/high", 0.9))
    ui = fake_ui(choose=lambda title, options: options[0])

    picked = asyncio.run(select_candidate(candidates, ui))

    assert picked.full_name == "acme/high"
    assert ui.selections == [["acme/high (score 0.9)", "acme/low (score 0.2)"]]


def test_interactive_selection_matches_exact_label_not_prefix(fake_ui) -> None:
    candidates = _candidates(("acme/repo", 0.92), ("acme/repo-tools", 0.91))
    ui = fake_ui(choose=lambda title, options: options[1])

    picked = asyncio.run(select_candidate(candidates, ui))

    assert picked.full_name == "acme/repo-tools"


def test_interactive_selection_accepts_bare_repo_name(fake_ui) -> None:
    candidates = _candidates(("acme/repo", 0.92), ("acme/repo-tools", 0.91))
    ui = fake_ui(choose=lambda title, options: "acme/repo-tools (score 0.5)")

    picked = asyncio.run(select_candidate(candidates, ui))

    assert picked.full_name == "acme/repo-tools"


def test_interactive_cancel_is_unresolved(fake_ui) -> None:
    candidates = _candidates(("acme/a", 0.5), ("acme/b", 0.4))

    with pytest.raises(OffworldError) as excinfo:
        asyncio.run(select_candidate(candidates, fake_ui()))

    assert excinfo.value.code is OffworldErrorCode.REPO_UNRESOLVED
    assert excinfo.value.message == "Repository selection canceled."


def test_interactive_unknown_pick_is_ambiguous(fake_ui) -> None:
    candidates = _candidates(("acme/a", 0.5), ("acme/b", 0.4))
    ui = fake_ui(choose=lambda title, options: "someone/else")

    with pytest.raises(OffworldError) as excinfo:
        asyncio.run(select_candidate(candidates, ui))

    assert excinfo.value.code is OffworldErrorCode.REPO_AMBIGUOUS


def test_only_top_candidates_are_offered(fake_ui) -> None:
    candidates = _candidates(*[(f"acme/repo-{index}", index / 10) for index in range(10)])
    ui = fake_ui(choose=lambda title, options: options[-1])

    picked = asyncio.run(select_candidate(candidates, ui))

    assert len(ui.selections[0]) == MAX_CANDIDATES
    assert picked.full_name == "acme/repo-4"


def test_rank_candidates_is_stable_for_ties() -> None:
    ranked = rank_candidates(_candidates(("a/first", 0.5), ("a/second", 0.5), ("a/top", 0.8)))

    assert [candidate.full_name for candidate in ranked] == ["a/top", "a/first", "a/second"]
