"""Heuristics for pulling a repository reference out of free-form task text."""

from __future__ import annotations

import re
from typing import Pattern

MAX_SEARCH_TERM_LENGTH = 120

_GITHUB_URL_RE: Pattern[str] = re.compile(
    r"(?:https?://github\.com/|github\.com[:/])([A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+)",
    re.IGNORECASE,
)
_OWNER_REPO_TOKEN_RE: Pattern[str] = re.compile(
    r"(?:^|(?<=[\s`\"'(\[]))([A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+)(?=$|[\s`\"')\].,;:!?])"
)
_SOURCE_FILE_SUFFIX_RE: Pattern[str] = re.compile(
    r"\.(?:ts|tsx|js|jsx|mjs|cjs|json|md|txt|yaml|yml|toml|rs|go|py|java|kt|swift|css|scss|html)$",
    re.IGNORECASE,
)
_WHITESPACE_RE: Pattern[str] = re.compile(r"\s+")
_LEADING_DASHES_RE: Pattern[str] = re.compile(r"^[\s-]+")

# Owners that are really directory names inside a path such as ``src/index.ts``.
PATH_LIKE_OWNER_DENYLIST = frozenset(
    {
        "src",
        "docs",
        "doc",
        "packages",
        "package",
        "examples",
        "example",
        "test",
        "tests",
        "lib",
        "dist",
        "scripts",
        "extensions",
        "apps",
        "app",
        "server",
        "client",
    }
)


def _clean_slug(candidate: str) -> str:
    """Drop trailing sentence punctuation and a `.git` suffix from a matched slug."""
    return candidate.rstrip(".").removesuffix(".git")


def extract_search_term(task: str) -> str:
    """Collapse whitespace and bound the task text used as a map search query.

    Leading dashes are dropped so a bullet such as ``- how does routing work``
    is never passed to ``ow`` as a flag. The result may be empty.
    """
    term = _LEADING_DASHES_RE.sub("", task.strip())
    return _WHITESPACE_RE.sub(" ", term)[:MAX_SEARCH_TERM_LENGTH]


def extract_repo_hint_from_task(task: str) -> str | None:
    """Return an ``owner/repo`` slug mentioned in ``task`` or ``None``.

    GitHub URLs win over bare tokens. Bare ``owner/repo`` tokens are skipped
    when the owner looks like a directory (``src/``, ``docs/``...) or when the
    repo part carries a source-file extension, since those are file paths.
    """
    github_match = _GITHUB_URL_RE.search(task)
    if github_match:
        return _clean_slug(github_match.group(1))

    for match in _OWNER_REPO_TOKEN_RE.finditer(task):
        candidate = _clean_slug(match.group(1))
        owner, _, repo = candidate.partition("/")
        if not owner or not repo:
            continue
        if owner.lower() in PATH_LIKE_OWNER_DENYLIST:
            continue
        if _SOURCE_FILE_SUFFIX_RE.search(repo):
            continue
        return candidate
    return None


__all__ = [
    "MAX_SEARCH_TERM_LENGTH",
    "PATH_LIKE_OWNER_DENYLIST",
    "extract_repo_hint_from_task",
    "extract_search_term",
]
