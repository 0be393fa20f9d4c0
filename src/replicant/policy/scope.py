"""Path scoping for sandboxed tool calls.

All helpers here are lexical: they normalise ``..`` segments and anchor
relative paths at the scope's working directory without touching the
filesystem, so the checks stay deterministic and side-effect free.
"""

from __future__ import annotations

import ntpath
import os
import posixpath
from dataclasses import dataclass, field
from typing import Iterable, Optional


@dataclass(frozen=True, slots=True)
class ResolvedScope:
    """Absolute roots and files a sandboxed tool call may touch."""

    cwd: str
    allowed_roots: tuple[str, ...] = field(default_factory=tuple)
    allowed_files: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_open(self) -> bool:
        """An empty scope means no restriction was requested."""
        return not self.allowed_roots and not self.allowed_files


def resolve_path(cwd: str, value: str) -> str:
    """Anchor ``value`` at ``cwd`` and normalise it."""
    return os.path.normpath(os.path.join(cwd, value))


def resolve_scope(
    cwd: str,
    allowed_roots: Optional[Iterable[str]] = None,
    allowed_files: Optional[Iterable[str]] = None,
) -> ResolvedScope:
    """Build a :class:`ResolvedScope` with every entry made absolute against ``cwd``."""
    base = os.path.abspath(cwd)
    return ResolvedScope(
        cwd=base,
        allowed_roots=tuple(resolve_path(base, root) for root in (allowed_roots or ())),
        allowed_files=tuple(resolve_path(base, item) for item in (allowed_files or ())),
    )


def is_within_path(target_path: str, root_path: str) -> bool:
    """Return ``True`` when ``target_path`` equals ``root_path`` or sits beneath it."""
    try:
        relative = os.path.relpath(target_path, root_path)
    except ValueError:
        # Different drives on Windows.
        return False
    if relative == os.curdir:
        return True
    if relative == os.pardir or relative.startswith(os.pardir + os.sep):
        return False
    return not os.path.isabs(relative)


def has_unsafe_glob_segments(pattern: str) -> bool:
    """Flag absolute glob patterns and patterns with a ``..`` segment."""
    normalized = pattern.replace("\\", "/").strip()
    if not normalized:
        return False
    if posixpath.isabs(normalized) or ntpath.isabs(normalized):
        return True
    return any(segment == ".." for segment in normalized.split("/"))


def normalize_tool_path(value: str) -> str:
    """Strip whitespace and the ``@`` mention prefix some models add to paths."""
    stripped = value.strip()
    return stripped[1:] if stripped.startswith("@") else stripped


__all__ = [
    "ResolvedScope",
    "has_unsafe_glob_segments",
    "is_within_path",
    "normalize_tool_path",
    "resolve_path",
    "resolve_scope",
]
