from __future__ import annotations

import os

import pytest

from replicant.policy.scope import (
    has_unsafe_glob_segments,
    is_within_path,
    normalize_tool_path,
    resolve_scope,
)


def test_resolve_scope_makes_entries_absolute(tmp_path) -> None:
    scope = resolve_scope(str(tmp_path), ["src", str(tmp_path / "docs")], ["../reference.md"])

    assert scope.cwd == str(tmp_path)
    assert scope.allowed_roots == (str(tmp_path / "src"), str(tmp_path / "docs"))
    assert scope.allowed_files == (os.path.normpath(str(tmp_path.parent / "reference.md")),)
    assert not scope.is_open


def test_empty_scope_is_open(tmp_path) -> None:
    assert resolve_scope(str(tmp_path)).is_open


def test_is_within_path_counts_root_itself(tmp_path) -> None:
    root = str(tmp_path / "clone")

    assert is_within_path(root, root)
    assert is_within_path(os.path.join(root, "src", "index.ts"), root)
    assert not is_within_path(str(tmp_path), root)
    assert not is_within_path(str(tmp_path / "clone-sibling" / "file"), root)


def test_is_within_path_allows_names_starting_with_dots(tmp_path) -> None:
    root = str(tmp_path)

    assert is_within_path(os.path.join(root, "..hidden"), root)


@pytest.mark.parametrize(
    ("pattern", "unsafe"),
    [
        ("**/*.ts", False),
        ("src/**", False),
        ("", False),
        ("..hidden/*.md", False),
        ("../**/*.ts", True),
        ("src/../../etc/*", True),
        ("..", True),
        ("/etc/*", True),
        ("\\etc\\*", True),
        ("C:\\Windows\\*", True),
        ("..\\secrets\\*", True),
    ],
)
def test_has_unsafe_glob_segments(pattern: str, unsafe: bool) -> None:
    assert has_unsafe_glob_segments(pattern) is unsafe


def test_normalize_tool_path_strips_mention_prefix() -> None:
    assert normalize_tool_path("  @src/index.ts ") == "src/index.ts"
    assert normalize_tool_path("src/@scope") == "src/@scope"
