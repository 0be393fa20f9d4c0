"""Repository resolution: hint extraction, search, disambiguation and fetch."""

from .disambiguate import RepoCandidate, select_candidate
from .hints import extract_repo_hint_from_task, extract_search_term
from .resolver import ResolvedRepo, path_looks_like_clone, resolve_repo

__all__ = [
    "RepoCandidate",
    "ResolvedRepo",
    "extract_repo_hint_from_task",
    "extract_search_term",
    "path_looks_like_clone",
    "resolve_repo",
    "select_candidate",
]
