from __future__ import annotations

import pytest

from replicant.params import (
    MAX_REPO_LENGTH,
    MAX_TASK_LENGTH,
    ReplicantParams,
    assert_no_control_chars,
    normalize_repo_hint,
    validate_params,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("tanstack/pacer", "tanstack/pacer"),
        ("https://github.com/tanstack/pacer", "tanstack/pacer"),
        ("http://github.com/tanstack/pacer.git", "tanstack/pacer"),
        ("github.com:tanstack/pacer.git", "tanstack/pacer"),
        ("github.com/tanstack/pacer", "tanstack/pacer"),
        ("  owner/repo.git  ", "owner/repo"),
        ("", None),
        ("   ", None),
        (None, None),
    ],
)
def test_normalize_repo_hint(raw, expected) -> None:
    assert normalize_repo_hint(raw) == expected


def test_validate_params_accepts_minimal_payload() -> None:
    params = validate_params({"task": "inspect the scheduler"})

    assert isinstance(params, ReplicantParams)
    assert params.repo is None
    assert params.repo_hint is None


def test_validate_params_normalizes_repo_hint_but_keeps_raw_value() -> None:
    params = validate_params({"task": "inspect", "repo": "https://github.com/acme/widgets.git"})

    assert params.repo == "https://github.com/acme/widgets.git"
    assert params.repo_hint == "acme/widgets"


def test_validate_params_allows_newlines_and_tabs_in_task() -> None:
    params = validate_params({"task": "line one\n\tline two"})

    assert params.task == "line one\n\tline two"


@pytest.mark.parametrize("field_name", ["task", "repo", "cwd"])
def test_validate_params_rejects_control_characters(field_name: str) -> None:
    payload = {"task": "inspect"}
    payload[field_name] = "bad\x07value"

    with pytest.raises(ValueError, match=f"Invalid {field_name}: control characters are not allowed."):
        validate_params(payload)


def test_validate_params_rejects_overlong_task() -> None:
    with pytest.raises(ValueError, match="Invalid task"):
        validate_params({"task": "x" * (MAX_TASK_LENGTH + 1)})


def test_validate_params_rejects_overlong_repo() -> None:
    with pytest.raises(ValueError, match="Invalid repo"):
        validate_params({"task": "inspect", "repo": "r" * (MAX_REPO_LENGTH + 1)})


def test_validate_params_rejects_empty_task_and_unknown_keys() -> None:
    with pytest.raises(ValueError, match="Invalid task"):
        validate_params({"task": ""})
    with pytest.raises(ValueError, match="Invalid extra"):
        validate_params({"task": "inspect", "extra": True})


def test_validate_params_passes_through_model_instances() -> None:
    params = ReplicantParams(task="inspect")

    assert validate_params(params) is params


def test_assert_no_control_chars_rejects_c1_range() -> None:
    with pytest.raises(ValueError):
        assert_no_control_chars("abc\x85", "task")
    assert_no_control_chars("plain text\n", "task")
