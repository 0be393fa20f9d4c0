"""External tool integrations used during repository resolution."""

from .offworld import (
    MapSearchEntry,
    MapShowEntry,
    OffworldCLI,
    OffworldError,
    OffworldErrorCode,
    build_pull_args,
    format_ow_command,
)

__all__ = [
    "MapSearchEntry",
    "MapShowEntry",
    "OffworldCLI",
    "OffworldError",
    "OffworldErrorCode",
    "build_pull_args",
    "format_ow_command",
]
