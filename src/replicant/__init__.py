"""Offworld-powered reconnaissance subagent.

Resolves an external repository to a local clone through the ``ow`` CLI and
runs a sandboxed, read-only exploration session against it.
"""

from __future__ import annotations

from .config import ReplicantConfig, load_config
from .params import ReplicantParams, validate_params
from .tool import ReplicantHost, ReplicantToolDetails, ToolResult, run_replicant

__version__ = "0.1.0"

__all__ = [
    "ReplicantConfig",
    "ReplicantHost",
    "ReplicantParams",
    "ReplicantToolDetails",
    "ToolResult",
    "__version__",
    "load_config",
    "run_replicant",
    "validate_params",
]
