"""Coarse lifecycle phases reported by the execution supervisor."""

from __future__ import annotations

from enum import Enum


class Phase(str, Enum):
    """Enumeration of the supervisor phases shown to observers."""

    BOOTING = "booting"
    EXPLORING = "exploring"
    WRITING = "writing"
    DONE = "done"
    ERROR = "error"
    ABORTED = "aborted"


TERMINAL_PHASES = frozenset({Phase.DONE, Phase.ERROR, Phase.ABORTED})


def is_terminal(phase: Phase) -> bool:
    return phase in TERMINAL_PHASES


__all__ = ["Phase", "TERMINAL_PHASES", "is_terminal"]
