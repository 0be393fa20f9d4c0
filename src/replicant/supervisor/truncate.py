"""Head truncation for the final reconnaissance answer."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MAX_LINES = 2000
DEFAULT_MAX_BYTES = 50 * 1024


@dataclass(frozen=True, slots=True)
class TruncationResult:
    """Outcome of :func:`truncate_head`."""

    content: str
    truncated: bool
    total_lines: int
    total_bytes: int
    output_lines: int


def truncate_head(
    text: str,
    *,
    max_lines: int = DEFAULT_MAX_LINES,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> TruncationResult:
    """Keep the leading whole lines of ``text`` that fit both ceilings.

    Text within both limits is returned untouched. When even the first line
    exceeds ``max_bytes`` it is cut at the byte ceiling instead of dropping
    everything.
    """
    lines = text.split("\n")
    total_bytes = len(text.encode("utf-8"))
    if len(lines) <= max_lines and total_bytes <= max_bytes:
        return TruncationResult(text, False, len(lines), total_bytes, len(lines))

    kept: list[str] = []
    used = 0
    for index, line in enumerate(lines[:max_lines]):
        encoded = line.encode("utf-8")
        size = len(encoded) + (1 if index else 0)
        if used + size > max_bytes:
            if not kept:
                kept.append(encoded[:max_bytes].decode("utf-8", errors="ignore"))
            break
        kept.append(line)
        used += size

    return TruncationResult("\n".join(kept), True, len(lines), total_bytes, len(kept))


__all__ = ["DEFAULT_MAX_BYTES", "DEFAULT_MAX_LINES", "TruncationResult", "truncate_head"]
