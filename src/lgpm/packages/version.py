"""Dot-separated numeric version comparison.

Versions are compared segment by segment as non-negative integers.
Missing trailing segments count as 0, so "1.2" == "1.2.0". Segments that
are not plain integers are treated as 0 rather than rejected.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def _parse_segments(version: str) -> list[int]:
    segments = []
    for part in (version or "").strip().split("."):
        if part.isascii() and part.isdigit():
            segments.append(int(part))
        else:
            if part:
                logger.debug(f"Non-numeric version segment {part!r} in {version!r}")
            segments.append(0)
    return segments


def compare_versions(a: str, b: str) -> int:
    """Compare two version strings.

    Returns:
        1 if a > b, 0 if equal, -1 if a < b
    """
    left = _parse_segments(a)
    right = _parse_segments(b)

    width = max(len(left), len(right))
    left += [0] * (width - len(left))
    right += [0] * (width - len(right))

    for x, y in zip(left, right):
        if x > y:
            return 1
        if x < y:
            return -1
    return 0


def is_newer_or_equal(installed: str, incoming: str) -> bool:
    """True if the installed version already satisfies the incoming one."""
    return compare_versions(installed, incoming) >= 0
