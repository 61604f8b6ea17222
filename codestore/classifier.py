"""Text versus binary heuristics for stored file content."""

from __future__ import annotations

SAMPLE_SIZE = 8192
MIN_RATIO_LENGTH = 100
MAX_NUL_RATIO = 0.01
MAX_CONTROL_RATIO = 0.05

_ALLOWED_CONTROL = frozenset({0x09, 0x0A, 0x0D})


def is_text(data: bytes) -> bool:
    """Return True when ``data`` looks like displayable UTF-8 text."""
    if not data:
        return True

    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return False

    window = data[:SAMPLE_SIZE]
    nul_bytes = window.count(0)
    control_bytes = sum(
        1 for byte in window if byte < 0x20 and byte not in _ALLOWED_CONTROL
    )

    if len(data) > MIN_RATIO_LENGTH:
        if nul_bytes / len(window) > MAX_NUL_RATIO:
            return False
        if control_bytes / len(window) > MAX_CONTROL_RATIO:
            return False

    return True


__all__ = ["is_text"]
