"""Name checks shared by every backend."""
from __future__ import annotations

SEPARATOR = ":"


def check_segment(name: str, value: str) -> str:
    """Reject values that cannot be embedded in a ``:`` separated key."""
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} must be a non-empty string")
    if SEPARATOR in value:
        raise ValueError(f"{name} must not contain {SEPARATOR!r}: {value!r}")
    return value


__all__ = ["SEPARATOR", "check_segment"]
