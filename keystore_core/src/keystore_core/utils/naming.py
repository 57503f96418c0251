"""Helpers for turning dotted metric names into Prometheus-safe names."""
from __future__ import annotations

import regex

_INVALID = regex.compile(r"[^a-zA-Z0-9_:]")


def metric_name(name: str) -> str:
    cleaned = _INVALID.sub("_", name.strip())
    if not cleaned:
        raise ValueError("Metric name must not be empty")
    if cleaned[0].isdigit():
        cleaned = f"_{cleaned}"
    return cleaned
