"""Prometheus-backed metrics facade used by the DAOs and accessors.

The data layer only ever calls :meth:`Metrics.time` and :meth:`Metrics.count`.
Reporting is best effort: a failure to record a sample is logged and dropped,
and never replaces the result or the exception of the wrapped call.
"""
from __future__ import annotations

import time
from threading import Lock
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar
from weakref import WeakKeyDictionary

import structlog
from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

from .utils.naming import metric_name

T = TypeVar("T")

logger = structlog.get_logger(__name__)

SUCCESS = "success"
FAILURE = "failure"

CollectorEntry = Tuple[Any, Tuple[str, ...]]

# collectors are shared by every Metrics bound to the same registry
_COLLECTORS: "WeakKeyDictionary[CollectorRegistry, Dict[str, CollectorEntry]]" = WeakKeyDictionary()
_LOCK = Lock()


class Metrics:
    def __init__(self, registry: Optional[CollectorRegistry] = None, namespace: str = "") -> None:
        self.registry = registry if registry is not None else REGISTRY
        self._namespace = namespace

    def time(self, name: str, block: Callable[[], T], **labels: str) -> T:
        """Run ``block`` and record its latency under ``name``."""
        start = time.perf_counter()
        outcome = FAILURE
        try:
            result = block()
            outcome = SUCCESS
            return result
        finally:
            self._observe(name, time.perf_counter() - start, outcome, labels)

    def count(self, name: str, value: float = 1, **labels: str) -> None:
        try:
            counter, label_names = self._counter(name, tuple(sorted(labels)))
            if label_names:
                counter.labels(**_stringify(labels)).inc(value)
            else:
                counter.inc(value)
        except Exception as exc:
            logger.warning("metrics.count.failed", metric=name, error=str(exc))

    def _observe(self, name: str, elapsed: float, outcome: str, labels: Dict[str, str]) -> None:
        try:
            histogram, _ = self._histogram(name, ("outcome", *sorted(labels)))
            histogram.labels(outcome=outcome, **_stringify(labels)).observe(elapsed)
        except Exception as exc:
            logger.warning("metrics.time.failed", metric=name, error=str(exc))

    def _histogram(self, name: str, label_names: Tuple[str, ...]) -> CollectorEntry:
        full_name = f"{self._full_name(name)}_seconds"
        return self._collector(
            name,
            full_name,
            label_names,
            lambda: Histogram(full_name, f"Latency of {name}", labelnames=label_names, registry=self.registry),
        )

    def _counter(self, name: str, label_names: Tuple[str, ...]) -> CollectorEntry:
        full_name = self._full_name(name)
        return self._collector(
            name,
            full_name,
            label_names,
            lambda: Counter(full_name, f"Count of {name}", labelnames=label_names, registry=self.registry),
        )

    def _collector(
        self, name: str, full_name: str, label_names: Tuple[str, ...], create: Callable[[], Any]
    ) -> CollectorEntry:
        with _LOCK:
            collectors = _COLLECTORS.setdefault(self.registry, {})
            entry = collectors.get(full_name)
            if entry is None:
                entry = (create(), label_names)
                collectors[full_name] = entry
        if entry[1] != label_names:
            raise ValueError(f"Metric {name} registered with labels {entry[1]}, got {label_names}")
        return entry

    def _full_name(self, name: str) -> str:
        if self._namespace:
            return metric_name(f"{self._namespace}.{name}")
        return metric_name(name)


def _stringify(labels: Dict[str, str]) -> Dict[str, str]:
    return {key: "null" if value is None else str(value) for key, value in labels.items()}


__all__ = ["Metrics", "SUCCESS", "FAILURE"]
