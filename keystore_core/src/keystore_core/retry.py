"""Retry policy shared by the store accessors, built on tenacity."""
from __future__ import annotations

from typing import Callable, Type, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import RetryConfig
from .exceptions import RetryableError

T = TypeVar("T")

logger = structlog.get_logger(__name__)


def _log_retry(name: str) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        logger.warning(
            "retry.scheduled",
            policy=name,
            attempt=state.attempt_number,
            error=type(error).__name__ if error else None,
        )

    return before_sleep


def build_retrying(
    config: RetryConfig,
    *,
    name: str,
    retry_on: Type[BaseException] = RetryableError,
    sleep: Callable[[float], None] | None = None,
) -> Retrying:
    """Create a tenacity ``Retrying`` for ``config``.

    Only ``retry_on`` is retried; anything else propagates on the first
    failure. When attempts run out the last exception is re-raised as is.
    """
    kwargs = {}
    if sleep is not None:
        kwargs["sleep"] = sleep
    return Retrying(
        stop=stop_after_attempt(config.max_attempts),
        wait=wait_exponential(
            multiplier=config.initial_delay,
            exp_base=config.exponential_base,
            max=config.max_delay,
        ),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_retry(name),
        reraise=True,
        **kwargs,
    )


class RetryPolicy:
    """Named, reusable retry wrapper around a call."""

    def __init__(self, config: RetryConfig, *, name: str, sleep: Callable[[float], None] | None = None) -> None:
        self.config = config
        self.name = name
        self._sleep = sleep

    def call(self, fn: Callable[[], T]) -> T:
        retrying = build_retrying(self.config, name=self.name, sleep=self._sleep)
        return retrying(fn)


__all__ = ["RetryPolicy", "build_retrying"]
