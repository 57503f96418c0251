"""Executes bound statements with timing, classification and retry."""
from __future__ import annotations

from typing import Any, Optional

import structlog
from cassandra import OperationTimedOut, ReadTimeout, Unavailable, WriteTimeout

from ..exceptions import DependencyError, RetryableError
from ..metrics import Metrics
from ..retry import RetryPolicy

logger = structlog.get_logger(__name__)

EXECUTE_STATEMENT = "cassandraAccessor.executeStatement"

RETRYABLE_EXCEPTIONS = (Unavailable, ReadTimeout, WriteTimeout, OperationTimedOut)


class CassandraAccessor:
    def __init__(self, session: Any, metrics: Metrics, retry_policy: RetryPolicy) -> None:
        self._session = session
        self._metrics = metrics
        self._retry = retry_policy

    def execute(self, statement: Any, paging_state: Optional[bytes] = None) -> Any:
        """Run ``statement``, resuming at ``paging_state`` when one is given."""

        def attempt() -> Any:
            return self._metrics.time(EXECUTE_STATEMENT, lambda: self._classify(statement, paging_state))

        return self._retry.call(attempt)

    def _classify(self, statement: Any, paging_state: Optional[bytes]) -> Any:
        try:
            if paging_state is None:
                return self._session.execute(statement)
            return self._session.execute(statement, paging_state=paging_state)
        except RETRYABLE_EXCEPTIONS as exc:
            logger.warning("cassandraaccessor.retryable", error=type(exc).__name__)
            raise RetryableError(f"Statement failed: {type(exc).__name__}") from exc
        except Exception as exc:
            logger.error("cassandraaccessor.dependency", error=type(exc).__name__)
            raise DependencyError(f"Statement failed: {exc}") from exc


__all__ = ["CassandraAccessor", "RETRYABLE_EXCEPTIONS"]
