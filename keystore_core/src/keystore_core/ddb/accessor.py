"""Thin wrapper over the boto3 DynamoDB client.

Every call is timed, classified and retried the same way: throttling and
server-side conditions surface as :class:`RetryableError` and are retried,
everything else becomes a :class:`DependencyError` on the first failure.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional

import structlog
from botocore.exceptions import ClientError

from ..exceptions import DependencyError, RetryableError
from ..metrics import Metrics
from ..retry import RetryPolicy
from .batch_write import BatchWriteConverter

logger = structlog.get_logger(__name__)

DDB_ACCESSOR = "ddbAccessor."
PUT_ITEM_METRIC = DDB_ACCESSOR + "putItem"
GET_ITEM_METRIC = DDB_ACCESSOR + "getItem"
DELETE_ITEM_METRIC = DDB_ACCESSOR + "deleteItem"
BATCH_WRITE_ITEM_METRIC = DDB_ACCESSOR + "batchWriteItem"
QUERY_METRIC = DDB_ACCESSOR + "query"

RETRYABLE_ERROR_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "TransactionConflictException",
        "RequestLimitExceeded",
        "InternalServerError",
    }
)

Response = Dict[str, Any]


class DynamoDbClientAccessor:
    def __init__(
        self,
        client: Any,
        metrics: Metrics,
        retry_policy: RetryPolicy,
        batch_write_converter: Optional[BatchWriteConverter] = None,
    ) -> None:
        self._client = client
        self._metrics = metrics
        self._retry = retry_policy
        self._batch_write_converter = batch_write_converter or BatchWriteConverter()

    def put_item(self, request: Mapping[str, Any]) -> Response:
        return self._call(PUT_ITEM_METRIC, self._client.put_item, request)

    def get_item(self, request: Mapping[str, Any]) -> Response:
        return self._call(GET_ITEM_METRIC, self._client.get_item, request)

    def delete_item(self, request: Mapping[str, Any]) -> Response:
        return self._call(DELETE_ITEM_METRIC, self._client.delete_item, request)

    def query(self, request: Mapping[str, Any]) -> Response:
        return self._call(QUERY_METRIC, self._client.query, request)

    def batch_write_item(self, request: Mapping[str, Any]) -> Response:
        return self._call(BATCH_WRITE_ITEM_METRIC, self._client.batch_write_item, request)

    def batch_write_item_processor(self, request: Mapping[str, Any]) -> Optional[Response]:
        """Run one batch write and return the request for its leftovers, if any."""
        response = self.batch_write_item(request)
        logger.debug("ddbaccessor.batch_write", consumed=response.get("ConsumedCapacity"))
        return self._batch_write_converter.unprocessed_request(response)

    def _call(self, metric: str, operation: Callable[..., Response], request: Mapping[str, Any]) -> Response:
        def attempt() -> Response:
            return self._metrics.time(metric, lambda: self._classify(metric, operation, request))

        return self._retry.call(attempt)

    @staticmethod
    def _classify(metric: str, operation: Callable[..., Response], request: Mapping[str, Any]) -> Response:
        try:
            return operation(**request)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code in RETRYABLE_ERROR_CODES:
                logger.warning("ddbaccessor.retryable", operation=metric, code=code)
                raise RetryableError(f"{metric} failed with {code}") from exc
            logger.error("ddbaccessor.dependency", operation=metric, code=code)
            raise DependencyError(f"{metric} failed with {code or 'unknown error'}") from exc
        except Exception as exc:
            logger.error("ddbaccessor.dependency", operation=metric, error=type(exc).__name__)
            raise DependencyError(f"{metric} failed: {exc}") from exc


__all__ = ["DynamoDbClientAccessor", "RETRYABLE_ERROR_CODES"]
