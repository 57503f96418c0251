"""DynamoDB key store backend."""
from __future__ import annotations

from typing import Any, Optional

from ..config import DynamoDbConfig, RetryConfig
from ..metrics import Metrics
from ..pagination import AttributeMapTokenCodec
from ..retry import RetryPolicy
from .accessor import DynamoDbClientAccessor
from .batch_write import BatchWriteConverter
from .dao import MAX_TIMES_KEY_STORE, KeyDaoDynamoDb
from .key_converter import KeyConverter
from .manager import AwsManager
from .owner_converter import OwnerConverter


def build_key_dao(
    client: Any,
    config: Optional[DynamoDbConfig] = None,
    *,
    metrics: Optional[Metrics] = None,
    retry: Optional[RetryConfig] = None,
) -> KeyDaoDynamoDb:
    """Wire a :class:`KeyDaoDynamoDb` around an existing boto3 client."""
    config = config or DynamoDbConfig()
    metrics = metrics or Metrics()
    codec = AttributeMapTokenCodec()
    batch_write_converter = BatchWriteConverter()
    accessor = DynamoDbClientAccessor(
        client,
        metrics,
        RetryPolicy(retry or RetryConfig(), name="ddbAccessor"),
        batch_write_converter,
    )
    return KeyDaoDynamoDb(
        accessor,
        KeyConverter(config, metrics, codec),
        OwnerConverter(config, codec),
        batch_write_converter,
        metrics,
    )


__all__ = [
    "AwsManager",
    "BatchWriteConverter",
    "DynamoDbClientAccessor",
    "KeyConverter",
    "KeyDaoDynamoDb",
    "MAX_TIMES_KEY_STORE",
    "OwnerConverter",
    "build_key_dao",
]
