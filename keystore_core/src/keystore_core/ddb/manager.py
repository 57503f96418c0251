"""Creates the DynamoDB table and its secondary indexes.

``activeIndex`` answers the latest-active lookup and ``ownerSearchIndex``
enumerates owners. ``ownerIndex`` is declared and every key record populates
it, but no read path queries it.
"""
from __future__ import annotations

from typing import Any, Dict

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ..config import DynamoDbConfig
from ..exceptions import SchemaError
from .key_converter import ACTIVE_HASH, OWNER_HASH_KEY_VERSION_IDX
from .owner_converter import OWNER_SEARCH_IDX

logger = structlog.get_logger(__name__)


class AwsManager:
    def __init__(self, client: Any, config: DynamoDbConfig) -> None:
        self._client = client
        self._config = config

    def _index(self, name: str, hash_key: str, range_key: str) -> Dict[str, Any]:
        return {
            "IndexName": name,
            "KeySchema": [
                {"AttributeName": hash_key, "KeyType": "HASH"},
                {"AttributeName": range_key, "KeyType": "RANGE"},
            ],
            "Projection": {"ProjectionType": "ALL"},
        }

    def create_table_request(self) -> Dict[str, Any]:
        config = self._config
        attributes = (config.hash_key, config.range_key, ACTIVE_HASH, OWNER_HASH_KEY_VERSION_IDX, OWNER_SEARCH_IDX)
        return {
            "TableName": config.table_name,
            "BillingMode": "PAY_PER_REQUEST",
            "KeySchema": [
                {"AttributeName": config.hash_key, "KeyType": "HASH"},
                {"AttributeName": config.range_key, "KeyType": "RANGE"},
            ],
            "AttributeDefinitions": [{"AttributeName": name, "AttributeType": "S"} for name in attributes],
            "GlobalSecondaryIndexes": [
                # latest active version of a key
                self._index(config.active_index, ACTIVE_HASH, config.range_key),
                # every key record of an owner
                self._index(config.owner_index, OWNER_HASH_KEY_VERSION_IDX, config.hash_key),
                # every owner
                self._index(config.owner_search_index, OWNER_SEARCH_IDX, config.hash_key),
            ],
        }

    def update_time_to_live_request(self) -> Dict[str, Any]:
        return {
            "TableName": self._config.table_name,
            "TimeToLiveSpecification": {"AttributeName": self._config.ttl_key, "Enabled": True},
        }

    def create_table(self) -> None:
        """Create the table, wait until it exists and enable TTL."""
        table = self._config.table_name
        logger.info("awsmanager.create_table", table=table)
        try:
            self._client.create_table(**self.create_table_request())
            self._client.get_waiter("table_exists").wait(TableName=table)
            self._client.update_time_to_live(**self.update_time_to_live_request())
        except (BotoCoreError, ClientError) as exc:
            logger.error("awsmanager.create_table.failed", table=table, error=str(exc))
            raise SchemaError(f"Unable to create table {table}: {exc}") from exc


__all__ = ["AwsManager"]
