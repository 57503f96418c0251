"""Owner rows in the DynamoDB table.

Each owner partition ``owner:{owner}`` holds an ``info`` row written by
``store_owner`` plus one ``key:{key}`` row per logical key. Only the ``info``
row carries ``ownerSearchIdx``, so only it is visible through the owner
search index.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import structlog

from ..config import DynamoDbConfig
from ..exceptions import DecodeError
from ..models import Batch, KeyIdentifier, OwnerIdentifier, Token
from ..pagination import AttributeMapTokenCodec
from ..utils.validation import SEPARATOR, check_segment
from .key_converter import Item, string_attribute

logger = structlog.get_logger(__name__)

OWNER_PREFIX = "owner"
KEY_PREFIX = "key"
INFO_RANGE = "info"
OWNER_SEARCH_IDX = "ownerSearchIdx"

Request = Dict[str, Any]


class OwnerConverter:
    def __init__(self, config: DynamoDbConfig, codec: Optional[AttributeMapTokenCodec] = None) -> None:
        self._config = config
        self._codec = codec or AttributeMapTokenCodec()

    @staticmethod
    def owner_hash_key(owner: str) -> str:
        return f"{OWNER_PREFIX}{SEPARATOR}{check_segment('owner', owner)}"

    @staticmethod
    def key_range_key(key: str) -> str:
        return f"{KEY_PREFIX}{SEPARATOR}{check_segment('key', key)}"

    def to_put_item_request(self, identifier: KeyIdentifier) -> Request:
        """The row that lists ``identifier`` under its owner."""
        item = {
            self._config.hash_key: {"S": self.owner_hash_key(identifier.owner)},
            self._config.range_key: {"S": self.key_range_key(identifier.key)},
        }
        return {"TableName": self._config.table_name, "Item": item, "ReturnConsumedCapacity": "TOTAL"}

    def to_owner_put_item_request(self, identifier: OwnerIdentifier) -> Request:
        item = {
            self._config.hash_key: {"S": self.owner_hash_key(identifier.owner)},
            self._config.range_key: {"S": INFO_RANGE},
            OWNER_SEARCH_IDX: {"S": INFO_RANGE},
        }
        return {"TableName": self._config.table_name, "Item": item, "ReturnConsumedCapacity": "TOTAL"}

    def to_owner_get_item_request(self, identifier: OwnerIdentifier) -> Request:
        return {
            "TableName": self._config.table_name,
            "Key": {
                self._config.hash_key: {"S": self.owner_hash_key(identifier.owner)},
                self._config.range_key: {"S": INFO_RANGE},
            },
            "ReturnConsumedCapacity": "TOTAL",
        }

    def to_owner_identifier(self, item: Item) -> OwnerIdentifier:
        hash_key = string_attribute(item, self._config.hash_key)
        tokens = hash_key.split(SEPARATOR)
        if len(tokens) != 2 or tokens[0] != OWNER_PREFIX or not tokens[1]:
            logger.error("ownerconverter.hash.malformed", hash_key=hash_key)
            raise DecodeError(f"Owner hash has incorrect shape: {hash_key!r}")
        return OwnerIdentifier(owner=tokens[1])

    def to_key_identifier(self, owner: OwnerIdentifier, item: Item) -> KeyIdentifier:
        range_key = string_attribute(item, self._config.range_key)
        prefix, _, key = range_key.partition(SEPARATOR)
        if prefix != KEY_PREFIX or not key or SEPARATOR in key:
            raise DecodeError(f"Owner key row has incorrect shape: {range_key!r}")
        return KeyIdentifier(owner=owner.owner, key=key)

    def to_owner_query_keys_request(self, identifier: OwnerIdentifier, next_token: Optional[Token] = None) -> Request:
        request: Request = {
            "TableName": self._config.table_name,
            "KeyConditionExpression": "#hash = :hash AND begins_with(#range, :prefix)",
            "ExpressionAttributeNames": {"#hash": self._config.hash_key, "#range": self._config.range_key},
            "ExpressionAttributeValues": {
                ":hash": {"S": self.owner_hash_key(identifier.owner)},
                ":prefix": {"S": f"{KEY_PREFIX}{SEPARATOR}"},
            },
            "ReturnConsumedCapacity": "TOTAL",
        }
        return self._paged(request, next_token)

    def to_owner_search_query_request(self, next_token: Optional[Token] = None) -> Request:
        request: Request = {
            "TableName": self._config.table_name,
            "IndexName": self._config.owner_search_index,
            "KeyConditionExpression": "#search = :info",
            "ExpressionAttributeNames": {"#search": OWNER_SEARCH_IDX},
            "ExpressionAttributeValues": {":info": {"S": INFO_RANGE}},
            "ReturnConsumedCapacity": "TOTAL",
        }
        return self._paged(request, next_token)

    def to_batch_key_identifier(
        self, identifier: OwnerIdentifier, response: Mapping[str, Any]
    ) -> Batch[KeyIdentifier]:
        items = [self.to_key_identifier(identifier, item) for item in response.get("Items", [])]
        return Batch(items=items, next_token=self._token(response))

    def to_batch_owner_identifier(self, response: Mapping[str, Any]) -> Batch[OwnerIdentifier]:
        items = [self.to_owner_identifier(item) for item in response.get("Items", [])]
        return Batch(items=items, next_token=self._token(response))

    def _paged(self, request: Request, next_token: Optional[Token]) -> Request:
        if self._config.page_size:
            request["Limit"] = self._config.page_size
        if next_token is not None:
            request["ExclusiveStartKey"] = self._codec.deserialize(next_token)
        return request

    def _token(self, response: Mapping[str, Any]) -> Optional[Token]:
        last = response.get("LastEvaluatedKey")
        return self._codec.serialize(last) if last else None


__all__ = ["OwnerConverter", "INFO_RANGE", "OWNER_SEARCH_IDX"]
