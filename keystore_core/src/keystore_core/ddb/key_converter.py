"""Maps :class:`~keystore_core.models.Key` records to DynamoDB items and back.

Key records live under ``keyVersion:{owner}:{key}`` with the version as range
key. Two sparse attributes feed the secondary indexes: ``activeHashKey`` is
present only on active versions and ``ownerHashKeyVersion`` names the owner.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import structlog

from ..config import DynamoDbConfig
from ..exceptions import DecodeError
from ..metrics import Metrics
from ..models import Batch, Key, KeyIdentifier, KeyVersionIdentifier, Token, from_epoch_millis, to_epoch_millis
from ..pagination import AttributeMapTokenCodec
from ..utils.validation import SEPARATOR, check_segment

logger = structlog.get_logger(__name__)

KEY_VALUE = "key_value"
TYPE = "type"
ACTIVE = "active"
CREATE = "create"
UPDATE = "update"
ACTIVE_HASH = "activeHashKey"
OWNER_HASH_KEY_VERSION_IDX = "ownerHashKeyVersion"
KEY_VERSION_PREFIX = "keyVersion"
VERSION_WIDTH = 19

ACTIVE_INDEX_METRIC = "keyconverter.activeindex"
MISSING_BUT_EXPECTED = "missing.but.expected"
FOUND_UNEXPECTEDLY = "found.unexpectedly"

Item = Mapping[str, Mapping[str, Any]]
Request = Dict[str, Any]


def string_attribute(item: Item, name: str) -> str:
    try:
        return item[name]["S"]
    except (KeyError, TypeError) as exc:
        raise DecodeError(f"Item is missing string attribute {name!r}") from exc


class KeyConverter:
    def __init__(
        self,
        config: DynamoDbConfig,
        metrics: Metrics,
        codec: Optional[AttributeMapTokenCodec] = None,
    ) -> None:
        self._config = config
        self._metrics = metrics
        self._codec = codec or AttributeMapTokenCodec()

    def hash_key(self, identifier: KeyIdentifier) -> str:
        owner = check_segment("owner", identifier.owner)
        key = check_segment("key", identifier.key)
        return SEPARATOR.join((KEY_VERSION_PREFIX, owner, key))

    @staticmethod
    def range_key(identifier: KeyVersionIdentifier) -> str:
        return f"{identifier.version:0{VERSION_WIDTH}d}"

    def primary_key(self, identifier: KeyVersionIdentifier) -> Dict[str, Dict[str, str]]:
        return {
            self._config.hash_key: {"S": self.hash_key(identifier)},
            self._config.range_key: {"S": self.range_key(identifier)},
        }

    def to_put_item_request(self, key: Key) -> Request:
        identifier = key.key_version_identifier
        logger.debug("keyconverter.put", owner=identifier.owner, key=identifier.key, version=identifier.version)
        hash_key = self.hash_key(identifier)
        item: Dict[str, Dict[str, Any]] = {
            self._config.hash_key: {"S": hash_key},
            self._config.range_key: {"S": self.range_key(identifier)},
            KEY_VALUE: {"B": key.value},
            TYPE: {"S": key.type},
            ACTIVE: {"BOOL": key.active},
            CREATE: {"N": str(to_epoch_millis(key.create_date))},
            OWNER_HASH_KEY_VERSION_IDX: {"S": identifier.owner},
        }
        if key.active:
            item[ACTIVE_HASH] = {"S": hash_key}
        if key.update_date is not None:
            item[UPDATE] = {"N": str(to_epoch_millis(key.update_date))}
        return {"TableName": self._config.table_name, "Item": item, "ReturnConsumedCapacity": "TOTAL"}

    def to_get_item_request(self, identifier: KeyVersionIdentifier) -> Request:
        return {
            "TableName": self._config.table_name,
            "Key": self.primary_key(identifier),
            "ReturnConsumedCapacity": "TOTAL",
        }

    def to_delete_request(self, identifier: KeyVersionIdentifier) -> Request:
        return {
            "TableName": self._config.table_name,
            "Key": self.primary_key(identifier),
            "ReturnConsumedCapacity": "TOTAL",
        }

    def from_item(self, item: Item) -> Key:
        identifier = self.version_identifier_from(item)
        try:
            update = item.get(UPDATE)
            key = Key(
                key_version_identifier=identifier,
                value=item[KEY_VALUE]["B"],
                type=item[TYPE]["S"],
                active=item[ACTIVE]["BOOL"],
                create_date=from_epoch_millis(int(item[CREATE]["N"])),
                update_date=from_epoch_millis(int(update["N"])) if update else None,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise DecodeError(f"Key record {identifier} is malformed") from exc
        self._verify_active_index(item, key)
        return key

    def _verify_active_index(self, item: Item, key: Key) -> None:
        has_active_hash = ACTIVE_HASH in item
        if has_active_hash and not key.active:
            logger.error("keyconverter.activeindex.found_unexpectedly", identifier=str(key.key_version_identifier))
            self._metrics.count(ACTIVE_INDEX_METRIC, invalid_index=FOUND_UNEXPECTEDLY)
        elif not has_active_hash and key.active:
            logger.error("keyconverter.activeindex.missing_but_expected", identifier=str(key.key_version_identifier))
            self._metrics.count(ACTIVE_INDEX_METRIC, invalid_index=MISSING_BUT_EXPECTED)

    def version_identifier_from(self, item: Item) -> KeyVersionIdentifier:
        hash_key = string_attribute(item, self._config.hash_key)
        tokens = hash_key.split(SEPARATOR)
        if len(tokens) != 3 or tokens[0] != KEY_VERSION_PREFIX:
            logger.error("keyconverter.hash.malformed", hash_key=hash_key)
            raise DecodeError(f"Key hash has incorrect shape: {hash_key!r}")
        range_key = string_attribute(item, self._config.range_key)
        try:
            version = int(range_key)
            return KeyVersionIdentifier(owner=tokens[1], key=tokens[2], version=version)
        except ValueError as exc:
            raise DecodeError(f"Key range is not a version: {range_key!r}") from exc

    def to_active_query_request(self, identifier: KeyIdentifier) -> Request:
        """Newest active version first; the active index only holds active rows."""
        return {
            "TableName": self._config.table_name,
            "IndexName": self._config.active_index,
            "KeyConditionExpression": "#active = :hash",
            "ExpressionAttributeNames": {"#active": ACTIVE_HASH},
            "ExpressionAttributeValues": {":hash": {"S": self.hash_key(identifier)}},
            "ScanIndexForward": False,
            "Limit": 1,
            "ReturnConsumedCapacity": "TOTAL",
        }

    def to_key_versions_query_request(self, identifier: KeyIdentifier, next_token: Optional[Token] = None) -> Request:
        request: Request = {
            "TableName": self._config.table_name,
            "KeyConditionExpression": "#hash = :hash",
            "ExpressionAttributeNames": {"#hash": self._config.hash_key, "#range": self._config.range_key},
            "ExpressionAttributeValues": {":hash": {"S": self.hash_key(identifier)}},
            "ProjectionExpression": "#hash, #range",
            "ReturnConsumedCapacity": "TOTAL",
        }
        if self._config.page_size:
            request["Limit"] = self._config.page_size
        if next_token is not None:
            request["ExclusiveStartKey"] = self._codec.deserialize(next_token)
        return request

    def to_batch_key_version_identifier(self, response: Mapping[str, Any]) -> Batch[KeyVersionIdentifier]:
        items = [self.version_identifier_from(item) for item in response.get("Items", [])]
        last = response.get("LastEvaluatedKey")
        return Batch(items=items, next_token=self._codec.serialize(last) if last else None)


__all__ = ["KeyConverter", "string_attribute"]
