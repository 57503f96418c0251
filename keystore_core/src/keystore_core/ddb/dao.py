"""DynamoDB implementation of :class:`~keystore_core.dao.KeyDao`."""
from __future__ import annotations

from typing import Callable, Optional, TypeVar

import structlog

from ..dao import KeyDao
from ..exceptions import RetryExhaustedError
from ..metrics import Metrics
from ..models import Batch, Key, KeyIdentifier, KeyVersionIdentifier, OwnerIdentifier, Token
from .accessor import DynamoDbClientAccessor
from .batch_write import BatchWriteConverter
from .key_converter import KeyConverter
from .owner_converter import OwnerConverter

T = TypeVar("T")

logger = structlog.get_logger(__name__)

PREFIX = "ddbdao."
MAX_TIMES_KEY_STORE = 5


class KeyDaoDynamoDb(KeyDao):
    def __init__(
        self,
        accessor: DynamoDbClientAccessor,
        key_converter: KeyConverter,
        owner_converter: OwnerConverter,
        batch_write_converter: BatchWriteConverter,
        metrics: Metrics,
    ) -> None:
        self._accessor = accessor
        self._key_converter = key_converter
        self._owner_converter = owner_converter
        self._batch_write_converter = batch_write_converter
        self._metrics = metrics

    def _time(self, method: str, owner: Optional[str], block: Callable[[], T]) -> T:
        return self._metrics.time(PREFIX + method, block, owner=owner)

    def _found(self, counter: str, found: bool) -> None:
        self._metrics.count(PREFIX + counter, 1 if found else 0)

    def store(self, key: Key) -> None:
        logger.debug("ddbdao.store", identifier=str(key.key_version_identifier))

        def block() -> None:
            request = self._batch_write_converter.from_put_item_requests(
                self._key_converter.to_put_item_request(key),
                self._owner_converter.to_put_item_request(key.key_identifier()),
            )
            self._reprocess(request, MAX_TIMES_KEY_STORE)

        self._time("storeKey", key.owner, block)

    def _reprocess(self, request: dict, max_times: int) -> None:
        """Resubmit unprocessed items until none remain or ``max_times`` batches ran."""

        def block() -> None:
            pending: Optional[dict] = request
            attempts = 0
            while pending is not None and attempts < max_times:
                attempts += 1
                pending = self._accessor.batch_write_item_processor(pending)
            if pending is not None:
                self._metrics.count(PREFIX + "batchWrite.ran.out")
                logger.error("ddbdao.batch_write.ran_out", attempts=attempts)
                raise RetryExhaustedError(
                    f"Unable to fully process batch write after {attempts} attempts",
                    attempts=attempts,
                    unprocessed=pending["RequestItems"],
                )

        self._time("reProcessor", None, block)

    def store_owner(self, owner: str) -> OwnerIdentifier:
        logger.debug("ddbdao.store_owner", owner=owner)

        def block() -> OwnerIdentifier:
            identifier = OwnerIdentifier(owner=owner)
            self._accessor.put_item(self._owner_converter.to_owner_put_item_request(identifier))
            return identifier

        return self._time("storeOwner", owner, block)

    def load_key_version(self, identifier: KeyVersionIdentifier) -> Optional[Key]:
        def block() -> Optional[Key]:
            response = self._accessor.get_item(self._key_converter.to_get_item_request(identifier))
            item = response.get("Item")
            self._found("found.key.version", bool(item))
            return self._key_converter.from_item(item) if item else None

        return self._time("loadKeyVersion", identifier.owner, block)

    def load_active_key(self, identifier: KeyIdentifier) -> Optional[Key]:
        def block() -> Optional[Key]:
            response = self._accessor.query(self._key_converter.to_active_query_request(identifier))
            items = response.get("Items") or []
            self._found("found.key", bool(items))
            # the index is read newest first
            return self._key_converter.from_item(items[0]) if items else None

        return self._time("loadKey", identifier.owner, block)

    def load_owner(self, owner: str) -> Optional[OwnerIdentifier]:
        def block() -> Optional[OwnerIdentifier]:
            request = self._owner_converter.to_owner_get_item_request(OwnerIdentifier(owner=owner))
            item = self._accessor.get_item(request).get("Item")
            self._found("found.owner", bool(item))
            return self._owner_converter.to_owner_identifier(item) if item else None

        return self._time("loadOwner", owner, block)

    def list_owners(self, next_token: Optional[Token] = None) -> Batch[OwnerIdentifier]:
        def block() -> Batch[OwnerIdentifier]:
            response = self._accessor.query(self._owner_converter.to_owner_search_query_request(next_token))
            return self._owner_converter.to_batch_owner_identifier(response)

        return self._time("listOwners", None, block)

    def list_keys(self, identifier: OwnerIdentifier, next_token: Optional[Token] = None) -> Batch[KeyIdentifier]:
        def block() -> Batch[KeyIdentifier]:
            response = self._accessor.query(self._owner_converter.to_owner_query_keys_request(identifier, next_token))
            return self._owner_converter.to_batch_key_identifier(identifier, response)

        return self._time("listKeys", identifier.owner, block)

    def list_versions(
        self, identifier: KeyIdentifier, next_token: Optional[Token] = None
    ) -> Batch[KeyVersionIdentifier]:
        def block() -> Batch[KeyVersionIdentifier]:
            response = self._accessor.query(self._key_converter.to_key_versions_query_request(identifier, next_token))
            return self._key_converter.to_batch_key_version_identifier(response)

        return self._time("listVersions", identifier.owner, block)

    def delete_key_version(self, identifier: KeyVersionIdentifier) -> bool:
        def block() -> bool:
            # the active index entry lives on the same item
            self._accessor.delete_item(self._key_converter.to_delete_request(identifier))
            return True

        return self._time("deleteVersions", identifier.owner, block)

    def delete_key(self, identifier: KeyIdentifier) -> bool:
        return self._time("deleteKey", identifier.owner, lambda: False)

    def delete_owner(self, identifier: OwnerIdentifier) -> bool:
        return self._time("deleteOwner", identifier.owner, lambda: False)


__all__ = ["KeyDaoDynamoDb", "MAX_TIMES_KEY_STORE"]
