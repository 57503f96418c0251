"""Cassandra implementation of :class:`~keystore_core.dao.KeyDao`."""
from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

import structlog

from ..dao import KeyDao
from ..metrics import Metrics
from ..models import Batch, Key, KeyIdentifier, KeyVersionIdentifier, OwnerIdentifier, Token
from ..pagination import PagingStateTokenCodec
from .accessor import CassandraAccessor
from .key_converter import KeyConverter
from .owner_converter import OwnerConverter
from .statements import Statement, StatementCatalog

T = TypeVar("T")
R = TypeVar("R")

logger = structlog.get_logger(__name__)

PREFIX = "cassandradao."


class CassandraKeyDao(KeyDao):
    def __init__(
        self,
        accessor: CassandraAccessor,
        catalog: StatementCatalog,
        key_converter: KeyConverter,
        owner_converter: OwnerConverter,
        metrics: Metrics,
        *,
        page_size: int = 100,
        codec: Optional[PagingStateTokenCodec] = None,
    ) -> None:
        self._accessor = accessor
        self._catalog = catalog
        self._key_converter = key_converter
        self._owner_converter = owner_converter
        self._metrics = metrics
        self._page_size = page_size
        self._codec = codec or PagingStateTokenCodec()

    def _time(self, method: str, owner: Optional[str], block: Callable[[], T]) -> T:
        return self._metrics.time(PREFIX + method, block, owner=owner)

    def _execute(self, statement: Statement, value: Any = None) -> Any:
        return self._accessor.execute(self._catalog.bind(statement, value))

    def _page(
        self,
        statement: Statement,
        value: Any,
        next_token: Optional[Token],
        convert: Callable[[Any], R],
        keep: Callable[[Any], bool] = lambda row: True,
    ) -> Batch[R]:
        bound = self._catalog.bind(statement, value, fetch_size=self._page_size)
        paging_state = self._codec.deserialize(next_token) if next_token is not None else None
        result = self._accessor.execute(bound, paging_state)
        items = [convert(row) for row in result.current_rows if keep(row)]
        state = result.paging_state
        return Batch(items=items, next_token=self._codec.serialize(state) if state else None)

    def store(self, key: Key) -> None:
        logger.debug("cassandradao.store", identifier=str(key.key_version_identifier))

        def block() -> None:
            # three separate writes; each is idempotent so a retried store converges
            self._execute(Statement.KEY_STORE, key)
            if key.active:
                self._execute(Statement.KEY_STORE_ACTIVE, key)
            else:
                self._execute(Statement.KEY_DELETE_ACTIVE, key.key_version_identifier)
            self._execute(Statement.OWNER_STORE_KEY, key)

        self._time("storeKey", key.owner, block)

    def store_owner(self, owner: str) -> OwnerIdentifier:
        logger.debug("cassandradao.store_owner", owner=owner)

        def block() -> OwnerIdentifier:
            self._execute(Statement.OWNER_STORE, owner)
            return OwnerIdentifier(owner=owner)

        return self._time("storeOwner", owner, block)

    def load_key_version(self, identifier: KeyVersionIdentifier) -> Optional[Key]:
        def block() -> Optional[Key]:
            row = self._execute(Statement.KEY_LOAD_VERSION, identifier).one()
            return self._key_converter.to_key(row) if row is not None else None

        return self._time("loadKeyVersion", identifier.owner, block)

    def load_active_key(self, identifier: KeyIdentifier) -> Optional[Key]:
        def block() -> Optional[Key]:
            row = self._execute(Statement.KEY_LOAD_ACTIVE_VERSION, identifier).one()
            return self._key_converter.to_active_key(row) if row is not None else None

        return self._time("loadKey", identifier.owner, block)

    def load_owner(self, owner: str) -> Optional[OwnerIdentifier]:
        def block() -> Optional[OwnerIdentifier]:
            row = self._execute(Statement.OWNER_LOAD, owner).one()
            return self._owner_converter.to_owner_identifier(row) if row is not None else None

        return self._time("loadOwner", owner, block)

    def list_owners(self, next_token: Optional[Token] = None) -> Batch[OwnerIdentifier]:
        return self._time(
            "listOwners",
            None,
            lambda: self._page(Statement.OWNER_LIST, None, next_token, self._owner_converter.to_owner_identifier),
        )

    def list_keys(self, identifier: OwnerIdentifier, next_token: Optional[Token] = None) -> Batch[KeyIdentifier]:
        converter = self._owner_converter
        return self._time(
            "listKeys",
            identifier.owner,
            lambda: self._page(
                Statement.KEY_LIST,
                identifier,
                next_token,
                converter.to_key_identifier,
                keep=converter.is_key,
            ),
        )

    def list_versions(
        self, identifier: KeyIdentifier, next_token: Optional[Token] = None
    ) -> Batch[KeyVersionIdentifier]:
        return self._time(
            "listVersions",
            identifier.owner,
            lambda: self._page(
                Statement.KEY_LIST_VERSION, identifier, next_token, self._key_converter.to_key_version_identifier
            ),
        )

    def delete_key_version(self, identifier: KeyVersionIdentifier) -> bool:
        def block() -> bool:
            self._execute(Statement.KEY_DELETE_ACTIVE, identifier)
            self._execute(Statement.KEY_DELETE_VERSION, identifier)
            return True

        return self._time("deleteVersions", identifier.owner, block)

    def delete_key(self, identifier: KeyIdentifier) -> bool:
        return self._time("deleteKey", identifier.owner, lambda: False)

    def delete_owner(self, identifier: OwnerIdentifier) -> bool:
        return self._time("deleteOwner", identifier.owner, lambda: False)


__all__ = ["CassandraKeyDao"]
