"""CQL statement registry.

Each :class:`Statement` names one operation and maps to a
:class:`StatementTemplate`: the CQL text plus a binder turning the domain
value into the positional bind values. Binders are plain functions so they
can be exercised without a session.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import structlog

from ..config import CassandraConfig
from ..models import Key, KeyIdentifier, KeyVersionIdentifier
from ..utils.validation import SEPARATOR, check_segment

logger = structlog.get_logger(__name__)

DETAILS = "details"
# rows naming a key are kept apart from the owner's own row
KEY_LOOKUP_PREFIX = f"key{SEPARATOR}"

Binder = Callable[[Any], Tuple[Any, ...]]
Clock = Callable[[], datetime]


class Statement(str, Enum):
    OWNER_STORE = "owner.store"
    OWNER_STORE_KEY = "owner.store.key"
    OWNER_LOAD = "owner.load"
    OWNER_LIST = "owner.list"
    KEY_STORE = "key.store"
    KEY_STORE_ACTIVE = "key.store.active"
    KEY_DELETE_ACTIVE = "key.delete.active"
    KEY_DELETE_VERSION = "key.delete.version"
    KEY_LOAD_VERSION = "key.load.version"
    KEY_LOAD_ACTIVE_VERSION = "key.load.active.version"
    KEY_LIST_VERSION = "key.list.version"
    KEY_LIST = "key.list"


@dataclass(frozen=True, slots=True)
class StatementTemplate:
    cql: str
    binder: Binder

    def bind_values(self, value: Any) -> Tuple[Any, ...]:
        return self.binder(value)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _owner(owner: str) -> str:
    return check_segment("owner", owner)


def _key_lookup(key: str) -> str:
    return KEY_LOOKUP_PREFIX + check_segment("key", key)


def _key_values(key: Key) -> Tuple[Any, ...]:
    identifier = key.key_version_identifier
    return (
        _owner(identifier.owner),
        check_segment("key", identifier.key),
        identifier.version,
        key.value,
        key.active,
        key.type,
        key.create_date,
        key.update_date,
    )


def _version_values(identifier: KeyVersionIdentifier) -> Tuple[Any, ...]:
    return (_owner(identifier.owner), check_segment("key", identifier.key), identifier.version)


def _key_identifier_values(identifier: KeyIdentifier) -> Tuple[Any, ...]:
    return (_owner(identifier.owner), check_segment("key", identifier.key))


def statement_templates(config: CassandraConfig, clock: Clock = utc_now) -> Dict[Statement, StatementTemplate]:
    """Build every template for the configured keyspace and tables."""
    owners = f"{config.keyspace}.{config.owners_table}"
    keys = f"{config.keyspace}.{config.keys_table}"
    active_keys = f"{config.keyspace}.{config.active_keys_table}"
    key_columns = "(owner, key_name, version, value, active, type, create_date, update_date)"
    version_match = "where owner = ? and key_name = ? and version = ?"

    return {
        Statement.OWNER_STORE: StatementTemplate(
            f"insert into {owners} (owner, lookup, create_date) values (?, '{DETAILS}', ?)",
            lambda owner: (_owner(owner), clock()),
        ),
        Statement.OWNER_STORE_KEY: StatementTemplate(
            f"insert into {owners} (owner, lookup, create_date) values (?, ?, ?)",
            lambda key: (_owner(key.owner), _key_lookup(key.key_version_identifier.key), clock()),
        ),
        Statement.OWNER_LOAD: StatementTemplate(
            f"select owner from {owners} where owner = ? and lookup = '{DETAILS}'",
            lambda owner: (_owner(owner),),
        ),
        Statement.OWNER_LIST: StatementTemplate(
            f"select owner from {owners} where lookup = ?",
            lambda _: (DETAILS,),
        ),
        Statement.KEY_STORE: StatementTemplate(
            f"insert into {keys} {key_columns} values (?, ?, ?, ?, ?, ?, ?, ?)",
            _key_values,
        ),
        Statement.KEY_STORE_ACTIVE: StatementTemplate(
            f"insert into {active_keys} {key_columns} values (?, ?, ?, ?, ?, ?, ?, ?)",
            _key_values,
        ),
        Statement.KEY_DELETE_ACTIVE: StatementTemplate(
            f"delete from {active_keys} {version_match}",
            _version_values,
        ),
        Statement.KEY_DELETE_VERSION: StatementTemplate(
            f"delete from {keys} {version_match}",
            _version_values,
        ),
        Statement.KEY_LOAD_VERSION: StatementTemplate(
            f"select * from {keys} {version_match}",
            _version_values,
        ),
        Statement.KEY_LOAD_ACTIVE_VERSION: StatementTemplate(
            f"select * from {active_keys} where owner = ? and key_name = ? order by version desc limit 1",
            _key_identifier_values,
        ),
        Statement.KEY_LIST_VERSION: StatementTemplate(
            f"select owner, key_name, version from {keys} where owner = ? and key_name = ? order by version desc",
            _key_identifier_values,
        ),
        Statement.KEY_LIST: StatementTemplate(
            f"select owner, lookup from {owners} where owner = ?",
            lambda identifier: (_owner(identifier.owner),),
        ),
    }


class StatementCatalog:
    """Templates prepared once against a session, bound by operation."""

    def __init__(self, session: Any, templates: Mapping[Statement, StatementTemplate]) -> None:
        self._templates = dict(templates)
        self._prepared = {statement: session.prepare(template.cql) for statement, template in self._templates.items()}
        logger.info("statementcatalog.prepared", statements=len(self._prepared))

    def bind(self, statement: Statement, value: Any = None, *, fetch_size: Optional[int] = None) -> Any:
        try:
            template = self._templates[statement]
        except KeyError as exc:
            raise ValueError(f"No such statement: {statement}") from exc
        bound = self._prepared[statement].bind(template.bind_values(value))
        if fetch_size is not None:
            bound.fetch_size = fetch_size
        return bound


__all__ = [
    "DETAILS",
    "KEY_LOOKUP_PREFIX",
    "Statement",
    "StatementCatalog",
    "StatementTemplate",
    "statement_templates",
    "utc_now",
]
