"""Keyspace and table definitions for the Cassandra backend."""
from __future__ import annotations

from typing import Any, List

import structlog

from ..config import CassandraConfig
from ..exceptions import SchemaError

logger = structlog.get_logger(__name__)

_KEY_TABLE = """create table if not exists {keyspace}.{table} (
  owner text,
  key_name text,
  version bigint,
  value blob,
  active boolean,
  type text,
  create_date timestamp,
  update_date timestamp,
  primary key ((owner, key_name), version)
) with clustering order by (version desc)"""

_OWNER_TABLE = """create table if not exists {keyspace}.{table} (
  owner text,
  lookup text,
  create_date timestamp,
  primary key ((owner), lookup)
)"""


class CassandraSchemaManager:
    def __init__(self, session: Any, config: CassandraConfig) -> None:
        self._session = session
        self._config = config

    def statements(self) -> List[str]:
        config = self._config
        keyspace = config.keyspace
        return [
            f"create keyspace if not exists {keyspace} with replication = "
            f"{{'class': 'SimpleStrategy', 'replication_factor': {config.replication_factor}}}",
            _KEY_TABLE.format(keyspace=keyspace, table=config.keys_table),
            _KEY_TABLE.format(keyspace=keyspace, table=config.active_keys_table),
            _OWNER_TABLE.format(keyspace=keyspace, table=config.owners_table),
            # list_owners looks rows up by lookup alone
            f"create index if not exists {config.owners_table}_lookup_idx on {keyspace}.{config.owners_table} (lookup)",
        ]

    def create_schema(self) -> None:
        logger.info("cassandraschema.create", keyspace=self._config.keyspace)
        for statement in self.statements():
            try:
                self._session.execute(statement)
            except Exception as exc:
                logger.error("cassandraschema.create.failed", keyspace=self._config.keyspace, error=str(exc))
                raise SchemaError(f"Unable to apply schema to {self._config.keyspace}: {exc}") from exc


__all__ = ["CassandraSchemaManager"]
