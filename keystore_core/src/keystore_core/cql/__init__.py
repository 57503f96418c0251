"""Cassandra key store backend."""
from __future__ import annotations

from typing import Any, Optional

from ..config import CassandraConfig, RetryConfig
from ..metrics import Metrics
from ..retry import RetryPolicy
from .accessor import CassandraAccessor
from .dao import CassandraKeyDao
from .key_converter import KeyConverter
from .owner_converter import OwnerConverter
from .schema import CassandraSchemaManager
from .statements import DETAILS, Clock, Statement, StatementCatalog, StatementTemplate, statement_templates, utc_now


def build_key_dao(
    session: Any,
    config: Optional[CassandraConfig] = None,
    *,
    metrics: Optional[Metrics] = None,
    retry: Optional[RetryConfig] = None,
    clock: Clock = utc_now,
) -> CassandraKeyDao:
    """Wire a :class:`CassandraKeyDao` around a connected driver session."""
    config = config or CassandraConfig()
    metrics = metrics or Metrics()
    accessor = CassandraAccessor(session, metrics, RetryPolicy(retry or RetryConfig(), name="cassandraAccessor"))
    catalog = StatementCatalog(session, statement_templates(config, clock))
    return CassandraKeyDao(
        accessor,
        catalog,
        KeyConverter(metrics),
        OwnerConverter(),
        metrics,
        page_size=config.page_size,
    )


__all__ = [
    "DETAILS",
    "CassandraAccessor",
    "CassandraKeyDao",
    "CassandraSchemaManager",
    "KeyConverter",
    "OwnerConverter",
    "Statement",
    "StatementCatalog",
    "StatementTemplate",
    "build_key_dao",
    "statement_templates",
]
