"""Decodes ``keys`` and ``active_keys`` rows."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import structlog

from ..exceptions import DecodeError
from ..metrics import Metrics
from ..models import Key, KeyVersionIdentifier

logger = structlog.get_logger(__name__)

OWNER = "owner"
KEY_NAME = "key_name"
VERSION = "version"
VALUE = "value"
ACTIVE = "active"
TYPE = "type"
CREATE_DATE = "create_date"
UPDATE_DATE = "update_date"

ACTIVE_INDEX_METRIC = "keyconverter.activeindex"
FOUND_UNEXPECTEDLY = "found.unexpectedly"


def column(row: Any, name: str, *, required: bool = True) -> Any:
    """Read ``name`` from a driver row, which may be a named tuple or a dict."""
    if isinstance(row, dict):
        value = row.get(name)
    else:
        value = getattr(row, name, None)
    if value is None and required:
        raise DecodeError(f"Row is missing column {name!r}")
    return value


class KeyConverter:
    def __init__(self, metrics: Metrics) -> None:
        self._metrics = metrics

    def to_key_version_identifier(self, row: Any) -> KeyVersionIdentifier:
        try:
            return KeyVersionIdentifier(
                owner=column(row, OWNER),
                key=column(row, KEY_NAME),
                version=column(row, VERSION),
            )
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"Row holds an invalid key version: {exc}") from exc

    def to_key(self, row: Any) -> Key:
        identifier = self.to_key_version_identifier(row)
        return Key(
            key_version_identifier=identifier,
            value=column(row, VALUE),
            type=column(row, TYPE),
            active=bool(column(row, ACTIVE)),
            create_date=self._date(column(row, CREATE_DATE)),
            update_date=self._date(column(row, UPDATE_DATE, required=False)),
        )

    def to_active_key(self, row: Any) -> Key:
        """Decode a row read from ``active_keys``; every row there should be active."""
        key = self.to_key(row)
        if not key.active:
            logger.error("keyconverter.activeindex.found_unexpectedly", identifier=str(key.key_version_identifier))
            self._metrics.count(ACTIVE_INDEX_METRIC, invalid_index=FOUND_UNEXPECTEDLY)
        return key

    @staticmethod
    def _date(value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if not isinstance(value, datetime):
            raise DecodeError(f"Expected a timestamp, got {type(value).__name__}")
        # the driver hands back naive UTC; Key normalizes it
        return value


__all__ = ["KeyConverter", "column"]
