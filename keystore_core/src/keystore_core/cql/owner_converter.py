"""Decodes ``owners`` rows.

An owner partition holds one ``details`` row, written by ``store_owner``, and
one ``key:{name}`` row per logical key stored under the owner.
"""
from __future__ import annotations

from typing import Any

from ..exceptions import DecodeError
from ..models import KeyIdentifier, OwnerIdentifier
from .key_converter import column
from .statements import KEY_LOOKUP_PREFIX

OWNER = "owner"
LOOKUP = "lookup"


class OwnerConverter:
    def to_owner_identifier(self, row: Any) -> OwnerIdentifier:
        return OwnerIdentifier(owner=column(row, OWNER))

    def to_key_identifier(self, row: Any) -> KeyIdentifier:
        lookup = column(row, LOOKUP)
        if not self.is_key(row) or len(lookup) == len(KEY_LOOKUP_PREFIX):
            raise DecodeError(f"Owner row does not name a key: {lookup!r}")
        return KeyIdentifier(owner=column(row, OWNER), key=lookup[len(KEY_LOOKUP_PREFIX):])

    @staticmethod
    def is_key(row: Any) -> bool:
        lookup = column(row, LOOKUP)
        return isinstance(lookup, str) and lookup.startswith(KEY_LOOKUP_PREFIX)


__all__ = ["OwnerConverter"]
