"""Identifier and value types shared by every key store backend."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")

MAX_VERSION = 2**63 - 1
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def normalize_timestamp(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime truncated to milliseconds.

    Both stores persist milliseconds since the epoch, so anything finer would
    not survive a round trip. Naive values are taken to already be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def to_epoch_millis(value: datetime) -> int:
    return (normalize_timestamp(value) - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_millis(millis: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=int(millis))


@dataclass(frozen=True, slots=True)
class OwnerIdentifier:
    owner: str


@dataclass(frozen=True, slots=True)
class KeyIdentifier:
    owner: str
    key: str

    def owner_identifier(self) -> OwnerIdentifier:
        return OwnerIdentifier(owner=self.owner)


@dataclass(frozen=True, slots=True)
class KeyVersionIdentifier(KeyIdentifier):
    version: int

    def __post_init__(self) -> None:
        if isinstance(self.version, bool) or not isinstance(self.version, int):
            raise TypeError(f"version must be an int, got {type(self.version).__name__}")
        if not 0 <= self.version <= MAX_VERSION:
            raise ValueError(f"version out of range: {self.version}")

    def key_identifier(self) -> KeyIdentifier:
        return KeyIdentifier(owner=self.owner, key=self.key)


@dataclass(frozen=True, slots=True)
class Key:
    """A single stored key version. ``value`` is opaque ciphertext."""

    key_version_identifier: KeyVersionIdentifier
    value: bytes = field(repr=False)
    type: str
    active: bool
    create_date: datetime
    update_date: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", bytes(self.value))
        object.__setattr__(self, "create_date", normalize_timestamp(self.create_date))
        if self.update_date is not None:
            object.__setattr__(self, "update_date", normalize_timestamp(self.update_date))

    @property
    def owner(self) -> str:
        return self.key_version_identifier.owner

    def key_identifier(self) -> KeyIdentifier:
        return self.key_version_identifier.key_identifier()

    def with_active(self, active: bool, *, update_date: Optional[datetime] = None) -> "Key":
        return replace(self, active=active, update_date=update_date or self.update_date)


@dataclass(frozen=True, slots=True)
class Token:
    """Opaque continuation position. Only the backend that issued it may read it."""

    value: str


@dataclass(frozen=True, slots=True)
class Batch(Generic[T]):
    items: Sequence[T] = field(default_factory=tuple)
    next_token: Optional[Token] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def to_list(self) -> List[T]:
        return list(self.items)


__all__ = [
    "Batch",
    "Key",
    "KeyIdentifier",
    "KeyVersionIdentifier",
    "OwnerIdentifier",
    "Token",
    "from_epoch_millis",
    "normalize_timestamp",
    "to_epoch_millis",
]
