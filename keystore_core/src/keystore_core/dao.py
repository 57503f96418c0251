"""The backend-agnostic key storage contract."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Union

from .models import Batch, Key, KeyIdentifier, KeyVersionIdentifier, OwnerIdentifier, Token

Identifier = Union[KeyVersionIdentifier, KeyIdentifier, OwnerIdentifier]


class KeyDao(ABC):
    """Storage of versioned keys addressed by ``(owner, key, version)``.

    Every backend must behave identically through this interface; the shared
    contract tests are the reference for that behaviour.
    """

    @abstractmethod
    def store(self, key: Key) -> None:
        """Write or overwrite one key version and keep the active index in step."""

    @abstractmethod
    def store_owner(self, owner: str) -> OwnerIdentifier:
        """Idempotently record ``owner`` so it shows up in :meth:`list_owners`."""

    def load(self, identifier: Union[KeyVersionIdentifier, KeyIdentifier]) -> Optional[Key]:
        """Load an exact version, or the newest active version of a logical key."""
        if isinstance(identifier, KeyVersionIdentifier):
            return self.load_key_version(identifier)
        if isinstance(identifier, KeyIdentifier):
            return self.load_active_key(identifier)
        raise TypeError(f"Cannot load by {type(identifier).__name__}")

    @abstractmethod
    def load_key_version(self, identifier: KeyVersionIdentifier) -> Optional[Key]:
        ...

    @abstractmethod
    def load_active_key(self, identifier: KeyIdentifier) -> Optional[Key]:
        """Highest active version, or ``None`` when no version is active."""

    @abstractmethod
    def load_owner(self, owner: str) -> Optional[OwnerIdentifier]:
        ...

    @abstractmethod
    def list_owners(self, next_token: Optional[Token] = None) -> Batch[OwnerIdentifier]:
        ...

    @abstractmethod
    def list_keys(self, identifier: OwnerIdentifier, next_token: Optional[Token] = None) -> Batch[KeyIdentifier]:
        ...

    @abstractmethod
    def list_versions(
        self, identifier: KeyIdentifier, next_token: Optional[Token] = None
    ) -> Batch[KeyVersionIdentifier]:
        """Every version of a logical key. Order across pages is not guaranteed."""

    def delete(self, identifier: Identifier) -> bool:
        if isinstance(identifier, KeyVersionIdentifier):
            return self.delete_key_version(identifier)
        if isinstance(identifier, KeyIdentifier):
            return self.delete_key(identifier)
        if isinstance(identifier, OwnerIdentifier):
            return self.delete_owner(identifier)
        raise TypeError(f"Cannot delete by {type(identifier).__name__}")

    @abstractmethod
    def delete_key_version(self, identifier: KeyVersionIdentifier) -> bool:
        ...

    def delete_key(self, identifier: KeyIdentifier) -> bool:
        """Cascading deletes run as an offline batch job; nothing is removed here."""
        return False

    def delete_owner(self, identifier: OwnerIdentifier) -> bool:
        """Cascading deletes run as an offline batch job; nothing is removed here."""
        return False


__all__ = ["KeyDao", "Identifier"]
