"""Central exception hierarchy for the key store data layer."""
from __future__ import annotations

from typing import Any, Mapping, Optional


class KeystoreError(Exception):
    """Base exception for all data layer failures"""


class RetryableError(KeystoreError):
    """Raised for transient store conditions that are worth another attempt"""


class DependencyError(KeystoreError):
    """Raised when the store client fails in a way retrying will not fix"""


class DecodeError(KeystoreError):
    """Raised when a stored record or continuation token is structurally invalid"""


class SchemaError(KeystoreError):
    """Raised when tables, indexes or keyspaces cannot be created"""


class RetryExhaustedError(KeystoreError):
    """Raised when a batched write still has unprocessed items after the bound"""

    def __init__(self, message: str, *, attempts: int, unprocessed: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.unprocessed = dict(unprocessed or {})


__all__ = [
    "KeystoreError",
    "RetryableError",
    "DependencyError",
    "DecodeError",
    "SchemaError",
    "RetryExhaustedError",
]
