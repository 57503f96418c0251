"""Versioned key storage over DynamoDB and Cassandra."""
from __future__ import annotations

from .config import AppConfig, load_config
from .dao import KeyDao
from .exceptions import (
    DecodeError,
    DependencyError,
    KeystoreError,
    RetryableError,
    RetryExhaustedError,
    SchemaError,
)
from .metrics import Metrics
from .models import Batch, Key, KeyIdentifier, KeyVersionIdentifier, OwnerIdentifier, Token
from .version import __version__

__all__ = [
    "AppConfig",
    "Batch",
    "DecodeError",
    "DependencyError",
    "Key",
    "KeyDao",
    "KeyIdentifier",
    "KeyVersionIdentifier",
    "KeystoreError",
    "Metrics",
    "OwnerIdentifier",
    "RetryExhaustedError",
    "RetryableError",
    "SchemaError",
    "Token",
    "__version__",
    "load_config",
]
