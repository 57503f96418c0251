"""Configuration loading utilities for the key store data layer."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .paths import runtime_config_dir


class DynamoDbConfig(BaseModel):
    table_name: str = Field(default="keyservice")
    hash_key: str = Field(default="hashKey")
    range_key: str = Field(default="rangeKey")
    ttl_key: str = Field(default="ttl", description="Attribute used for time-to-live expiry")
    active_index: str = Field(default="activeIndex", description="GSI over active key versions")
    owner_index: str = Field(default="ownerIndex", description="GSI over every key record of an owner")
    owner_search_index: str = Field(default="ownerSearchIndex", description="GSI over every owner")
    region: str = Field(default="us-east-1")
    endpoint_url: Optional[str] = Field(default=None)
    page_size: Optional[int] = Field(default=None, ge=1, description="Query limit; store default when unset")


class CassandraConfig(BaseModel):
    keyspace: str = Field(default="keystore")
    owners_table: str = Field(default="owners")
    keys_table: str = Field(default="keys")
    active_keys_table: str = Field(default="active_keys")
    contact_points: List[str] = Field(default_factory=lambda: ["127.0.0.1"])
    port: int = Field(default=9042, ge=1, le=65535)
    local_datacenter: str = Field(default="datacenter1")
    replication_factor: int = Field(default=1, ge=1)
    page_size: int = Field(default=100, ge=1)

    @field_validator("keyspace", "owners_table", "keys_table", "active_keys_table")
    @classmethod
    def _validate_identifier(cls, value: str) -> str:
        if not value.replace("_", "").isalnum():
            raise ValueError(f"Invalid CQL identifier: {value!r}")
        return value


class RetryConfig(BaseModel):
    """Accessor-level retry policy.

    ``max_attempts`` counts every try, so 3 means one call and two retries.
    """

    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=0.1, ge=0.0, description="Seconds before the first retry")
    exponential_base: float = Field(default=2.0, gt=1.0)
    max_delay: float = Field(default=2.0, ge=0.0)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Logging verbosity level")

    def normalized_level(self) -> str:
        return self.level.upper()


class AppConfig(BaseModel):
    datastore: Literal["dynamodb", "cassandra"] = Field(default="dynamodb")
    dynamodb: DynamoDbConfig = Field(default_factory=DynamoDbConfig)
    cassandra: CassandraConfig = Field(default_factory=CassandraConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


DEFAULT_CONFIG = AppConfig()


def config_search_paths(explicit: Optional[Path] = None) -> Iterable[Path]:
    if explicit:
        yield explicit
    yield Path.cwd() / ".keystore" / "config.yaml"
    yield runtime_config_dir() / "config.yaml"


def load_config(path: Optional[Path] = None) -> AppConfig:
    for candidate in config_search_paths(path):
        if candidate.is_file():
            with candidate.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
            try:
                return AppConfig.model_validate(data)
            except ValidationError as exc:
                raise ValueError(f"Invalid configuration in {candidate}: {exc}") from exc
    return DEFAULT_CONFIG.model_copy(deep=True)


def dump_default_config(target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(DEFAULT_CONFIG.model_dump(mode="json"), handle, sort_keys=False)


__all__ = [
    "AppConfig",
    "CassandraConfig",
    "DynamoDbConfig",
    "LoggingConfig",
    "RetryConfig",
    "DEFAULT_CONFIG",
    "config_search_paths",
    "dump_default_config",
    "load_config",
]
