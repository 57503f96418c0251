from pathlib import Path

import pytest
import yaml

from keystore_core.config import AppConfig, CassandraConfig, RetryConfig, dump_default_config, load_config


def test_defaults_match_table_layout() -> None:
    config = AppConfig()
    assert config.datastore == "dynamodb"
    assert config.dynamodb.table_name == "keyservice"
    assert config.dynamodb.active_index == "activeIndex"
    assert config.dynamodb.owner_search_index == "ownerSearchIndex"
    assert config.cassandra.keyspace == "keystore"
    assert config.retry.max_attempts == 3


def test_load_config_from_explicit_path(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump({"datastore": "cassandra", "cassandra": {"keyspace": "keys_test", "page_size": 5}}),
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.datastore == "cassandra"
    assert config.cassandra.keyspace == "keys_test"
    assert config.cassandra.page_size == 5
    assert config.dynamodb.table_name == "keyservice"


def test_load_config_rejects_invalid_content(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"retry": {"max_attempts": 0}}), encoding="utf-8")
    with pytest.raises(ValueError) as excinfo:
        load_config(path)
    assert str(path) in str(excinfo.value)


def test_load_config_falls_back_to_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("keystore_core.config.runtime_config_dir", lambda: tmp_path / "missing")
    assert load_config() == AppConfig()


def test_dump_default_config_round_trips(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "config.yaml"
    dump_default_config(target)
    assert load_config(target) == AppConfig()


def test_cql_identifiers_are_validated() -> None:
    with pytest.raises(ValueError):
        CassandraConfig(keyspace="bad-name; drop")


def test_retry_base_must_grow() -> None:
    with pytest.raises(ValueError):
        RetryConfig(exponential_base=1.0)
