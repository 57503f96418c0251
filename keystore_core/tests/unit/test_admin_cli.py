import json
from pathlib import Path
from unittest.mock import MagicMock

import boto3
import pytest
import yaml
from moto import mock_aws
from typer.testing import CliRunner

from keystore_core import __version__
from keystore_core.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("keystore_core.cli.configure_logging", lambda level: None)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"dynamodb": {"table_name": "cli_keys", "region": "us-east-1"}}), encoding="utf-8")
    return path


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == __version__


def test_show_config(config_file: Path) -> None:
    result = runner.invoke(app, ["--config", str(config_file), "show-config"])
    assert result.exit_code == 0
    assert json.loads(result.stdout)["dynamodb"]["table_name"] == "cli_keys"


def test_invalid_config_exits(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"datastore": "sqlite"}), encoding="utf-8")
    result = runner.invoke(app, ["--config", str(path), "show-config"])
    assert result.exit_code == 2


def test_init_dynamodb_creates_table(aws_credentials, config_file: Path) -> None:
    with mock_aws():
        result = runner.invoke(app, ["--config", str(config_file), "init-dynamodb"])
        assert result.exit_code == 0, result.output
        assert "cli_keys" in boto3.client("dynamodb", region_name="us-east-1").list_tables()["TableNames"]

        again = runner.invoke(app, ["--config", str(config_file), "init-dynamodb"])
        assert again.exit_code == 1


class RecordingCluster:
    instances = []

    def __init__(self, contact_points, port, load_balancing_policy) -> None:
        self.contact_points = contact_points
        self.port = port
        self.session = MagicMock()
        self.shut_down = False
        RecordingCluster.instances.append(self)

    def connect(self):
        return self.session

    def shutdown(self) -> None:
        self.shut_down = True


def test_init_cassandra_uses_configured_contact_points(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump({"cassandra": {"keyspace": "cli_ks", "contact_points": ["10.0.0.5"], "port": 9142}}),
        encoding="utf-8",
    )
    RecordingCluster.instances.clear()
    monkeypatch.setattr("cassandra.cluster.Cluster", RecordingCluster)

    result = runner.invoke(app, ["--config", str(path), "init-cassandra"])

    assert result.exit_code == 0, result.output
    assert "cli_ks" in result.stdout
    (cluster,) = RecordingCluster.instances
    assert cluster.contact_points == ["10.0.0.5"]
    assert cluster.port == 9142
    assert cluster.shut_down
    executed = [call.args[0] for call in cluster.session.execute.call_args_list]
    assert executed[0].startswith("create keyspace if not exists cli_ks")
