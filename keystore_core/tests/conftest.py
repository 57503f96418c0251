from __future__ import annotations

import uuid
from collections import namedtuple
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import boto3
import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from moto import mock_aws
from prometheus_client import CollectorRegistry

from keystore_core import cql, ddb
from keystore_core.config import CassandraConfig, DynamoDbConfig, RetryConfig
from keystore_core.cql.statements import DETAILS, Statement, statement_templates
from keystore_core.ddb import AwsManager
from keystore_core.metrics import Metrics
from keystore_core.models import Key, KeyVersionIdentifier

PAGE_SIZE = 2

KeyRow = namedtuple("KeyRow", "owner key_name version value active type create_date update_date")
VersionRow = namedtuple("VersionRow", "owner key_name version")
OwnerRow = namedtuple("OwnerRow", "owner")
OwnerLookupRow = namedtuple("OwnerLookupRow", "owner lookup")


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> Metrics:
    return Metrics(registry=registry)


@pytest.fixture
def fast_retry() -> RetryConfig:
    return RetryConfig(max_attempts=3, initial_delay=0.0, max_delay=0.0)


@pytest.fixture
def key_factory() -> Callable[..., Key]:
    def make(
        owner: str = "owner",
        key: str = "key",
        version: int = 1,
        *,
        active: bool = True,
        update_date: Optional[datetime] = None,
    ) -> Key:
        return Key(
            key_version_identifier=KeyVersionIdentifier(owner=owner, key=key, version=version),
            value=AESGCM.generate_key(bit_length=256),
            type="AES_256_GCM",
            active=active,
            create_date=datetime.now(timezone.utc),
            update_date=update_date,
        )

    return make


@pytest.fixture
def unique_owner() -> str:
    return f"owner-{uuid.uuid4().hex[:12]}"


# DynamoDB, backed by moto


@pytest.fixture
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def dynamodb_config() -> DynamoDbConfig:
    return DynamoDbConfig(page_size=PAGE_SIZE)


@pytest.fixture
def dynamodb_client(aws_credentials: None, dynamodb_config: DynamoDbConfig):
    with mock_aws():
        client = boto3.client("dynamodb", region_name=dynamodb_config.region)
        AwsManager(client, dynamodb_config).create_table()
        yield client


@pytest.fixture
def dynamodb_key_dao(dynamodb_client, dynamodb_config: DynamoDbConfig, metrics: Metrics, fast_retry: RetryConfig):
    return ddb.build_key_dao(dynamodb_client, dynamodb_config, metrics=metrics, retry=fast_retry)


# Cassandra, backed by an in-memory session


class FakePreparedStatement:
    def __init__(self, statement: Statement) -> None:
        self.statement = statement

    def bind(self, values: Iterable[Any]) -> "FakeBoundStatement":
        return FakeBoundStatement(self.statement, tuple(values))


class FakeBoundStatement:
    def __init__(self, statement: Statement, values: Tuple[Any, ...]) -> None:
        self.statement = statement
        self.values = values
        self.fetch_size: Optional[int] = None


class FakeResultSet:
    def __init__(self, rows: List[Any], paging_state: Optional[bytes] = None) -> None:
        self.current_rows = rows
        self.paging_state = paging_state

    def one(self) -> Any:
        return self.current_rows[0] if self.current_rows else None

    def __iter__(self):
        return iter(self.current_rows)


def _driver_timestamp(value: Optional[datetime]) -> Optional[datetime]:
    # the driver returns naive UTC datetimes
    if value is None:
        return None
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class FakeCqlSession:
    """Evaluates the prepared statements of the catalog against dictionaries."""

    def __init__(self, config: CassandraConfig) -> None:
        self._operations = {template.cql: statement for statement, template in statement_templates(config).items()}
        self.keys: Dict[Tuple[str, str, int], KeyRow] = {}
        self.active_keys: Dict[Tuple[str, str, int], KeyRow] = {}
        self.owners: Dict[Tuple[str, str], datetime] = {}
        self.executed: List[Statement] = []
        self.failures: List[BaseException] = []

    def prepare(self, cql_text: str) -> FakePreparedStatement:
        return FakePreparedStatement(self._operations[cql_text])

    def execute(self, statement: FakeBoundStatement, paging_state: Optional[bytes] = None) -> FakeResultSet:
        if self.failures:
            raise self.failures.pop(0)
        self.executed.append(statement.statement)
        handler = getattr(self, f"_{statement.statement.name.lower()}")
        rows = handler(*statement.values) or []
        return self._page(rows, statement.fetch_size, paging_state)

    @staticmethod
    def _page(rows: List[Any], fetch_size: Optional[int], paging_state: Optional[bytes]) -> FakeResultSet:
        offset = int.from_bytes(paging_state, "big") if paging_state else 0
        if not fetch_size:
            return FakeResultSet(rows[offset:])
        end = offset + fetch_size
        next_state = end.to_bytes(8, "big") if end < len(rows) else None
        return FakeResultSet(rows[offset:end], next_state)

    @staticmethod
    def _key_row(owner, key_name, version, value, active, type_, create_date, update_date) -> KeyRow:
        return KeyRow(
            owner, key_name, version, bytes(value), active, type_,
            _driver_timestamp(create_date), _driver_timestamp(update_date),
        )

    def _owner_store(self, owner: str, create_date: datetime) -> None:
        self.owners[(owner, DETAILS)] = create_date

    def _owner_store_key(self, owner: str, key_name: str, create_date: datetime) -> None:
        self.owners[(owner, key_name)] = create_date

    def _owner_load(self, owner: str) -> List[OwnerRow]:
        return [OwnerRow(owner)] if (owner, DETAILS) in self.owners else []

    def _owner_list(self, lookup: str) -> List[OwnerRow]:
        return [OwnerRow(owner) for owner, row_lookup in sorted(self.owners) if row_lookup == lookup]

    def _key_store(self, *values: Any) -> None:
        row = self._key_row(*values)
        self.keys[(row.owner, row.key_name, row.version)] = row

    def _key_store_active(self, *values: Any) -> None:
        row = self._key_row(*values)
        self.active_keys[(row.owner, row.key_name, row.version)] = row

    def _key_delete_active(self, owner: str, key_name: str, version: int) -> None:
        self.active_keys.pop((owner, key_name, version), None)

    def _key_delete_version(self, owner: str, key_name: str, version: int) -> None:
        self.keys.pop((owner, key_name, version), None)

    def _key_load_version(self, owner: str, key_name: str, version: int) -> List[KeyRow]:
        row = self.keys.get((owner, key_name, version))
        return [row] if row else []

    def _key_load_active_version(self, owner: str, key_name: str) -> List[KeyRow]:
        rows = [row for (o, k, _), row in self.active_keys.items() if (o, k) == (owner, key_name)]
        return sorted(rows, key=lambda row: row.version, reverse=True)[:1]

    def _key_list_version(self, owner: str, key_name: str) -> List[VersionRow]:
        versions = sorted((v for (o, k, v) in self.keys if (o, k) == (owner, key_name)), reverse=True)
        return [VersionRow(owner, key_name, version) for version in versions]

    def _key_list(self, owner: str) -> List[OwnerLookupRow]:
        return [OwnerLookupRow(o, lookup) for o, lookup in sorted(self.owners) if o == owner]


@pytest.fixture
def cassandra_config() -> CassandraConfig:
    return CassandraConfig(page_size=PAGE_SIZE)


@pytest.fixture
def cql_session(cassandra_config: CassandraConfig) -> FakeCqlSession:
    return FakeCqlSession(cassandra_config)


@pytest.fixture
def cassandra_key_dao(cql_session: FakeCqlSession, cassandra_config: CassandraConfig, metrics: Metrics, fast_retry):
    return cql.build_key_dao(cql_session, cassandra_config, metrics=metrics, retry=fast_retry)


@pytest.fixture(params=["dynamodb", "cassandra"])
def key_dao(request: pytest.FixtureRequest):
    return request.getfixturevalue(f"{request.param}_key_dao")
