from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from prometheus_client import CollectorRegistry

from keystore_core.config import DynamoDbConfig, RetryConfig
from keystore_core.ddb import MAX_TIMES_KEY_STORE, DynamoDbClientAccessor, build_key_dao
from keystore_core.exceptions import DecodeError, DependencyError, RetryableError, RetryExhaustedError
from keystore_core.metrics import Metrics
from keystore_core.models import KeyVersionIdentifier
from keystore_core.retry import RetryPolicy

NO_WAIT = RetryConfig(max_attempts=3, initial_delay=0.0, max_delay=0.0)


def _client_error(code: str, operation: str = "PutItem") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def _accessor(client: MagicMock, registry: CollectorRegistry) -> DynamoDbClientAccessor:
    return DynamoDbClientAccessor(client, Metrics(registry=registry), RetryPolicy(NO_WAIT, name="test"))


@pytest.mark.parametrize(
    "code",
    [
        "ProvisionedThroughputExceededException",
        "TransactionConflictException",
        "RequestLimitExceeded",
        "InternalServerError",
    ],
)
def test_throttling_is_retried(code: str) -> None:
    registry = CollectorRegistry()
    client = MagicMock()
    client.put_item.side_effect = [_client_error(code), {"ConsumedCapacity": {}}]

    assert _accessor(client, registry).put_item({"TableName": "t", "Item": {}}) == {"ConsumedCapacity": {}}
    assert client.put_item.call_count == 2
    assert registry.get_sample_value("ddbAccessor_putItem_seconds_count", {"outcome": "failure"}) == 1.0
    assert registry.get_sample_value("ddbAccessor_putItem_seconds_count", {"outcome": "success"}) == 1.0


def test_retryable_error_surfaces_after_attempts_run_out() -> None:
    client = MagicMock()
    client.query.side_effect = _client_error("ProvisionedThroughputExceededException", "Query")

    with pytest.raises(RetryableError):
        _accessor(client, CollectorRegistry()).query({"TableName": "t"})
    assert client.query.call_count == 3


@pytest.mark.parametrize("error", [_client_error("ValidationException"), RuntimeError("socket closed")])
def test_other_failures_are_dependency_errors(error: Exception) -> None:
    client = MagicMock()
    client.get_item.side_effect = error

    with pytest.raises(DependencyError):
        _accessor(client, CollectorRegistry()).get_item({"TableName": "t", "Key": {}})
    assert client.get_item.call_count == 1


def test_request_is_passed_as_keyword_arguments() -> None:
    client = MagicMock()
    client.delete_item.return_value = {}
    _accessor(client, CollectorRegistry()).delete_item({"TableName": "t", "Key": {"k": {"S": "v"}}})
    client.delete_item.assert_called_once_with(TableName="t", Key={"k": {"S": "v"}})


def test_store_gives_up_after_bounded_batch_attempts(key_factory) -> None:
    registry = CollectorRegistry()
    client = MagicMock()

    def never_finishes(**request):
        return {"UnprocessedItems": request["RequestItems"]}

    client.batch_write_item.side_effect = never_finishes
    dao = build_key_dao(client, DynamoDbConfig(), metrics=Metrics(registry=registry), retry=NO_WAIT)

    with pytest.raises(RetryExhaustedError) as excinfo:
        dao.store(key_factory())

    assert client.batch_write_item.call_count == MAX_TIMES_KEY_STORE == 5
    assert excinfo.value.attempts == 5
    assert len(excinfo.value.unprocessed["keyservice"]) == 2
    assert registry.get_sample_value("ddbdao_batchWrite_ran_out_total") == 1.0


def test_store_resubmits_only_unprocessed_items(key_factory) -> None:
    client = MagicMock()
    calls = []

    def partially(**request):
        calls.append(request["RequestItems"])
        writes = request["RequestItems"]["keyservice"]
        if len(writes) > 1:
            return {"UnprocessedItems": {"keyservice": writes[1:]}}
        return {"UnprocessedItems": {}}

    client.batch_write_item.side_effect = partially
    dao = build_key_dao(client, DynamoDbConfig(), metrics=Metrics(registry=CollectorRegistry()), retry=NO_WAIT)

    dao.store(key_factory())

    assert [len(call["keyservice"]) for call in calls] == [2, 1]


def test_listing_a_corrupt_owner_row_fails(dynamodb_client, dynamodb_key_dao) -> None:
    dynamodb_key_dao.store_owner("good")
    dynamodb_client.put_item(
        TableName="keyservice",
        Item={"hashKey": {"S": "owner:a:b"}, "rangeKey": {"S": "info"}, "ownerSearchIdx": {"S": "info"}},
    )

    with pytest.raises(DecodeError):
        token = None
        while True:
            batch = dynamodb_key_dao.list_owners(token)
            token = batch.next_token
            if token is None:
                break


def test_loading_a_corrupt_key_record_fails(dynamodb_client, dynamodb_key_dao) -> None:
    dynamodb_client.put_item(
        TableName="keyservice",
        Item={"hashKey": {"S": "keyVersion:o:k"}, "rangeKey": {"S": "0000000000000000001"}},
    )

    with pytest.raises(DecodeError):
        dynamodb_key_dao.load(KeyVersionIdentifier(owner="o", key="k", version=1))


def test_dao_timers_are_tagged_by_owner(dynamodb_key_dao, registry: CollectorRegistry) -> None:
    dynamodb_key_dao.load_owner("alice")
    dynamodb_key_dao.list_owners()

    assert registry.get_sample_value(
        "ddbdao_loadOwner_seconds_count", {"outcome": "success", "owner": "alice"}
    ) == 1.0
    assert registry.get_sample_value(
        "ddbdao_listOwners_seconds_count", {"outcome": "success", "owner": "null"}
    ) == 1.0
    assert registry.get_sample_value("ddbdao_found_owner_total") == 0.0
