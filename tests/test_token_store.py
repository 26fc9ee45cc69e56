"""Token store contract for the in-memory and Redis backends."""

from datetime import timedelta

import pytest

from conftest import NOW
from dropgate.common.token_store import (
    InMemoryTokenStore,
    RedisTokenStore,
    TokenRecord,
    TransactionRecord,
)


class FakeRedis:
    """Just enough of redis-py's string commands for the store."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.values:
            return None
        self.values[key] = value
        self.ttls[key] = ex
        return True


@pytest.fixture(params=["memory", "redis"])
def any_store(request):
    if request.param == "memory":
        return InMemoryTokenStore()
    return RedisTokenStore(FakeRedis())


def test_missing_keys_return_none(any_store):
    assert any_store.get_transaction("txn_missing") is None
    assert any_store.get_token("tok_missing") is None


def test_transaction_written_once(any_store):
    """The idempotency marker is never overwritten."""

    first = TransactionRecord(download_token="tok_a", created_at=NOW)
    second = TransactionRecord(download_token="tok_b", created_at=NOW)
    assert any_store.put_transaction("txn_1", first) is True
    assert any_store.put_transaction("txn_1", second) is False
    assert any_store.get_transaction("txn_1").download_token == "tok_a"


def test_token_record_round_trip(any_store):
    record = TokenRecord(
        resource_key="products/demo.zip",
        expires_at=NOW + timedelta(days=30),
        product_id="pri_demo",
        transaction_id="txn_1",
    )
    any_store.put_token("tok_a", record)
    assert any_store.get_token("tok_a") == record


def test_validity_is_strictly_before_expiry():
    """Valid one second before expiry, invalid at and after it."""

    record = TokenRecord(resource_key="products/demo.zip", expires_at=NOW)
    assert record.is_valid(NOW - timedelta(seconds=1))
    assert not record.is_valid(NOW)
    assert not record.is_valid(NOW + timedelta(seconds=1))


def test_redis_keys_and_retention():
    fake = FakeRedis()
    store = RedisTokenStore(fake, retention_seconds=3600)
    store.put_transaction("txn_1", TransactionRecord(download_token=None, created_at=NOW))
    store.put_token("tok_a", TokenRecord(resource_key="k", expires_at=NOW))
    assert set(fake.values) == {"txn_txn_1", "token_tok_a"}
    assert fake.ttls == {"txn_txn_1": 3600, "token_tok_a": 3600}
