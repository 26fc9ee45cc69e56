"""Durable key-value storage for transaction and download-token records.

Two independent indices live side by side:

- `txn_<transaction id>` -> `TransactionRecord` (idempotency marker)
- `token_<download token>` -> `TokenRecord` (the presented capability)

There is no cross-key transaction. `put_transaction` is a conditional write so
two racing first-time passes for one transaction cannot both commit.
"""

import threading
from datetime import datetime, timezone

import redis
from pydantic import BaseModel


class TransactionRecord(BaseModel):
    """Marker written once per processed transaction; never exposed externally."""

    download_token: str | None
    created_at: datetime


class TokenRecord(BaseModel):
    """Access record behind one download token."""

    resource_key: str
    expires_at: datetime
    product_id: str | None = None
    transaction_id: str | None = None

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


def transaction_key(transaction_id: str) -> str:
    return f"txn_{transaction_id}"


def token_key(token: str) -> str:
    return f"token_{token}"


class TokenStore:
    """Storage contract shared by the webhook processor and download gateway."""

    def get_transaction(self, transaction_id: str) -> TransactionRecord | None:
        raise NotImplementedError

    def put_transaction(self, transaction_id: str, record: TransactionRecord) -> bool:
        """Write the record unless one exists; return True when this call created it."""

        raise NotImplementedError

    def get_token(self, token: str) -> TokenRecord | None:
        raise NotImplementedError

    def put_token(self, token: str, record: TokenRecord) -> None:
        raise NotImplementedError


class RedisTokenStore(TokenStore):
    """Redis-backed store; records are JSON strings under prefixed keys."""

    def __init__(self, client: redis.Redis, retention_seconds: int | None = None) -> None:
        self.client = client
        self.retention_seconds = retention_seconds

    @classmethod
    def from_url(cls, url: str, retention_seconds: int | None = None) -> "RedisTokenStore":
        return cls(redis.Redis.from_url(url, decode_responses=True), retention_seconds)

    def get_transaction(self, transaction_id: str) -> TransactionRecord | None:
        raw = self.client.get(transaction_key(transaction_id))
        if raw is None:
            return None
        return TransactionRecord.model_validate_json(raw)

    def put_transaction(self, transaction_id: str, record: TransactionRecord) -> bool:
        created = self.client.set(
            transaction_key(transaction_id),
            record.model_dump_json(),
            nx=True,
            ex=self.retention_seconds,
        )
        return bool(created)

    def get_token(self, token: str) -> TokenRecord | None:
        raw = self.client.get(token_key(token))
        if raw is None:
            return None
        return TokenRecord.model_validate_json(raw)

    def put_token(self, token: str, record: TokenRecord) -> None:
        self.client.set(token_key(token), record.model_dump_json(), ex=self.retention_seconds)


class InMemoryTokenStore(TokenStore):
    """Process-local store for tests and single-process development runs."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get_transaction(self, transaction_id: str) -> TransactionRecord | None:
        raw = self._data.get(transaction_key(transaction_id))
        return TransactionRecord.model_validate_json(raw) if raw is not None else None

    def put_transaction(self, transaction_id: str, record: TransactionRecord) -> bool:
        key = transaction_key(transaction_id)
        with self._lock:
            if key in self._data:
                return False
            self._data[key] = record.model_dump_json()
            return True

    def get_token(self, token: str) -> TokenRecord | None:
        raw = self._data.get(token_key(token))
        return TokenRecord.model_validate_json(raw) if raw is not None else None

    def put_token(self, token: str, record: TokenRecord) -> None:
        with self._lock:
            self._data[token_key(token)] = record.model_dump_json()

    def keys(self) -> list[str]:
        return sorted(self._data)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
