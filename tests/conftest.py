"""Shared fixtures: in-memory collaborators, a frozen clock and a signed client."""

import json
import os
from datetime import datetime, timedelta, timezone

os.environ["PADDLE_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["API_KEY"] = "test-api-key"
os.environ["POSTGRES_DSN"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient

from dropgate.app import create_app
from dropgate.common.blob_store import FilesystemBlobStore
from dropgate.common.token_store import InMemoryTokenStore
from dropgate.services.download.service import DownloadGateway
from dropgate.services.notification.service import Notifier
from dropgate.services.webhook.resolver import KeyResolver
from dropgate.services.webhook.service import WebhookProcessor
from dropgate.services.webhook.signature import sign_payload


WEBHOOK_SECRET = "test-webhook-secret"
API_KEY = "test-api-key"
BASE_URL = "https://dl.example.com"
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
DEMO_BYTES = b"PK\x03\x04demo-archive-bytes"


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class RecordingEmailSender:
    """Counts sends; flip `fail` to simulate a provider outage."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail = False

    def send(self, to: str, subject: str, html_body: str) -> None:
        if self.fail:
            raise RuntimeError("email provider unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html_body})


class RecordingOrderRepository:
    def __init__(self) -> None:
        self.records: list[dict] = []
        self.fail = False

    def insert(self, record: dict) -> None:
        if self.fail:
            raise RuntimeError("order database unavailable")
        self.records.append(record)


def completed_payload(
    transaction_id: str | None = "txn_1",
    download_path: str | None = "products/demo.zip",
    email: str | None = "buyer@example.com",
    price_id: str = "pri_demo",
    event_type: str = "transaction.completed",
) -> dict:
    product = {"id": "pro_demo", "name": "Demo kit"}
    if download_path is not None:
        product["custom_data"] = {"download_path": download_path}
    data = {
        "status": "completed",
        "customer_id": "ctm_1",
        "currency_code": "USD",
        "items": [{"price": {"id": price_id, "name": "Demo"}, "product": product}],
        "details": {"totals": {"total": "1900", "grand_total": "1900"}},
        "checkout": {"customer": {"email": email}} if email is not None else {},
        "custom_data": None,
    }
    if transaction_id is not None:
        data["id"] = transaction_id
    return {
        "event_id": "evt_1",
        "event_type": event_type,
        "occurred_at": "2026-10-19T12:00:00Z",
        "notification_id": "ntf_1",
        "data": data,
    }


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def store():
    return InMemoryTokenStore()


@pytest.fixture
def blob_root(tmp_path):
    root = tmp_path / "assets"
    (root / "products").mkdir(parents=True)
    (root / "products" / "demo.zip").write_bytes(DEMO_BYTES)
    return root


@pytest.fixture
def blobs(blob_root):
    return FilesystemBlobStore(blob_root)


@pytest.fixture
def email():
    return RecordingEmailSender()


@pytest.fixture
def orders():
    return RecordingOrderRepository()


@pytest.fixture
def resolver():
    return KeyResolver({"pri_static": "static-kit"})


@pytest.fixture
def processor(store, resolver, orders, email, clock):
    return WebhookProcessor(store, resolver, Notifier(orders, email), clock=clock)


@pytest.fixture
def gateway(store, blobs, clock):
    return DownloadGateway(store, blobs, clock=clock)


@pytest.fixture
def client(store, processor, gateway):
    app = create_app(
        store,
        processor,
        gateway,
        webhook_secret=WEBHOOK_SECRET,
        api_key=API_KEY,
        public_base_url=BASE_URL,
    )
    return TestClient(app)


@pytest.fixture
def post_webhook(client):
    """POST a payload with a fresh, valid signature unless one is given."""

    def _post(payload, signature: str | None = None, raw: bytes | None = None):
        body = raw if raw is not None else json.dumps(payload).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        headers["Paddle-Signature"] = signature or sign_payload(body, WEBHOOK_SECRET)
        return client.post("/api/webhook/paddle", content=body, headers=headers)

    return _post
