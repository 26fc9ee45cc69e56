"""Order repository, Resend sender and the best-effort notifier boundary."""

import json
from datetime import timedelta

import httpx
import pytest
from sqlalchemy.exc import IntegrityError

from conftest import RecordingEmailSender, RecordingOrderRepository
from dropgate.common.db import Base, build_engine, build_session_factory
from dropgate.services.notification.models import Order
from dropgate.services.notification.service import (
    Notifier,
    ResendEmailSender,
    SqlOrderRepository,
    download_email_html,
)


@pytest.fixture
def repository():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield SqlOrderRepository(build_session_factory(engine))
    engine.dispose()


def order_record(**overrides):
    record = {
        "transaction_id": "txn_1",
        "customer_email": "buyer@example.com",
        "currency_code": "USD",
        "total": "1900",
        "items": [{"price": {"id": "pri_demo"}}],
        "download_token": "tok_a",
    }
    record.update(overrides)
    return record


def test_order_insert(repository):
    repository.insert(order_record())
    with repository.session_factory() as db:
        order = db.get(Order, "txn_1")
        assert order.customer_email == "buyer@example.com"
        assert order.items == [{"price": {"id": "pri_demo"}}]
        assert order.created_at is not None


def test_duplicate_order_insert_fails(repository):
    repository.insert(order_record())
    with pytest.raises(IntegrityError):
        repository.insert(order_record())


def test_resend_sender_posts_message():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["auth"] = request.headers["authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "email_1"})

    sender = ResendEmailSender(
        "re_test",
        "Shop <shop@example.com>",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    sender.send("buyer@example.com", "Your download is ready", "<p>hi</p>")

    assert captured["auth"] == "Bearer re_test"
    assert captured["body"] == {
        "from": "Shop <shop@example.com>",
        "to": ["buyer@example.com"],
        "subject": "Your download is ready",
        "html": "<p>hi</p>",
    }


def test_resend_sender_raises_on_error_status():
    sender = ResendEmailSender(
        "re_test",
        "Shop <shop@example.com>",
        client=httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(422))),
    )
    with pytest.raises(httpx.HTTPStatusError):
        sender.send("buyer@example.com", "s", "<p>x</p>")


def test_notifier_swallows_failures():
    """Failures are reported as False, never raised."""

    orders = RecordingOrderRepository()
    email = RecordingEmailSender()
    orders.fail = True
    email.fail = True
    notifier = Notifier(orders, email)

    assert notifier.record_order(order_record()) is False
    assert notifier.send_download_email("a@example.com", "https://x/download?token=t", timedelta(days=30)) is False
    assert notifier.send_order_confirmation("a@example.com", "txn_1", has_download=True) is False


def test_download_email_mentions_expiry_and_escapes_url():
    body = download_email_html('https://x/download?token=a"b', timedelta(days=30))
    assert "expires in 30 days" in body
    assert 'token=a&quot;b"' in body
