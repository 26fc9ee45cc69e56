"""Order recording and customer email fan-out.

Every call made through `Notifier` is best-effort: failures are logged and
counted, never raised to the caller and never retried.
"""

import html
from datetime import timedelta
from typing import Any

import httpx

from dropgate.common.config import settings
from dropgate.common.logging import logger, redact
from dropgate.common.metrics import notification_failures_total
from dropgate.services.notification.models import Order


class SqlOrderRepository:
    """Inserts order rows through a SQLAlchemy session factory."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    def insert(self, record: dict[str, Any]) -> None:
        with self.session_factory() as db:
            db.add(Order(**record))
            db.commit()


class ResendEmailSender:
    """Sends transactional email through the Resend HTTP API."""

    def __init__(
        self,
        api_key: str,
        sender: str,
        api_url: str = "https://api.resend.com/emails",
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.sender = sender
        self.api_url = api_url
        self.client = client or httpx.Client(timeout=10.0)

    def send(self, to: str, subject: str, html_body: str) -> None:
        resp = self.client.post(
            self.api_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"from": self.sender, "to": [to], "subject": subject, "html": html_body},
        )
        resp.raise_for_status()

    def close(self) -> None:
        self.client.close()


def download_email_html(download_url: str, expiry: timedelta) -> str:
    url = html.escape(download_url, quote=True)
    return (
        "<p>Thanks for your purchase. Download your file here:</p>"
        f'<p><a href="{url}">Download</a></p>'
        f"<p>This link expires in {expiry.days} days.</p>"
    )


def confirmation_email_html(transaction_id: str, has_download: bool) -> str:
    txn = html.escape(transaction_id)
    if has_download:
        follow_up = "Your download link has been sent in a separate email."
    else:
        follow_up = "We will follow up with your files shortly. Reply to this email if you need help."
    return f"<p>Order confirmed. Transaction: {txn}. {follow_up}</p>"


class Notifier:
    """Best-effort side effects issued after a transaction is recorded."""

    def __init__(self, orders, email, service_name: str | None = None) -> None:
        self.orders = orders
        self.email = email
        self.service_name = service_name or settings.service_name

    def _failed(self, kind: str, exc: Exception) -> None:
        notification_failures_total.labels(service=self.service_name, kind=kind).inc()
        logger.error("notification_failed kind=%s error=%s", kind, exc)

    def record_order(self, record: dict[str, Any]) -> bool:
        try:
            self.orders.insert(record)
        except Exception as exc:
            self._failed("order_record", exc)
            return False
        logger.info("order recorded transaction=%s", redact(record.get("transaction_id")))
        return True

    def send_download_email(self, to: str, download_url: str, expiry: timedelta) -> bool:
        try:
            self.email.send(to, "Your download is ready", download_email_html(download_url, expiry))
        except Exception as exc:
            self._failed("download_email", exc)
            return False
        logger.info("download email sent")
        return True

    def send_order_confirmation(self, to: str, transaction_id: str, has_download: bool) -> bool:
        try:
            self.email.send(to, "Order confirmation", confirmation_email_html(transaction_id, has_download))
        except Exception as exc:
            self._failed("confirmation_email", exc)
            return False
        logger.info("order confirmation sent")
        return True
