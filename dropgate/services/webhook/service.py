"""Webhook processing pass for completed transactions.

Runs after the provider has been acknowledged. The transaction record is the
idempotency marker: once it exists, redeliveries of the same transaction are
no-ops, so partial notification failures are never repaired automatically
(see `resend_download_email` for the manual path).
"""

import secrets
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from urllib.parse import quote

from dropgate.common.config import settings
from dropgate.common.logging import logger, redact, transaction_id_ctx
from dropgate.common.metrics import (
    download_tokens_issued_total,
    duplicate_transactions_skipped_total,
    undeliverable_transactions_total,
)
from dropgate.common.token_store import TokenRecord, TokenStore, TransactionRecord, utcnow
from dropgate.services.webhook.resolver import KeyResolver
from dropgate.services.webhook.schemas import CustomData, LineItem


DOWNLOAD_EXPIRY = timedelta(days=30)


def mint_download_token() -> str:
    # 32 random bytes, url-safe.
    return secrets.token_urlsafe(32)


def download_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/download?token={quote(token, safe='')}"


def _first_product_id(line_items: list[LineItem]) -> str | None:
    if not line_items:
        return None
    item = line_items[0]
    if item.price and item.price.id:
        return item.price.id
    if item.product and item.product.id:
        return item.product.id
    return None


class WebhookProcessor:
    """Idempotent issuance of download tokens plus best-effort notifications."""

    def __init__(
        self,
        store: TokenStore,
        resolver: KeyResolver,
        notifier,
        clock: Callable[[], datetime] = utcnow,
        service_name: str | None = None,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.notifier = notifier
        self.clock = clock
        self.service_name = service_name or settings.service_name

    def process(
        self,
        transaction_id: str,
        line_items: Iterable[LineItem],
        metadata: CustomData | None,
        customer_email: str | None,
        *,
        currency_code: str | None = None,
        total: str | None = None,
        base_url: str = "",
    ) -> None:
        """Handle one `transaction.completed` delivery."""

        ctx_token = transaction_id_ctx.set(transaction_id)
        try:
            self._process(
                transaction_id,
                list(line_items),
                metadata,
                customer_email,
                currency_code=currency_code,
                total=total,
                base_url=base_url,
            )
        finally:
            transaction_id_ctx.reset(ctx_token)

    def _process(
        self,
        transaction_id: str,
        line_items: list[LineItem],
        metadata: CustomData | None,
        customer_email: str | None,
        *,
        currency_code: str | None,
        total: str | None,
        base_url: str,
    ) -> None:
        logger.info("processing transaction=%s", redact(transaction_id))

        if self.store.get_transaction(transaction_id) is not None:
            logger.info("duplicate transaction skipped transaction=%s", redact(transaction_id))
            duplicate_transactions_skipped_total.labels(service=self.service_name).inc()
            return

        resource_key = self.resolver.resolve(line_items, metadata)
        product_id = _first_product_id(line_items)
        now = self.clock()

        token: str | None = None
        token_record: TokenRecord | None = None
        if resource_key is not None:
            token = mint_download_token()
            token_record = TokenRecord(
                resource_key=resource_key,
                expires_at=now + DOWNLOAD_EXPIRY,
                product_id=product_id,
                transaction_id=transaction_id,
            )
        else:
            logger.warning(
                "no deliverable resolved transaction=%s product_id=%s",
                redact(transaction_id),
                product_id or "none",
            )

        created = self.store.put_transaction(
            transaction_id,
            TransactionRecord(download_token=token, created_at=now),
        )
        if not created:
            # A concurrent pass recorded this transaction first; drop our token unused.
            logger.info("transaction claimed concurrently transaction=%s", redact(transaction_id))
            duplicate_transactions_skipped_total.labels(service=self.service_name).inc()
            return

        if token is not None and token_record is not None:
            self.store.put_token(token, token_record)
            download_tokens_issued_total.labels(service=self.service_name).inc()
            logger.info(
                "download token issued token=%s resource_key=%s",
                redact(token),
                resource_key,
            )
        else:
            undeliverable_transactions_total.labels(service=self.service_name).inc()

        self.notifier.record_order(
            {
                "transaction_id": transaction_id,
                "customer_email": customer_email,
                "currency_code": currency_code,
                "total": total,
                "items": [item.model_dump(mode="json", exclude_none=True) for item in line_items],
                "download_token": token,
            }
        )

        if not customer_email:
            logger.warning("customer email missing, emails suppressed transaction=%s", redact(transaction_id))
            return
        if token is not None:
            self.notifier.send_download_email(customer_email, download_url(base_url, token), DOWNLOAD_EXPIRY)
        self.notifier.send_order_confirmation(customer_email, transaction_id, has_download=token is not None)
        logger.info("processing done transaction=%s", redact(transaction_id))

    def resend_download_email(self, transaction_id: str, email: str, base_url: str) -> str:
        """Re-send the download link for an already processed transaction.

        Raises LookupError for unknown transactions and ValueError when there is
        no usable link to send.
        """

        txn = self.store.get_transaction(transaction_id)
        if txn is None:
            raise LookupError(f"transaction {transaction_id} not found")
        if txn.download_token is None:
            raise ValueError("transaction has no deliverable")
        record = self.store.get_token(txn.download_token)
        if record is None:
            raise ValueError("download token record missing")
        if not record.is_valid(self.clock()):
            raise ValueError("download link expired")

        url = download_url(base_url, txn.download_token)
        if not self.notifier.send_download_email(email, url, DOWNLOAD_EXPIRY):
            raise RuntimeError("email delivery failed")
        logger.info("download email re-sent transaction=%s", redact(transaction_id))
        return url
