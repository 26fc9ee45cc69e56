"""Relay process entrypoint (`uvicorn dropgate.main:app`).

Wires Redis, blob storage, the order database and Resend into the app.
"""

from dropgate.app import create_app
from dropgate.common.blob_store import FilesystemBlobStore, S3BlobStore
from dropgate.common.config import settings
from dropgate.common.db import build_engine, build_session_factory
from dropgate.common.logging import configure_logging
from dropgate.common.startup import log_startup_config
from dropgate.common.token_store import RedisTokenStore
from dropgate.common.tracing import setup_tracing
from dropgate.services.download.service import DownloadGateway
from dropgate.services.notification.service import Notifier, ResendEmailSender, SqlOrderRepository
from dropgate.services.webhook.resolver import KeyResolver
from dropgate.services.webhook.service import WebhookProcessor

configure_logging()
log_startup_config(
    settings,
    [
        "postgres_dsn",
        "redis_url",
        "record_retention_seconds",
        "blob_backend",
        "blob_root",
        "s3_bucket",
        "s3_endpoint_url",
        "public_base_url",
        "paddle_webhook_secret",
        "resend_api_key",
        "price_to_key",
    ],
)

if settings.blob_backend == "s3":
    blobs = S3BlobStore.from_settings(settings.s3_bucket, settings.s3_region, settings.s3_endpoint_url)
else:
    blobs = FilesystemBlobStore(settings.blob_root)

store = RedisTokenStore.from_url(settings.redis_url, settings.record_retention_seconds)
email = ResendEmailSender(settings.resend_api_key, settings.email_from, settings.resend_api_url)
orders = SqlOrderRepository(build_session_factory(build_engine(settings.postgres_dsn)))
processor = WebhookProcessor(store, KeyResolver(settings.price_to_key), Notifier(orders, email))
gateway = DownloadGateway(store, blobs)

app = create_app(store, processor, gateway, on_shutdown=email.close)
setup_tracing(app, settings.service_name)
