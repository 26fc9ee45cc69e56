"""Central environment-driven settings for the relay process.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "dropgate"
    log_level: str = "INFO"
    paddle_webhook_secret: str
    api_key: str
    postgres_dsn: str
    redis_url: str = "redis://redis:6379/0"
    # Applied as a TTL to txn_/token_ keys when set; unset keeps records forever.
    record_retention_seconds: int | None = None
    blob_backend: str = "filesystem"
    blob_root: str = "./assets"
    s3_bucket: str = ""
    s3_endpoint_url: str | None = None
    s3_region: str = "auto"
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    email_from: str = "Downloads <onboarding@resend.dev>"
    public_base_url: str | None = None
    price_to_key: dict[str, str] = {}
    otel_exporter_otlp_endpoint: str | None = None
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
