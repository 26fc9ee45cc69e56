"""Startup-time helpers for safe config logging."""

from dropgate.common.config import Settings
from dropgate.common.logging import logger


SECRET_MARKERS = ("api_key", "secret", "password", "token", "dsn")


def safe_setting(config: Settings, name: str) -> str:
    """Render one setting, hiding anything that looks like a credential."""

    value = getattr(config, name, None)
    if value is None or value == "":
        return "<unset>"
    if any(marker in name for marker in SECRET_MARKERS):
        return "<redacted>"
    return str(value)


def log_startup_config(config: Settings, names: list[str]) -> None:
    """Log selected settings for quick troubleshooting."""

    snapshot = {"service": config.service_name}
    for name in names:
        snapshot[name] = safe_setting(config, name)
    logger.info("startup_config=%s", snapshot)
