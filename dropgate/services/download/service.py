"""Token-gated file delivery.

`serve` never raises for unknown or expired tokens; each failure mode is a
distinct `DownloadStatus` so callers can tell "check your email" apart from
"link expired, contact support". Reads never mutate stored records.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from urllib.parse import quote

from dropgate.common.blob_store import BlobObject, BlobStore
from dropgate.common.config import settings
from dropgate.common.logging import logger, redact
from dropgate.common.metrics import downloads_total
from dropgate.common.token_store import TokenStore, utcnow


FALLBACK_CONTENT_TYPE = "application/octet-stream"


class DownloadStatus(str, Enum):
    OK = "ok"
    MISSING_TOKEN = "missing_token"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


@dataclass
class DownloadResult:
    status: DownloadStatus
    blob: BlobObject | None = None
    filename: str | None = None
    content_type: str | None = None
    step: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)


def attachment_filename(resource_key: str) -> str:
    return resource_key.rsplit("/", 1)[-1] or "download"


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII `filename` and an RFC 5987 `filename*`."""

    fallback = "".join(ch if " " <= ch <= "~" else "_" for ch in filename)
    fallback = fallback.replace("\\", "\\\\").replace('"', '\\"')
    encoded = quote(filename, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"


def effective_content_type(content_type: str | None) -> str:
    if not content_type or content_type.startswith("text/"):
        return FALLBACK_CONTENT_TYPE
    return content_type


class DownloadGateway:
    """Validates download tokens and opens the backing object."""

    def __init__(
        self,
        store: TokenStore,
        blobs: BlobStore,
        clock: Callable[[], datetime] = utcnow,
        service_name: str | None = None,
    ) -> None:
        self.store = store
        self.blobs = blobs
        self.clock = clock
        self.service_name = service_name or settings.service_name

    def _result(self, result: DownloadResult) -> DownloadResult:
        downloads_total.labels(service=self.service_name, outcome=result.status.value).inc()
        return result

    def serve(self, token: str | None) -> DownloadResult:
        if not token:
            logger.warning("download missing token")
            return self._result(DownloadResult(DownloadStatus.MISSING_TOKEN, step="token_param"))

        record = self.store.get_token(token)
        if record is None:
            logger.warning("download token not found token=%s", redact(token))
            return self._result(DownloadResult(DownloadStatus.NOT_FOUND, step="token_lookup"))

        if not record.is_valid(self.clock()):
            logger.warning("download link expired token=%s expires_at=%s", redact(token), record.expires_at)
            return self._result(
                DownloadResult(
                    DownloadStatus.EXPIRED,
                    step="expiry_check",
                    detail={"expiresAt": record.expires_at.isoformat()},
                )
            )

        blob = self.blobs.get(record.resource_key)
        if blob is None:
            logger.error("blob missing for valid token resource_key=%s", record.resource_key)
            return self._result(
                DownloadResult(
                    DownloadStatus.NOT_FOUND,
                    step="blob_get",
                    detail={"resourceKey": record.resource_key},
                )
            )

        filename = attachment_filename(record.resource_key)
        logger.info("serving download filename=%s token=%s", filename, redact(token))
        return self._result(
            DownloadResult(
                DownloadStatus.OK,
                blob=blob,
                filename=filename,
                content_type=effective_content_type(blob.content_type),
            )
        )
