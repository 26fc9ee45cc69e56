"""Download and purchase-status endpoints used by customers."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from starlette.background import BackgroundTask

from dropgate.common.logging import logger, redact
from dropgate.services.download.service import DownloadResult, DownloadStatus, content_disposition
from dropgate.services.webhook.routes import public_base_url
from dropgate.services.webhook.service import download_url


router = APIRouter()

# status code, JSON error, plain message
FAILURES: dict[DownloadStatus, tuple[int, str, str]] = {
    DownloadStatus.MISSING_TOKEN: (400, "Missing token", "Missing token"),
    DownloadStatus.NOT_FOUND: (404, "Link not found or expired", "Link not found or expired."),
    DownloadStatus.EXPIRED: (410, "Link expired", "This download link has expired. Contact support for a new link."),
}


def _failure_response(result: DownloadResult, debug: bool):
    status_code, error, message = FAILURES[result.status]
    if result.step == "blob_get":
        error, message = "File not found", "File not found."
    if debug:
        return JSONResponse({"error": error, "step": result.step, **result.detail}, status_code=status_code)
    return PlainTextResponse(message, status_code=status_code)


@router.get("/download")
def download(request: Request, token: str | None = None, debug: str | None = None):
    """Stream the purchased file for a valid token."""

    result = request.app.state.gateway.serve(token)
    if result.status is not DownloadStatus.OK:
        return _failure_response(result, debug == "1")

    headers = {
        "Content-Disposition": content_disposition(result.filename),
        "Cache-Control": "no-store",
    }
    if result.blob.content_length is not None:
        headers["Content-Length"] = str(result.blob.content_length)
    # The background close covers responses whose body is never iterated.
    return StreamingResponse(
        result.blob.iter_chunks(),
        media_type=result.content_type,
        headers=headers,
        background=BackgroundTask(result.blob.close),
    )


@router.get("/api/thankyou/status")
def thankyou_status(request: Request, txn: str | None = None):
    """Polled by the success page until the download link is ready."""

    if not txn:
        return JSONResponse({"error": "Missing txn"}, status_code=400)
    record = request.app.state.store.get_transaction(txn)
    if record is None or record.download_token is None:
        logger.info("status not ready transaction=%s", redact(txn))
        return {"ready": False}
    return {"ready": True, "downloadUrl": download_url(public_base_url(request), record.download_token)}
