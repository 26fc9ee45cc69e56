"""Inbound payment provider webhook.

The provider is acknowledged as soon as the delivery is authenticated and
structurally valid; processing runs as a background task so slow downstream
calls never push the response past the provider's timeout.
"""

import json

from fastapi import APIRouter, BackgroundTasks, Header, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from dropgate.common.logging import logger, redact
from dropgate.common.metrics import webhook_events_total
from dropgate.services.webhook.schemas import TRANSACTION_COMPLETED, WebhookPayload
from dropgate.services.webhook.signature import verify_signature


router = APIRouter()


def public_base_url(request: Request) -> str:
    configured = request.app.state.public_base_url
    return (configured or str(request.base_url)).rstrip("/")


def _reject(request: Request, status_code: int, error: str, outcome: str) -> JSONResponse:
    webhook_events_total.labels(service=request.app.state.service_name, outcome=outcome).inc()
    return JSONResponse({"error": error}, status_code=status_code)


@router.post("/api/webhook/paddle")
async def paddle_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    paddle_signature: str | None = Header(default=None),
):
    """Verify, validate and acknowledge one delivery; schedule processing."""

    raw_body = await request.body()
    if not verify_signature(raw_body, paddle_signature, request.app.state.webhook_secret):
        logger.error("webhook signature invalid")
        return _reject(request, 401, "Invalid signature", "invalid_signature")

    try:
        body = json.loads(raw_body)
    except ValueError:
        logger.error("webhook body is not valid JSON")
        return _reject(request, 400, "Invalid JSON", "invalid_json")
    if not isinstance(body, dict):
        return _reject(request, 400, "Invalid JSON", "invalid_json")

    event_type = body.get("event_type")
    if event_type != TRANSACTION_COMPLETED:
        logger.info("webhook event ignored event_type=%s", event_type)
        webhook_events_total.labels(service=request.app.state.service_name, outcome="ignored").inc()
        return {"received": True, "ignored": True}

    try:
        payload = WebhookPayload.model_validate(body)
    except ValidationError as exc:
        logger.error("webhook payload rejected errors=%s", exc.error_count())
        return _reject(request, 400, "Invalid payload", "invalid_payload")

    data = payload.data
    transaction_id = data.resolved_id() if data is not None else None
    if not transaction_id:
        logger.error("transaction.completed without transaction id")
        return _reject(request, 400, "Missing transaction id", "missing_transaction_id")

    logger.info("transaction accepted transaction=%s event_id=%s", redact(transaction_id), payload.event_id)
    background_tasks.add_task(
        request.app.state.processor.process,
        transaction_id,
        data.items,
        data.custom_data,
        data.customer_email(),
        currency_code=data.currency_code,
        total=data.grand_total(),
        base_url=public_base_url(request),
    )
    webhook_events_total.labels(service=request.app.state.service_name, outcome="accepted").inc()
    return {"received": True}
