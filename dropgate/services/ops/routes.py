"""Operator endpoints for inspecting and remediating processed transactions."""

from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import BaseModel, Field

from dropgate.services.webhook.routes import public_base_url


router = APIRouter(prefix="/ops")


class ResendRequest(BaseModel):
    """Body required to re-send a download link."""

    email: str = Field(min_length=3)


def enforce_api_key(request: Request, x_api_key: str | None) -> None:
    """Simple API-key gate for ops endpoints."""

    if x_api_key != request.app.state.api_key:
        raise HTTPException(status_code=401, detail="invalid API key")


@router.get("/transactions/{transaction_id}")
def get_transaction(transaction_id: str, request: Request, x_api_key: str | None = Header(default=None)):
    """Show the issuance state of one transaction."""

    enforce_api_key(request, x_api_key)
    store = request.app.state.store
    txn = store.get_transaction(transaction_id)
    if txn is None:
        raise HTTPException(status_code=404, detail="transaction not found")

    response = {
        "transaction_id": transaction_id,
        "created_at": txn.created_at,
        "has_download": txn.download_token is not None,
        "token": None,
    }
    if txn.download_token is not None:
        token = store.get_token(txn.download_token)
        if token is not None:
            response["token"] = {
                "resource_key": token.resource_key,
                "product_id": token.product_id,
                "expires_at": token.expires_at,
                "valid": token.is_valid(request.app.state.gateway.clock()),
            }
    return response


@router.post("/transactions/{transaction_id}/resend")
def resend_download_email(
    transaction_id: str,
    req: ResendRequest,
    request: Request,
    x_api_key: str | None = Header(default=None),
):
    """Re-send the download email for a transaction whose notification failed."""

    enforce_api_key(request, x_api_key)
    try:
        url = request.app.state.processor.resend_download_email(
            transaction_id, req.email, public_base_url(request)
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"transaction_id": transaction_id, "sent": True, "downloadUrl": url}
