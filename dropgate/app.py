"""FastAPI application factory.

Collaborators are passed in explicitly so the same app can run against Redis,
S3 and Resend in production or in-memory doubles under test.
"""

from contextlib import asynccontextmanager
from time import perf_counter

from fastapi import FastAPI, Request

from dropgate.common.config import settings
from dropgate.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from dropgate.common.token_store import TokenStore
from dropgate.services.download.routes import router as download_router
from dropgate.services.download.service import DownloadGateway
from dropgate.services.ops.routes import router as ops_router
from dropgate.services.webhook.routes import router as webhook_router
from dropgate.services.webhook.service import WebhookProcessor


def create_app(
    store: TokenStore,
    processor: WebhookProcessor,
    gateway: DownloadGateway,
    *,
    webhook_secret: str | bytes | None = None,
    api_key: str | None = None,
    public_base_url: str | None = None,
    on_shutdown=None,
) -> FastAPI:
    """Build the relay app around already-constructed collaborators."""

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        if on_shutdown is not None:
            on_shutdown()

    app = FastAPI(title="dropgate", lifespan=lifespan)
    app.state.service_name = settings.service_name
    app.state.store = store
    app.state.processor = processor
    app.state.gateway = gateway
    app.state.webhook_secret = webhook_secret if webhook_secret is not None else settings.paddle_webhook_secret
    app.state.api_key = api_key if api_key is not None else settings.api_key
    app.state.public_base_url = public_base_url if public_base_url is not None else settings.public_base_url

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Record request count and latency for every HTTP call."""

        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    app.include_router(webhook_router)
    app.include_router(download_router)
    app.include_router(ops_router)

    @app.get("/health")
    def health():
        """Container health probe endpoint."""

        return {"ok": True}

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    return app
