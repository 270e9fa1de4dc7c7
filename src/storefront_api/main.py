"""Storefront payment API.

Routes (all under ``/api``):
- ``GET /ping``: liveness
- ``POST /payments/checkout`` and ``GET /payments/{session_id}/status``
- ``POST /webhooks/stripe``: signed Stripe events, order fulfillment

Deployed behind API Gateway through the Mangum ``handler``; ``run_server``
serves the same app locally.
"""

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from storefront import __version__
from storefront.utils.logging import configure_logging, get_logger
from storefront_api.exceptions import register_exception_handlers
from storefront_api.middleware.correlation import CORRELATION_ID_HEADER, CorrelationIdMiddleware
from storefront_api.routes import payments_router, webhooks_router

SERVICE_NAME = "storefront-api"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"

configure_logging()
logger = get_logger(__name__)

health_router = APIRouter(tags=["health"])


@health_router.get("/ping")
async def ping() -> dict[str, Any]:
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": SERVICE_NAME,
        "version": __version__,
    }


def _cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ALLOW_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app() -> FastAPI:
    """Assemble the FastAPI application."""
    application = FastAPI(
        title="Storefront Payment API",
        description="Checkout sessions and Stripe-driven order fulfillment",
        version=__version__,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_ID_HEADER],
    )
    # Outermost, so CORS preflight responses carry the id too
    application.add_middleware(CorrelationIdMiddleware)

    register_exception_handlers(application)

    for router in (health_router, payments_router, webhooks_router):
        application.include_router(router, prefix="/api")

    logger.info("%s %s ready", SERVICE_NAME, __version__)
    return application


app = create_app()

# AWS Lambda entry point (API Gateway proxy events)
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = True) -> None:
    """Serve the API with uvicorn; ``reload`` watches ``src/``."""
    import uvicorn

    if not reload:
        uvicorn.run(app, host=host, port=port)
        return

    # Reload mode needs an import string rather than the app object
    uvicorn.run("storefront_api.main:app", host=host, port=port, reload=True, reload_dirs=["src"])


if __name__ == "__main__":
    run_server()
