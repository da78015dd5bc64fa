# This file assembles the marketplace FastAPI application.
# Every request gets an id and a timing header before routing; health routes stay unversioned
# while marketplace routes mount under the configured version path.

from __future__ import annotations

import logging
import time
import uuid

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import RequestResponseEndpoint

from homeservices.api.api_config import ApiConfig, get_api_config
from homeservices.api.dependencies import get_database_client
from homeservices.api.error_handlers import register_error_handlers
from homeservices.api.metrics import HTTP_INFLIGHT, metrics_response, observe_request
from homeservices.api.routers.admin_wallet import router as admin_wallet_router
from homeservices.api.routers.health import router as health_router
from homeservices.api.routers.provider_requests import router as provider_requests_router
from homeservices.api.routers.ratings import router as ratings_router
from homeservices.api.routers.requests import router as requests_router
from homeservices.api.routers.wallet import router as wallet_router
from homeservices.common.logging import configure_logging

LOGGER = logging.getLogger("api")

VERSIONED_ROUTERS: tuple[APIRouter, ...] = (
    requests_router,
    provider_requests_router,
    wallet_router,
    admin_wallet_router,
    ratings_router,
)

OPENAPI_TAGS = [
    {"name": "health", "description": "Liveness, readiness, and version metadata."},
    {"name": "requests", "description": "Requester actions on service requests."},
    {"name": "provider", "description": "Provider claims, progress, and cash-in reports."},
    {"name": "wallet", "description": "Wallet balance, history, payment, and withdrawals."},
    {"name": "admin", "description": "Admin credits, approvals, and balance audits."},
    {"name": "ratings", "description": "Ratings for completed requests."},
]


def _install_request_context(app: FastAPI, config: ApiConfig) -> None:
    @app.middleware("http")
    async def request_context(request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        started = time.perf_counter()
        status_code = 500
        HTTP_INFLIGHT.labels(method=request.method).inc()
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            elapsed = time.perf_counter() - started
            HTTP_INFLIGHT.labels(method=request.method).dec()
            observe_request(request, status_code=status_code, seconds=elapsed)

        response.headers["x-request-id"] = request_id
        response.headers["x-response-time-ms"] = f"{elapsed * 1000.0:.2f}"
        if config.enable_request_logging:
            LOGGER.info(
                "request_id=%s method=%s path=%s status=%s duration_ms=%.2f",
                request_id,
                request.method,
                request.url.path,
                status_code,
                elapsed * 1000.0,
            )
        return response


def create_app() -> FastAPI:
    configure_logging()
    config = get_api_config()

    app = FastAPI(
        title=config.api_name,
        description=(
            "Home-services marketplace API: service request lifecycle, wallet holds and "
            "settlement, provider payouts, and ratings."
        ),
        version=config.app_version,
        openapi_tags=OPENAPI_TAGS,
    )

    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    _install_request_context(app, config)
    register_error_handlers(app)

    if config.expose_metrics:
        app.add_api_route("/metrics", metrics_response, methods=["GET"], include_in_schema=False)

    @app.on_event("startup")
    def check_database() -> None:
        try:
            app.state.db_connected_at_startup = get_database_client().can_connect()
        except SQLAlchemyError:
            LOGGER.warning("database unreachable at startup", exc_info=True)
            app.state.db_connected_at_startup = False

    app.include_router(health_router)
    for router in VERSIONED_ROUTERS:
        app.include_router(router, prefix=config.api_version_path)
    return app


app = create_app()
