"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from poker_ledger.api.errors import register_exception_handlers
from poker_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from poker_ledger.api.v1 import bank, expenses, sessions, settlement, transfer
from poker_ledger.infrastructure.observability.logging import setup_logging
from poker_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Poker Ledger",
        description="Home poker session ledger and settlement service",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers; import is registered before the {session_id} routes
    app.include_router(transfer.router, prefix="/v1", tags=["transfer"])
    app.include_router(sessions.router, prefix="/v1", tags=["sessions"])
    app.include_router(bank.router, prefix="/v1", tags=["bank"])
    app.include_router(expenses.router, prefix="/v1", tags=["expenses"])
    app.include_router(settlement.router, prefix="/v1", tags=["settlement"])

    return app


app = create_app()
