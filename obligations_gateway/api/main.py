"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from obligations_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from obligations_gateway.api.v1 import ledger, loans, processing, subscriptions, templates
from obligations_gateway.infrastructure.observability.logging import setup_logging
from obligations_gateway.config import settings

setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Recurring Obligations Gateway",
        description="EMI amortization and recurring subscription/loan/template processing",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Request id is assigned before latency is measured
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(processing.router, prefix="/v1", tags=["recurring"])
    app.include_router(loans.router, prefix="/v1", tags=["loans"])
    app.include_router(subscriptions.router, prefix="/v1", tags=["subscriptions"])
    app.include_router(templates.router, prefix="/v1", tags=["templates"])
    app.include_router(ledger.router, prefix="/v1", tags=["ledger"])

    return app


app = create_app()
