"""FastAPI application configuration (payment-gated demo API)."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from prometheus_client import make_asgi_app

from ..env import Settings, get_settings
from ..gate import PaymentGate
from .middleware import PaymentGateMiddleware


def create_app(
    settings: Optional[Settings] = None, gate: Optional[PaymentGate] = None
) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or get_settings()
    gate = gate or PaymentGate(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await gate.start()
        try:
            yield
        finally:
            await gate.stop()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Solana x402 payment-gated API",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.payment_gate = gate
    app.add_middleware(PaymentGateMiddleware, gate=gate)
    app.mount("/metrics", make_asgi_app())

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check() -> dict[str, object]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
            "settled_references": gate.cache.size(),
        }

    @app.get("/api/protected/resource")
    async def protected_resource(request: Request) -> dict[str, object]:
        """Paid resource; only reachable with a verified payment."""
        decision = request.state.payment
        return {
            "message": "Payment verified, here is your resource",
            "reference": decision.reference,
        }

    return app
