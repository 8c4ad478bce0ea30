from __future__ import annotations

import logging

import uvicorn

from .env import get_settings


def configure_logging(level: str = "INFO") -> None:
    """Send engine logs to stderr with timestamps."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def main() -> None:
    """Main entry point for the payment-gated API."""

    settings = get_settings()
    configure_logging(settings.log_level)

    print(f"Starting {settings.app_name} v{settings.app_version}")
    print(f"Network: {settings.network} ({settings.resolved_rpc_url})")
    print(f"Price: {settings.amount} of {settings.mint} to {settings.recipient}")
    print(f"API will be available at: http://{settings.api_host}:{settings.api_port}")
    print(f"API Documentation: http://{settings.api_host}:{settings.api_port}/docs")

    # The in-memory settlement cache is per process, so run a single worker.
    uvicorn.run(
        "solx402.api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
