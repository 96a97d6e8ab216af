"""
FastAPI Webhook Relay Application Factory
=========================================

This is the main entry point for the relay that sits between the telecom
provider's webhook callbacks and the internal service.

Architecture:
    Provider (Twilio) → ngrok tunnel → Relay (this service) → Internal service

Routers:
    - /* : Every path and method is relayed to SERVICE_BASE_URL + FORWARD_PATH

Environment Variables:
    - SERVICE_BASE_URL: Internal service base URL (required)
    - FORWARD_PATH: Upstream path receiving callbacks (default: /v1/webhooks/port-in)
    - HEALTH_CHECK_PATH: Upstream probe path, empty disables (default: /v1/health/check)
    - PORT: Listener port (default: 3000)
    - NGROK_AUTH_TOKEN: ngrok auth token (optional)
    - TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN: Webhook registration credentials (optional, together)
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    webhook-relay

    or:
        python -m relay.app.main

    With custom log level:
        LOG_LEVEL=DEBUG webhook-relay
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from relay.app.config import Settings, get_settings, log_configuration
from relay.app.lifecycle import RelayLifecycle
from relay.app.models import ErrorResponse
from relay.app.proxy.routes import proxy_router


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


class AppState:
    """
    Application state container.

    Holds the shared upstream HTTP client used by every relayed request.
    """
    def __init__(self):
        self.settings: Optional[Settings] = None
        self.upstream_client: Optional[httpx.AsyncClient] = None


def create_upstream_client() -> httpx.AsyncClient:
    """
    Create the client shared by all relayed requests.

    Upstream calls never time out and the pool is unbounded: a slow upstream
    answer is still relayed, and concurrent callbacks are not queued.
    """
    return httpx.AsyncClient(
        timeout=None,
        limits=httpx.Limits(max_connections=None, max_keepalive_connections=None)
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Load configuration from environment
        - Create the shared upstream HTTP client

    Shutdown tasks:
        - Close the upstream HTTP client
    """
    # Startup
    settings = get_settings()
    app_state = app.state.app_state
    app_state.settings = settings

    logger = logging.getLogger("relay.main")
    logger.info(
        "Starting webhook relay",
        extra={
            "forward_endpoint": settings.forward_endpoint,
            "port": settings.PORT,
            "log_level": settings.LOG_LEVEL
        }
    )

    app_state.upstream_client = create_upstream_client()

    yield

    # Shutdown
    logger.info("Shutting down webhook relay")

    if app_state.upstream_client:
        await app_state.upstream_client.aclose()
        app_state.upstream_client = None

    logger.info("Webhook relay shutdown complete")


def create_app() -> FastAPI:
    """
    Application factory function.

    Docs and OpenAPI routes are disabled so that every inbound path reaches
    the relay endpoint.

    Returns:
        FastAPI: Configured application instance
    """
    app = FastAPI(
        title="Webhook Relay",
        description="Relays provider webhook callbacks to an internal service",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None
    )

    app.state.app_state = AppState()

    # Relay router: forwards every inbound request upstream
    app.include_router(proxy_router)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized error response.
        """
        logger = logging.getLogger("relay.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        settings = request.app.state.app_state.settings
        debug = settings is not None and settings.LOG_LEVEL == "DEBUG"
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="internal_server_error",
                message="An unexpected error occurred",
                detail=str(exc) if debug else None
            ).model_dump()
        )

    return app


# Create app instance for uvicorn
app = create_app()


def main() -> None:
    """
    Console entry point: load settings, run the relay, exit with its code.
    """
    logger = logging.getLogger("relay.main")

    try:
        settings = get_settings()
    except ValidationError as e:
        setup_logging()
        logger.critical(f"Invalid configuration: {e}")
        sys.exit(1)

    setup_logging(settings.LOG_LEVEL)
    log_configuration(settings, logger)

    exit_code = asyncio.run(RelayLifecycle(settings, app).run())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
