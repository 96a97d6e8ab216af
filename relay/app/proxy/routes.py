"""
Proxy Routes - Upstream Request Forwarding
==========================================

This module implements the catch-all relay endpoint that forwards every
inbound webhook callback to the fixed upstream endpoint.

Forwarding Model:
-----------------
1. Any method on any path is accepted
2. Method and raw body are forwarded unchanged
3. All headers are copied, the Host header is replaced by the upstream host
4. Upstream status and body are returned as-is, including non-2xx
5. Network failures reaching upstream become a fixed 500 JSON error

Endpoints:
----------
- ANY /{path}: Forward to SERVICE_BASE_URL + FORWARD_PATH
"""

import logging
from typing import Iterable, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response
import httpx

from ..config import get_settings
from ..models import ForwardErrorResponse

logger = logging.getLogger(__name__)

# Create router
proxy_router = APIRouter()

RELAYED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


# ============================================================================
# Dependencies
# ============================================================================

def get_upstream_client(request: Request) -> httpx.AsyncClient:
    """
    Dependency to get the upstream HTTP client from app state.

    Args:
        request: FastAPI request object

    Returns:
        Shared httpx.AsyncClient created by the application lifespan
    """
    if not hasattr(request.app.state, "app_state"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Upstream client not initialized"
        )

    client = request.app.state.app_state.upstream_client
    if not client:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Upstream client not available"
        )

    return client


# ============================================================================
# Header Functions
# ============================================================================

def build_upstream_headers(
    original_headers: Iterable[Tuple[str, str]],
    upstream_host: str
) -> httpx.Headers:
    """
    Build headers for the upstream request.

    Copies every inbound header (repeated headers included) and replaces
    Host with the upstream host.

    Args:
        original_headers: Inbound (name, value) pairs
        upstream_host: Host (and port) of the forward endpoint

    Returns:
        Headers for the upstream request
    """
    headers = httpx.Headers([
        (k, v) for k, v in original_headers
        if k.lower() != "host"
    ])
    headers["host"] = upstream_host
    return headers


# ============================================================================
# Relay Endpoint
# ============================================================================

@proxy_router.api_route("/{path:path}", methods=RELAYED_METHODS)
async def relay(
    request: Request,
    path: str,
    upstream_client: httpx.AsyncClient = Depends(get_upstream_client)
) -> Response:
    """
    Relay an inbound callback to the upstream service.

    Returns:
        Upstream status code and body, unchanged
    """
    settings = get_settings()
    forward_endpoint = settings.forward_endpoint

    body = await request.body()

    logger.info(
        f"call back received {request.method} {request.url.path}, forwarding to {forward_endpoint}",
        extra={"method": request.method, "path": request.url.path, "body_length": len(body)}
    )
    logger.debug(f"callback body: {body!r}")

    upstream_headers = build_upstream_headers(
        request.headers.items(),
        settings.upstream_host
    )

    try:
        response = await upstream_client.request(
            request.method,
            forward_endpoint,
            headers=upstream_headers,
            content=body,
        )
    except httpx.RequestError as e:
        logger.error(
            f"Error forwarding request: {e}",
            extra={"forward_endpoint": forward_endpoint, "exception_type": type(e).__name__}
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ForwardErrorResponse().model_dump()
        )

    logger.info(
        f"response from {forward_endpoint}: {response.status_code}",
        extra={"status_code": response.status_code}
    )

    # Non-2xx responses are relayed, not raised
    content_type = response.headers.get("content-type")
    return Response(
        content=response.content,
        status_code=response.status_code,
        headers={"content-type": content_type} if content_type else None
    )
