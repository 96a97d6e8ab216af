"""
Upstream health probe run before the relay starts listening.
"""

import logging
from typing import Optional

import httpx
from fastapi import status

from .config import Settings

logger = logging.getLogger(__name__)


class UpstreamAccessDenied(RuntimeError):
    """The upstream refused the probe with 403 (network access misconfigured)."""


async def check_service_status(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None
) -> bool:
    """
    Probe the upstream health endpoint.

    Only a 403 is fatal; every other failure is logged and ignored.

    Returns:
        True if the upstream answered with a 2xx, False otherwise

    Raises:
        UpstreamAccessDenied: If the upstream answered 403
    """
    endpoint = settings.health_check_endpoint
    if endpoint is None:
        logger.info("Upstream health check disabled")
        return False

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient()

    try:
        response = await client.get(endpoint, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        status_code = e.response.status_code
        if status_code == status.HTTP_403_FORBIDDEN:
            logger.error("Please check if VPN is connected...")
            raise UpstreamAccessDenied(
                f"Upstream health check at {endpoint} returned 403"
            ) from e
        if status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
            logger.error("Forwarding service unavailable...")
        else:
            logger.error(f"Error checking service status: {e}")
        return False
    except httpx.RequestError as e:
        logger.error(f"Error checking service status: {e}")
        return False
    finally:
        if owns_client:
            await client.aclose()

    logger.info("Forwarding service is healthy and running...")
    return True
