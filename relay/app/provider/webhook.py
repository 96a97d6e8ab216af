"""
Provider Webhook Registration
=============================

Points the provider's (Twilio) port-in webhook configuration at the public
tunnel URL. Registration is best effort: failures are logged and the relay
keeps running with whatever target the provider already has.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import Settings
from ..models import WebhookConfigurationRequest

logger = logging.getLogger(__name__)


def build_target_url(public_url: str, suffix: str) -> str:
    """Join the tunnel URL and the registration sub-path."""
    return f"{public_url.rstrip('/')}{suffix}"


async def update_port_in_webhook(
    settings: Settings,
    port_in_target_url: str,
    client: Optional[httpx.AsyncClient] = None
) -> Optional[Dict[str, Any]]:
    """
    Update the provider's port-in webhook URL.

    Args:
        settings: Application settings (credentials and endpoint)
        port_in_target_url: Public URL the provider should call back
        client: Optional HTTP client (a short-lived one is created otherwise)

    Returns:
        Provider response JSON, or None if the update failed
    """
    payload = WebhookConfigurationRequest(port_in_target_url=port_in_target_url)
    auth = httpx.BasicAuth(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)

    logger.info(f"Updating Twilio webhook URL to: {port_in_target_url}")

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient()

    try:
        response = await client.post(
            settings.WEBHOOK_CONFIGURATION_URL,
            json=payload.model_dump(),
            auth=auth,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(
            f"Failed to update Twilio webhook: {e}",
            extra={
                "status_code": e.response.status_code,
                "response_body": e.response.text,
            }
        )
        return None
    except httpx.RequestError as e:
        logger.error(f"Failed to update Twilio webhook: {e}")
        return None
    finally:
        if owns_client:
            await client.aclose()

    logger.info(f"Updated Twilio webhook URL to: {port_in_target_url}")

    try:
        return response.json()
    except ValueError:
        return {}
