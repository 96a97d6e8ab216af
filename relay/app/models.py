"""
Data Models Module

Pydantic models for the few fixed payloads the relay produces itself.
Relayed callbacks are never parsed: their bodies pass through as raw bytes.
"""

from typing import Optional

from pydantic import BaseModel, Field


FORWARD_ERROR_MESSAGE = "Failed to forward request"


# ============================================================================
# Relay Models
# ============================================================================

class ForwardErrorResponse(BaseModel):
    """Body returned to the caller when the upstream could not be reached."""
    error: str = Field(default=FORWARD_ERROR_MESSAGE, description="Fixed error message")


# ============================================================================
# Provider Models
# ============================================================================

class WebhookConfigurationRequest(BaseModel):
    """Payload for the provider's port-in webhook configuration endpoint."""
    port_in_target_url: str = Field(..., description="Public URL the provider calls back")


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response for unhandled exceptions."""
    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    detail: Optional[str] = Field(None, description="Additional error details")
