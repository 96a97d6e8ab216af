"""
Provider Package

Registration of the relay's public URL with the telecom provider's
webhook configuration API.
"""

from .webhook import build_target_url, update_port_in_webhook

__all__ = [
    "build_target_url",
    "update_port_in_webhook",
]
