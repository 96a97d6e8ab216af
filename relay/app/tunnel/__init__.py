"""Public tunnel for exposing the relay listener (ngrok)."""

from .ngrok_tunnel import NgrokTunnel, TunnelError

__all__ = ["NgrokTunnel", "TunnelError"]
