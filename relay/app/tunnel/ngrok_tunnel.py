"""ngrok tunnel handle exposing the relay listener under a public URL."""

import asyncio
import logging
from typing import Dict, Optional

from pyngrok import ngrok
from pyngrok.conf import PyngrokConfig
from pyngrok.exception import PyngrokError

logger = logging.getLogger(__name__)


class TunnelError(RuntimeError):
    """Raised when the tunnel cannot be opened or closed."""


class NgrokTunnel:
    """Single public tunnel bound to a local port, via pyngrok.

    Opened once during startup and closed once during shutdown.
    """

    def __init__(
        self,
        port: int,
        auth_token: Optional[str] = None,
        region: Optional[str] = None,
    ):
        self.port = port
        self.auth_token = auth_token
        self.region = region
        self._tunnel = None
        self._config: Optional[PyngrokConfig] = None

    def _get_config(self) -> PyngrokConfig:
        if self._config is None:
            kwargs = {"auth_token": self.auth_token}
            if self.region:
                kwargs["region"] = self.region
            self._config = PyngrokConfig(**kwargs)
        return self._config

    @property
    def name(self) -> str:
        return "ngrok"

    @property
    def public_url(self) -> Optional[str]:
        if self._tunnel:
            return self._tunnel.public_url
        return None

    def _connect(self) -> str:
        if self.auth_token:
            ngrok.set_auth_token(self.auth_token, pyngrok_config=self._get_config())

        self._tunnel = ngrok.connect(
            self.port,
            "http",
            pyngrok_config=self._get_config(),
        )
        return self._tunnel.public_url

    def _disconnect(self) -> None:
        ngrok.disconnect(self._tunnel.public_url, pyngrok_config=self._get_config())
        ngrok.kill(pyngrok_config=self._get_config())

    async def open(self) -> str:
        """Start the tunnel and return the public URL.

        Raises:
            TunnelError: If ngrok fails to start the tunnel.
        """
        if self._tunnel:
            return self._tunnel.public_url

        try:
            public_url = await asyncio.to_thread(self._connect)
        except (PyngrokError, OSError) as e:
            self._tunnel = None
            raise TunnelError(f"Failed to start ngrok tunnel: {e}") from e

        logger.info(
            f"Ngrok tunnel established at: {public_url}",
            extra={"public_url": public_url, "port": self.port}
        )
        return public_url

    async def close(self) -> None:
        """Stop the tunnel. A no-op when the tunnel was never opened.

        Raises:
            TunnelError: If ngrok fails to disconnect.
        """
        if not self._tunnel:
            return

        logger.info("Closing ngrok listener")
        try:
            await asyncio.to_thread(self._disconnect)
        except (PyngrokError, OSError) as e:
            raise TunnelError(f"Failed to close ngrok tunnel: {e}") from e
        finally:
            self._tunnel = None

        logger.info("ngrok tunnel closed")

    def get_status(self) -> Dict:
        url = self.public_url
        return {
            "provider": self.name,
            "active": url is not None,
            "url": url,
        }
