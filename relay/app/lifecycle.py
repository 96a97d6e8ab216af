"""
Relay Lifecycle
===============

Startup and shutdown of the relay process.

Startup (sequential):
    1. Upstream health probe (fatal only on 403)
    2. Local HTTP listener (uvicorn)
    3. ngrok tunnel to the listener (fatal on failure)
    4. Provider webhook registration (logged only on failure)

Shutdown:
    SIGTERM/SIGINT stops the listener, then the tunnel is closed.
    Exit code 0 when the tunnel closes cleanly, 1 otherwise.
"""

import asyncio
import contextlib
import logging
import signal
import threading
from typing import Generator, Optional

import uvicorn
from fastapi import FastAPI

from .config import Settings
from .provider import build_target_url, update_port_in_webhook
from .tunnel import NgrokTunnel, TunnelError
from .upstream import UpstreamAccessDenied, check_service_status

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)

EXIT_OK = 0
EXIT_FAILURE = 1


class StartupError(RuntimeError):
    """The listener stopped before it started accepting connections."""


class RelayServer(uvicorn.Server):
    """
    uvicorn server that records the termination signal and hands control
    back to the relay instead of re-raising it after serving.
    """

    def __init__(self, config: uvicorn.Config):
        super().__init__(config)
        self.received_signal: Optional[int] = None

    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None, None, None]:
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        original_handlers = {
            sig: signal.signal(sig, self.handle_exit) for sig in HANDLED_SIGNALS
        }
        try:
            yield
        finally:
            for sig, handler in original_handlers.items():
                signal.signal(sig, handler)

    def handle_exit(self, sig, frame) -> None:
        if self.received_signal is None:
            self.received_signal = sig
        super().handle_exit(sig, frame)


class RelayLifecycle:
    """
    Owns the listener and the tunnel for the lifetime of the process.

    Args:
        settings: Loaded application settings
        app: FastAPI application served by the listener
        server: Optional prebuilt server (defaults to a RelayServer for app)
        tunnel: Optional prebuilt tunnel (defaults to an NgrokTunnel on PORT)
    """

    def __init__(
        self,
        settings: Settings,
        app: FastAPI,
        server: Optional[RelayServer] = None,
        tunnel: Optional[NgrokTunnel] = None
    ):
        self.settings = settings
        self.server = server or RelayServer(
            uvicorn.Config(
                app,
                host=settings.HOST,
                port=settings.PORT,
                log_config=None,
                log_level=settings.LOG_LEVEL.lower(),
            )
        )
        self.tunnel = tunnel or NgrokTunnel(
            port=settings.PORT,
            auth_token=settings.NGROK_AUTH_TOKEN,
            region=settings.NGROK_REGION,
        )
        self._serve_task: Optional[asyncio.Task] = None

    async def _start_listener(self) -> None:
        self._serve_task = asyncio.create_task(self.server.serve())

        while not self.server.started:
            if self._serve_task.done():
                # Surfaces a bind failure raised inside serve()
                self._serve_task.result()
                raise StartupError("Listener stopped before accepting connections")
            await asyncio.sleep(0.05)

        logger.info(
            f"Server is running on port {self.settings.PORT}, "
            f"will be forwarding requests to {self.settings.forward_endpoint}"
        )

    async def _stop_listener(self) -> None:
        if self._serve_task is None:
            return
        self.server.should_exit = True
        await self._serve_task

    async def startup(self) -> str:
        """
        Run the startup sequence.

        Returns:
            Public URL of the tunnel

        Raises:
            UpstreamAccessDenied: Health probe answered 403
            StartupError: Listener failed to start
            TunnelError: Tunnel could not be provisioned
        """
        await check_service_status(self.settings)

        await self._start_listener()

        public_url = await self.tunnel.open()
        logger.info("Tunnel active", extra=self.tunnel.get_status())

        if self.settings.provider_credentials_configured:
            await update_port_in_webhook(
                self.settings,
                build_target_url(public_url, self.settings.WEBHOOK_TARGET_SUFFIX)
            )

        return public_url

    async def shutdown(self) -> int:
        """
        Close the tunnel.

        Returns:
            EXIT_OK if the tunnel closed cleanly, EXIT_FAILURE otherwise
        """
        if self.server.received_signal is not None:
            logger.info(
                f"Received {signal.Signals(self.server.received_signal).name}, shutting down"
            )

        try:
            await self.tunnel.close()
        except TunnelError as e:
            logger.error(f"Failed to cleanup: {e}")
            return EXIT_FAILURE

        return EXIT_OK

    async def run(self) -> int:
        """
        Start the relay, serve until a termination signal, then shut down.

        Returns:
            Process exit code
        """
        try:
            await self.startup()
        except UpstreamAccessDenied as e:
            logger.error(f"Failed to start server: {e}")
            return EXIT_FAILURE
        except (StartupError, TunnelError) as e:
            logger.error(f"Failed to start server: {e}")
            await self._stop_listener()
            return EXIT_FAILURE

        try:
            await self._serve_task
        except Exception:
            logger.exception("Relay listener stopped unexpectedly")
            await self.shutdown()
            return EXIT_FAILURE

        return await self.shutdown()
