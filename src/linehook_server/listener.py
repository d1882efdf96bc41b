from __future__ import annotations

import socket
import threading
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .errors import ServerStartupError
from .eventlog import EventLogger
from .logging_config import get_logger
from .main import create_app
from .settings import ServerConfig

logger = get_logger(__name__)

GRACE_PERIOD_S = 5.0
STARTUP_TIMEOUT_S = 10.0


class WebhookListener:
    """Owns the HTTP server for the webhook app.

    The socket is bound up front so a taken port fails in the caller's
    thread. uvicorn then runs on a background thread; stopping it lets
    in-flight requests finish for ``grace_period_s`` before the remaining
    connections are dropped.
    """

    def __init__(
        self,
        config: ServerConfig,
        *,
        console: Optional[EventLogger] = None,
        app: Optional[FastAPI] = None,
        host: str = "0.0.0.0",
        grace_period_s: float = GRACE_PERIOD_S,
    ):
        self.config = config
        self.host = host
        self.grace_period_s = grace_period_s
        self.app = app if app is not None else create_app(config, console=console)
        self._sock: Optional[socket.socket] = None
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        if self._sock is None:
            return self.config.port
        return self._sock.getsockname()[1]

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.config.port))
        except OSError as ex:
            sock.close()
            raise ServerStartupError(f"cannot listen on port {self.config.port}: {ex.strerror or ex}") from ex
        return sock

    def start(self, startup_timeout_s: float = STARTUP_TIMEOUT_S) -> None:
        if self.running:
            return
        self._sock = self._bind()
        uv_config = uvicorn.Config(
            self.app,
            log_config=None,
            log_level="warning",
            access_log=False,
            lifespan="on",
            timeout_graceful_shutdown=int(self.grace_period_s),
        )
        self._server = uvicorn.Server(uv_config)
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [self._sock]},
            name="linehook-listener",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + startup_timeout_s
        while not self._server.started:
            if not self._thread.is_alive():
                self._release()
                raise ServerStartupError("webhook server exited during startup")
            if time.monotonic() > deadline:
                self.stop()
                raise ServerStartupError(f"webhook server did not start within {startup_timeout_s:.0f}s")
            time.sleep(0.05)
        logger.info(f"Listening on {self.host}:{self.port}")

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.should_exit = True
        if self._thread is not None:
            # uvicorn force-closes after the grace period; allow it time to unwind
            self._thread.join(timeout=self.grace_period_s + 5.0)
            if self._thread.is_alive():
                logger.warning("Webhook server thread did not exit after shutdown")
        self._release()
        logger.info("Webhook server stopped")

    def _release(self) -> None:
        if self._sock is not None:
            self._sock.close()
        self._sock = None
        self._server = None
        self._thread = None

    def serve(self, shutdown: threading.Event) -> None:
        """Serve until ``shutdown`` is set (or the server dies on its own)."""
        self.start()
        try:
            while not shutdown.wait(timeout=0.5):
                if not self.running:
                    logger.error("Webhook server exited unexpectedly")
                    break
        finally:
            self.stop()
