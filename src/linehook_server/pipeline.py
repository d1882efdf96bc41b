from __future__ import annotations

from typing import Optional

from .eventlog import EventLogger
from .forward import Forwarder
from .logging_config import get_logger, log_delivery
from .security import check_signature
from .settings import ServerConfig

logger = get_logger(__name__)


class WebhookPipeline:
    """Synchronous per-request processing for ``POST /webhook``.

    verify -> decode/log -> forward. Runs on a worker thread; a rejected
    signature raises before anything is logged or forwarded.
    """

    def __init__(self, config: ServerConfig, console: EventLogger, forwarder: Optional[Forwarder] = None):
        self.config = config
        self.console = console
        self.forwarder = forwarder

    def handle(self, body: bytes, signature: Optional[str], path: str = "/webhook") -> None:
        check_signature(body, signature, self.config.secret)

        self.console.log_delivery(body, path)

        forwarded = None
        if self.forwarder is not None:
            forwarded = self.forwarder.relay(body, signature)

        log_delivery(logger, path, body_bytes=len(body), signed=bool(signature), forwarded=forwarded)
