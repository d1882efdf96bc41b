from __future__ import annotations

from typing import Optional

import httpx

from .errors import ForwardTransportError
from .eventlog import EventLogger
from .logging_config import get_logger
from .security import SIGNATURE_HEADER

logger = get_logger(__name__)

FORWARD_TIMEOUT_S = 10.0


class Forwarder:
    """Best-effort relay of accepted webhook bodies to a second endpoint.

    The body is sent byte-for-byte as received and the original signature
    header is passed through, so the downstream app can verify it with the
    same channel secret. Nothing here can change the status already chosen
    for the platform.
    """

    def __init__(
        self,
        url: str,
        console: EventLogger,
        *,
        timeout_s: float = FORWARD_TIMEOUT_S,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url
        self.console = console
        self._client = httpx.Client(timeout=timeout_s, transport=transport)

    def post(self, body: bytes, signature: Optional[str] = None) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if signature:
            headers[SIGNATURE_HEADER] = signature
        try:
            return self._client.post(self.url, content=body, headers=headers)
        except httpx.InvalidURL as ex:
            raise ForwardTransportError(f"invalid forward URL {self.url!r}: {ex}") from ex
        except httpx.HTTPError as ex:
            raise ForwardTransportError(f"forward request failed: {ex}") from ex

    def relay(self, body: bytes, signature: Optional[str] = None) -> bool:
        """Forward ``body`` and report the outcome on the console.

        Returns True when the target answered with a 2xx status.
        """
        try:
            resp = self.post(body, signature)
        except ForwardTransportError as ex:
            logger.debug("Forward to %s failed", self.url, exc_info=True)
            self.console.log_forward_error(ex)
            return False

        status = f"{resp.status_code} {resp.reason_phrase}".strip()
        self.console.log_forward(self.url, status)
        if not resp.is_success:
            self.console.log_forward_error(f"{self.url} responded {status}")
            return False
        return True

    def close(self) -> None:
        self._client.close()
