"""Human-readable console output for received webhooks."""
from __future__ import annotations

import sys
import threading
from datetime import datetime
from typing import List, Optional, TextIO

from .errors import PayloadFormatError
from .models import Event, WebhookPayload, decode_payload


def timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def render_event(event: Event) -> List[str]:
    lines = [f"Event Type: {event.type}"]
    if event.source is not None:
        lines.append(f"Source: {event.source.describe()}")
    if event.reply_token:
        lines.append(f"Reply Token: {event.reply_token}")
    for label, raw in event.present_fields():
        lines.append(f"{label}: {raw}")
    return lines


def render_payload(payload: WebhookPayload) -> List[str]:
    lines: List[str] = []
    if payload.destination:
        lines.append(f"Destination: {payload.destination}")

    if not payload.events:
        lines.append("Events: (none)")
        return lines

    numbered = len(payload.events) > 1
    for n, event in enumerate(payload.events, start=1):
        if numbered:
            lines.append(f"--- Event {n} ---")
        lines.extend(render_event(event))
    return lines


def render_body(body: bytes) -> List[str]:
    """Render a webhook body, falling back to the raw text when it does not decode."""
    try:
        payload = decode_payload(body)
    except PayloadFormatError:
        return [f"Raw body: {body.decode('utf-8', errors='backslashreplace')}"]
    return render_payload(payload)


class EventLogger:
    """Writes webhook console output.

    Each call produces one block that is written under a lock, so output
    from requests handled on different threads never interleaves mid-block.
    Error lines are written even in quiet mode.
    """

    def __init__(self, out: Optional[TextIO] = None, err: Optional[TextIO] = None, quiet: bool = False):
        self._out = out
        self._err = err
        self.quiet = quiet
        self._lock = threading.Lock()

    @property
    def out(self) -> TextIO:
        # Resolved lazily so pytest's capsys replacement is honoured
        return self._out if self._out is not None else sys.stdout

    @property
    def err(self) -> TextIO:
        return self._err if self._err is not None else sys.stderr

    def _write(self, stream: TextIO, lines: List[str]) -> None:
        text = "\n".join(lines) + "\n"
        with self._lock:
            stream.write(text)
            stream.flush()

    def log_delivery(self, body: bytes, path: str = "/webhook") -> None:
        if self.quiet:
            return
        lines = [f"[{timestamp()}] POST {path} - 200 OK"]
        lines.extend(render_body(body))
        lines.append("")
        self._write(self.out, lines)

    def log_error(self, method: str, path: str, status: int, message: str) -> None:
        self._write(self.err, [f"[{timestamp()}] {method} {path} - {status} {message}"])

    def log_forward(self, url: str, status: str) -> None:
        if self.quiet:
            return
        self._write(self.out, [f"Forwarded to {url}: {status}"])

    def log_forward_error(self, reason: object) -> None:
        self._write(self.err, [f"Forward error: {reason}"])
