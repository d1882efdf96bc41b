from __future__ import annotations

import json
import logging
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Optional

import httpx
import typer
from pydantic import ValidationError
from rich.console import Console

from linehook_server.errors import ServerStartupError
from linehook_server.listener import WebhookListener
from linehook_server.logging_config import configure_logging
from linehook_server.security import SIGNATURE_HEADER, compute_signature
from linehook_server.settings import ServerConfig

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()
err_console = Console(stderr=True)


def _read_body(file: Optional[Path]) -> bytes:
    if file is None or str(file) == "-":
        return sys.stdin.buffer.read()
    try:
        return file.read_bytes()
    except OSError as ex:
        err_console.print(f"[red]cannot read {file}[/red]: {ex.strerror or ex}")
        raise typer.Exit(code=1)


def _sample_body(text: str) -> bytes:
    now_ms = int(time.time() * 1000)
    payload = {
        "destination": "Udeadbeefdeadbeefdeadbeefdeadbeef",
        "events": [
            {
                "type": "message",
                "mode": "active",
                "timestamp": now_ms,
                "webhookEventId": f"01LINEHOOK{now_ms}",
                "deliveryContext": {"isRedelivery": False},
                "source": {"type": "user", "userId": "U4af4980629deadbeefdeadbeefdeadbe"},
                "replyToken": "00000000000000000000000000000000",
                "message": {"id": str(now_ms), "type": "text", "text": text},
            }
        ],
    }
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def _install_shutdown_signals(shutdown: threading.Event) -> dict:
    previous = {}

    def _handler(signum, frame):
        shutdown.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _handler)
    return previous


@app.command("serve")
def serve(
    port: int = typer.Option(8080, "--port", "-p", envvar="LINEHOOK_PORT", help="Port to listen on"),
    secret: Optional[str] = typer.Option(
        None, "--secret", envvar="LINEHOOK_SECRET", help="Channel secret for signature validation"
    ),
    forward: Optional[str] = typer.Option(
        None, "--forward", envvar="LINEHOOK_FORWARD_URL", help="URL to forward events to after logging"
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", envvar="LINEHOOK_QUIET", help="Only show errors, no event logging"
    ),
):
    """Start a local webhook server for bot development."""
    try:
        config = ServerConfig(port=port, secret=secret, forward_url=forward, quiet=quiet)
    except ValidationError as ex:
        err_console.print(f"[red]invalid server settings[/red]: {ex.errors()[0]['msg']}")
        raise typer.Exit(code=2)

    configure_logging(logging.WARNING if config.quiet else logging.INFO)

    listener = WebhookListener(config)
    try:
        listener.start()
    except ServerStartupError as ex:
        err_console.print(f"[red]server error[/red]: {ex}")
        raise typer.Exit(code=1)

    console.print(f"Webhook server listening on http://localhost:{listener.port}/webhook")
    console.print("Press Ctrl+C to stop")
    if config.verifies_signature:
        console.print("Signature validation: [green]enabled[/green]")
    if config.forwards:
        console.print(f"Forwarding to: {config.forward_url}")
    console.print("")

    shutdown = threading.Event()
    previous = _install_shutdown_signals(shutdown)
    try:
        listener.serve(shutdown)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    console.print("\n[cyan]Shutting down...[/cyan]")


@app.command("sign")
def sign(
    file: Optional[Path] = typer.Argument(None, help="Body file to sign (default: stdin)."),
    secret: Optional[str] = typer.Option(None, "--secret", envvar="LINEHOOK_SECRET", help="Channel secret"),
):
    """Print the X-Line-Signature value for a request body."""
    if not secret:
        err_console.print("[red]secret is empty[/red]: pass --secret or set LINEHOOK_SECRET")
        raise typer.Exit(code=1)
    body = _read_body(file)
    console.print(compute_signature(body, secret), soft_wrap=True)


@app.command("send")
def send(
    url: str = typer.Option("http://localhost:8080/webhook", "--url", help="Webhook URL to post to"),
    secret: Optional[str] = typer.Option(
        None, "--secret", envvar="LINEHOOK_SECRET", help="Channel secret used to sign the body"
    ),
    text: str = typer.Option("Hello, world", "--text", help="Message text for the generated event"),
    file: Optional[Path] = typer.Option(None, "--file", help="Send this body instead of a generated event"),
    timeout: float = typer.Option(10.0, help="Request timeout seconds"),
):
    """Post a (signed) webhook delivery to a running server."""
    body = _read_body(file) if file is not None else _sample_body(text)
    headers = {"Content-Type": "application/json"}
    if secret:
        headers[SIGNATURE_HEADER] = compute_signature(body, secret)

    try:
        with httpx.Client(timeout=timeout) as client:
            r = client.post(url, content=body, headers=headers)
    except httpx.HTTPError as ex:
        err_console.print(f"[red]send error[/red]: {ex}")
        raise typer.Exit(code=1)

    status = f"{r.status_code} {r.reason_phrase}".strip()
    if not r.is_success:
        err_console.print(f"[red]{status}[/red] {r.text.strip()}")
        raise typer.Exit(code=1)
    console.print(f"[green]{status}[/green] ({len(body)} bytes sent)")


if __name__ == "__main__":
    app()
