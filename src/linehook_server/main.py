from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import ClientDisconnect

from .errors import AuthenticationError, ClientProtocolError
from .eventlog import EventLogger
from .forward import Forwarder
from .logging_config import get_logger
from .pipeline import WebhookPipeline
from .security import SIGNATURE_HEADER
from .settings import ServerConfig

logger = get_logger(__name__)

__version__ = "0.1.0"

BANNER = "LINE Webhook Server\nPOST to /webhook to send events\n"

WEBHOOK_PATH = "/webhook"

# Response text for routing errors raised by Starlette itself
_ROUTING_MESSAGES: Dict[int, str] = {
    404: "Not Found",
    405: "Method not allowed",
}


def create_app(
    config: ServerConfig,
    console: Optional[EventLogger] = None,
    forwarder: Optional[Forwarder] = None,
) -> FastAPI:
    console = console or EventLogger(quiet=config.quiet)
    if forwarder is None and config.forward_url:
        forwarder = Forwarder(config.forward_url, console)
    pipeline = WebhookPipeline(config, console, forwarder)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Webhook app ready",
            extra={"signature_check": config.verifies_signature, "forward_url": config.forward_url},
        )
        app.state.config = config
        app.state.console = console
        app.state.pipeline = pipeline
        yield
        if forwarder is not None:
            forwarder.close()

    app = FastAPI(
        title="linehook",
        description="Local LINE webhook receiver and relay for bot development",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.exception_handler(ClientProtocolError)
    async def client_protocol_error(request: Request, exc: ClientProtocolError):
        console.log_error(request.method, request.url.path, exc.status_code, exc.log_message)
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    @app.exception_handler(AuthenticationError)
    async def authentication_error(request: Request, exc: AuthenticationError):
        console.log_error(request.method, request.url.path, exc.status_code, exc.log_message)
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def routing_error(request: Request, exc: StarletteHTTPException):
        message = _ROUTING_MESSAGES.get(exc.status_code, str(exc.detail))
        console.log_error(request.method, request.url.path, exc.status_code, message)
        return PlainTextResponse(message, status_code=exc.status_code, headers=exc.headers)

    @app.get("/", response_class=PlainTextResponse)
    async def banner():
        """Info banner."""
        return BANNER

    @app.post(WEBHOOK_PATH)
    async def webhook(request: Request):
        """Receive one webhook delivery."""
        try:
            body = await request.body()
        except ClientDisconnect as ex:
            raise ClientProtocolError(400, "Failed to read body") from ex

        signature = request.headers.get(SIGNATURE_HEADER)
        await run_in_threadpool(pipeline.handle, body, signature, request.url.path)
        return Response(status_code=200)

    return app
