"""Exception types for the webhook relay.

Only :class:`ClientProtocolError` and :class:`AuthenticationError` ever reach
the HTTP caller as a non-200 status. Payload and forward failures are
recovered where they happen and only show up in the console output.
"""
from __future__ import annotations


class LinehookError(Exception):
    """Base class for all linehook errors."""


class ClientProtocolError(LinehookError):
    """The inbound request is unusable at the HTTP level (bad method, unreadable body)."""

    def __init__(self, status_code: int, message: str, log_message: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        # Console text can be more specific than the response body
        self.log_message = log_message or message


class AuthenticationError(LinehookError):
    status_code = 401
    message = "Unauthorized"
    log_message = "Unauthorized"

    def __init__(self) -> None:
        super().__init__(self.log_message)


class MissingSignatureError(AuthenticationError):
    status_code = 401
    message = "Missing signature"
    log_message = "Missing X-Line-Signature header"


class InvalidSignatureError(AuthenticationError):
    status_code = 403
    message = "Invalid signature"
    log_message = "Invalid signature"


class PayloadFormatError(LinehookError):
    """The body is not a well-formed webhook payload."""


class ForwardTransportError(LinehookError):
    """The forward target could not be reached."""


class ServerStartupError(LinehookError):
    """The listener could not start serving (typically the port is taken)."""
