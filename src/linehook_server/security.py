from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Optional

from .errors import InvalidSignatureError, MissingSignatureError

SIGNATURE_HEADER = "X-Line-Signature"


def compute_signature(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Check an ``X-Line-Signature`` value against the raw request body.

    The comparison is constant-time. ``body`` must be the exact bytes received
    on the wire; re-encoded JSON will not match.
    """
    expected = compute_signature(body, secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8", errors="replace"))


def check_signature(body: bytes, signature: Optional[str], secret: Optional[str]) -> None:
    # No secret means local development: every request is trusted.
    if not secret:
        return
    if not signature:
        raise MissingSignatureError()
    if not verify_signature(body, signature, secret):
        raise InvalidSignatureError()
