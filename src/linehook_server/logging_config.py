"""Logging configuration for the linehook server.

Event output meant for the developer goes through
:class:`linehook_server.eventlog.EventLogger`. This module only covers
operational diagnostics (listener lifecycle, forwarder internals), which are
kept on stderr so stdout stays a clean event log.
"""
from __future__ import annotations

import logging
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: int = logging.INFO) -> None:
    """Install a stderr handler on the root logger.

    Args:
        level: Minimum level for linehook diagnostics. uvicorn is held at
            WARNING regardless since its access log duplicates ours.
    """
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_delivery(
    logger: logging.Logger,
    path: str,
    *,
    body_bytes: int,
    signed: bool,
    forwarded: Optional[bool] = None,
) -> None:
    """Emit the per-delivery diagnostic record.

    ``forwarded`` is None when no forward target is configured, otherwise
    whether the relay got a 2xx answer.
    """
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug(
        "Accepted %s (%d bytes, %s, %s)",
        path,
        body_bytes,
        "signed" if signed else "unsigned",
        "not forwarded" if forwarded is None else f"forwarded={forwarded}",
        extra={"path": path, "body_bytes": body_bytes, "signed": signed, "forwarded": forwarded},
    )
