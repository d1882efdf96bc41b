"""Tests for the per-request webhook pipeline."""
from __future__ import annotations

import io
import logging

import httpx
import pytest

from linehook_server.errors import InvalidSignatureError
from linehook_server.eventlog import EventLogger
from linehook_server.forward import Forwarder
from linehook_server.pipeline import WebhookPipeline
from linehook_server.security import compute_signature
from linehook_server.settings import ServerConfig

PIPELINE_LOGGER = "linehook_server.pipeline"


def _pipeline(secret=None, forward=False):
    console = EventLogger(out=io.StringIO(), err=io.StringIO())
    forwarder = None
    if forward:
        transport = httpx.MockTransport(lambda request: httpx.Response(200))
        forwarder = Forwarder("http://localhost:3000/webhook", console, transport=transport)
    return WebhookPipeline(ServerConfig(port=0, secret=secret), console, forwarder)


def test_accepted_delivery_debug_record(caplog):
    """Each accepted delivery leaves one debug record with its summary."""
    body = b'{"events":[]}'
    pipeline = _pipeline(secret="s3cr3t", forward=True)

    with caplog.at_level(logging.DEBUG, logger=PIPELINE_LOGGER):
        pipeline.handle(body, compute_signature(body, "s3cr3t"))

    records = [r for r in caplog.records if r.name == PIPELINE_LOGGER]
    assert len(records) == 1
    record = records[0]
    assert record.levelno == logging.DEBUG
    assert record.getMessage() == "Accepted /webhook (13 bytes, signed, forwarded=True)"
    assert record.path == "/webhook"
    assert record.body_bytes == 13
    assert record.signed is True
    assert record.forwarded is True


def test_debug_record_without_forward_target(caplog):
    """forwarded is None when nothing is relayed."""
    with caplog.at_level(logging.DEBUG, logger=PIPELINE_LOGGER):
        _pipeline().handle(b"not valid json", None)

    record = [r for r in caplog.records if r.name == PIPELINE_LOGGER][0]
    assert record.getMessage() == "Accepted /webhook (14 bytes, unsigned, not forwarded)"
    assert record.forwarded is None


def test_no_debug_record_above_debug_level(caplog):
    """At INFO the delivery record is not emitted."""
    with caplog.at_level(logging.INFO, logger=PIPELINE_LOGGER):
        _pipeline().handle(b"{}", None)

    assert [r for r in caplog.records if r.name == PIPELINE_LOGGER] == []


def test_rejected_delivery_leaves_no_record(caplog):
    """A signature failure raises before anything is logged."""
    pipeline = _pipeline(secret="s3cr3t")

    with caplog.at_level(logging.DEBUG, logger=PIPELINE_LOGGER):
        with pytest.raises(InvalidSignatureError):
            pipeline.handle(b"{}", "invalid-signature")

    assert [r for r in caplog.records if r.name == PIPELINE_LOGGER] == []
    assert pipeline.console.out.getvalue() == ""
