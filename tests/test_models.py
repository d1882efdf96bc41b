"""Tests for webhook payload decoding."""
from __future__ import annotations

import pytest

from linehook_server.errors import PayloadFormatError
from linehook_server.models import (
    GroupSource,
    OtherSource,
    RawJSON,
    RoomSource,
    UserSource,
    decode_payload,
)
from linehook_server.rawjson import compact_json


def test_decode_full_event():
    """All known fields are picked up, opaque fields are compacted."""
    body = b"""{
      "destination": "U1",
      "events": [{
        "type": "message",
        "timestamp": 1462629479859,
        "source": {"type": "user", "userId": "Uabc"},
        "replyToken": "tok",
        "message": {  "type" : "text" ,  "text" : "hi"  },
        "webhookEventId": "01FZ74A0TDDPYRVKNK77XKC3ZR"
      }]
    }"""
    payload = decode_payload(body)

    assert payload.destination == "U1"
    assert len(payload.events) == 1
    event = payload.events[0]
    assert event.type == "message"
    assert event.timestamp == 1462629479859
    assert isinstance(event.source, UserSource)
    assert event.source.user_id == "Uabc"
    assert event.reply_token == "tok"
    assert str(event.message) == '{"type":"text","text":"hi"}'
    assert event.postback is None


def test_decode_empty_object():
    """An empty object decodes to no destination and no events."""
    payload = decode_payload(b"{}")
    assert payload.destination is None
    assert payload.events == []


def test_decode_null_events():
    """A null events list is treated like an empty one."""
    assert decode_payload(b'{"events": null}').events == []


def test_decode_keeps_event_order():
    """Events keep their delivery order."""
    payload = decode_payload(b'{"events":[{"type":"follow"},{"type":"message"},{"type":"unfollow"}]}')
    assert [e.type for e in payload.events] == ["follow", "message", "unfollow"]


def test_decode_source_variants():
    """The source type picks the variant; unknown kinds still decode."""
    payload = decode_payload(
        b'{"events":['
        b'{"type":"a","source":{"type":"group","groupId":"C1","userId":"U2"}},'
        b'{"type":"b","source":{"type":"room","roomId":"R1"}},'
        b'{"type":"c","source":{"type":"space","spaceId":"S1"}}'
        b"]}"
    )
    group, room, other = (e.source for e in payload.events)

    assert isinstance(group, GroupSource)
    assert (group.group_id, group.user_id) == ("C1", "U2")
    assert isinstance(room, RoomSource)
    assert (room.room_id, room.user_id) == ("R1", None)
    assert isinstance(other, OtherSource)
    assert other.type == "space"


def test_decode_all_opaque_fields():
    """Every opaque field is detected, including non-object JSON."""
    payload = decode_payload(
        b'{"events":[{"type":"memberJoined",'
        b'"message":{"type":"text"},"postback":{"data":"action=buy"},'
        b'"beacon":{"hwid":"d41d8cd98f","type":"enter"},"link":{"result":"ok"},'
        b'"things":{"deviceId":"t123"},"members":[{"userId":"U123"}],'
        b'"unsend":{"messageId":"m123"},"videoPlayComplete":{"trackingId":"track1"}}]}'
    )
    labels = [label for label, _ in payload.events[0].present_fields()]
    assert labels == [
        "Message",
        "Postback",
        "Beacon",
        "Link",
        "Things",
        "Members",
        "Unsend",
        "VideoPlayComplete",
    ]
    assert payload.events[0].members == RawJSON('[{"userId":"U123"}]')


def test_opaque_null_is_present():
    """A JSON null sub-object is kept and printed as null."""
    payload = decode_payload(b'{"events":[{"type":"message","message":null}]}')
    assert payload.events[0].message == RawJSON("null")
    assert payload.events[0].present_fields() == [("Message", RawJSON("null"))]


def test_opaque_keeps_non_ascii():
    """Compaction does not escape non-ASCII text."""
    payload = decode_payload('{"events":[{"type":"message","message":{"text":"こんにちは"}}]}'.encode("utf-8"))
    assert str(payload.events[0].message) == '{"text":"こんにちは"}'


def test_opaque_keeps_number_text():
    """Numbers are copied from the body, not re-formatted."""
    payload = decode_payload(b'{"events":[{"type":"things","things":{"v":1e2,"w":1.50,"n":-0,"big":1e400}}]}')
    assert str(payload.events[0].things) == '{"v":1e2,"w":1.50,"n":-0,"big":1e400}'


def test_opaque_keeps_escapes_and_drops_whitespace():
    """Only whitespace outside strings is removed; escapes stay as sent."""
    body = b'{"events":[{"type":"message","message": {\n  "text" : "caf\\u00e9 \\"a b\\"",\n  "ids": [ 1, 2 ]\n}}]}'
    payload = decode_payload(body)
    assert str(payload.events[0].message) == '{"text":"caf\\u00e9 \\"a b\\"","ids":[1,2]}'


def test_duplicate_keys_last_wins():
    """Repeated keys keep the last value, for opaque fields too."""
    payload = decode_payload(b'{"events":[{"type":"message","message":{"a":1},"message":{"b":2}}]}')
    assert str(payload.events[0].message) == '{"b":2}'


def test_decode_null_body():
    """A JSON null body is an empty delivery."""
    payload = decode_payload(b" null ")
    assert payload.destination is None
    assert payload.events == []


def test_compact_json():
    """compact_json leaves string contents alone."""
    assert compact_json('{ "a" : [ 1 , "x  y" ] ,\t"b":"\\" }" }') == '{"a":[1,"x  y"],"b":"\\" }"}'


@pytest.mark.parametrize(
    "body",
    [
        b"not valid json",
        b"",
        b"[]",
        b'"events"',
        b'{"events": {}}',
        b'{"events": [{"type": 5}]}',
        b'{"events": [{"type": "message", "timestamp": "123"}]}',
        b'{"events": [{"type": "message", "source": "user"}]}',
        b'{"destination": 1}',
        b'{"events": [',
        b'{"events": []} {}',
        b'{"events": [{"type": "things", "things": {"v": NaN}}]}',
        b'{"destination": Infinity}',
        b'\xff\xfe{}',
        b'{"events": [{"type": "a"}], "events": {}}',
    ],
)
def test_decode_rejects_malformed(body):
    """Anything that is not a well-formed delivery raises PayloadFormatError."""
    with pytest.raises(PayloadFormatError):
        decode_payload(body)
