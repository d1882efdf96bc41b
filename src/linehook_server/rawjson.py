"""Raw JSON text handling for event sub-objects.

Opaque event fields are sliced out of the request body and only have their
insignificant whitespace removed. Their numbers and string escapes are never
round-tripped through Python values.
"""
from __future__ import annotations

import json
import re
from typing import Any, Iterator, Tuple

from pydantic_core import core_schema

_WS = re.compile(r"[ \t\n\r]*")
# A JSON string token, or a run of whitespace outside strings
_COMPACT_TOKEN = re.compile(r'"(?:[^"\\]|\\.)*"|[ \t\n\r]+')


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


# stdlib decoder that refuses NaN/Infinity, used for both validation and spans
DECODER = json.JSONDecoder(parse_constant=_reject_constant)


def compact_json(text: str) -> str:
    """Drop whitespace outside string literals, like Go's json.Compact."""
    return _COMPACT_TOKEN.sub(lambda m: m.group() if m.group().startswith('"') else "", text)


class RawJSON:
    """An event sub-object kept as compact JSON text.

    The relay never interprets message/postback/beacon/... contents. It only
    needs to know whether they are there and to print them back.
    """

    __slots__ = ("text",)

    def __init__(self, text: str):
        self.text = text

    @classmethod
    def from_source(cls, text: str) -> "RawJSON":
        return cls(compact_json(text))

    @classmethod
    def _validate(cls, value: Any) -> "RawJSON":
        if isinstance(value, RawJSON):
            return value
        raise ValueError("expected raw JSON text captured from the request body")

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(lambda v: v.text),
        )

    def __str__(self) -> str:
        return self.text

    def __bytes__(self) -> bytes:
        return self.text.encode("utf-8")

    def __repr__(self) -> str:
        return f"RawJSON({self.text!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RawJSON):
            return self.text == other.text
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.text)


def skip_ws(text: str, pos: int) -> int:
    return _WS.match(text, pos).end()


def _expect(text: str, pos: int, char: str) -> int:
    if not text.startswith(char, pos):
        raise ValueError(f"expected {char!r} at position {pos}")
    return pos + 1


def decode_value(text: str, pos: int) -> Tuple[Any, int]:
    """Decode one JSON value at ``pos``; returns the value and its end offset."""
    return DECODER.raw_decode(text, pos)


def iter_members(text: str, pos: int) -> Iterator[Tuple[str, Any, int, int]]:
    """Yield ``(key, value, start, end)`` for each member of the object at ``pos``.

    ``text[start:end]`` is the member value's exact source text.
    """
    pos = skip_ws(text, _expect(text, pos, "{"))
    if text.startswith("}", pos):
        return
    while True:
        key, pos = decode_value(text, pos)
        if not isinstance(key, str):
            raise ValueError(f"object key must be a string at position {pos}")
        pos = skip_ws(text, _expect(text, skip_ws(text, pos), ":"))
        value, end = decode_value(text, pos)
        yield key, value, pos, end
        pos = skip_ws(text, end)
        if text.startswith(",", pos):
            pos = skip_ws(text, pos + 1)
            continue
        _expect(text, pos, "}")
        return


def iter_elements(text: str, pos: int) -> Iterator[Tuple[Any, int, int]]:
    """Yield ``(value, start, end)`` for each element of the array at ``pos``."""
    pos = skip_ws(text, _expect(text, pos, "["))
    if text.startswith("]", pos):
        return
    while True:
        value, end = decode_value(text, pos)
        yield value, pos, end
        pos = skip_ws(text, end)
        if text.startswith(",", pos):
            pos = skip_ws(text, pos + 1)
            continue
        _expect(text, pos, "]")
        return
