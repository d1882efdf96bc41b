from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, StrictInt, StrictStr, Tag, ValidationError, field_validator

from .errors import PayloadFormatError
from .rawjson import DECODER, RawJSON, iter_elements, iter_members, skip_ws


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class UserSource(_Model):
    type: Literal["user"] = "user"
    user_id: Optional[StrictStr] = Field(default=None, alias="userId")

    def describe(self) -> str:
        if self.user_id:
            return f"user (User: {self.user_id})"
        return "user"


class GroupSource(_Model):
    type: Literal["group"] = "group"
    group_id: Optional[StrictStr] = Field(default=None, alias="groupId")
    user_id: Optional[StrictStr] = Field(default=None, alias="userId")

    def describe(self) -> str:
        if not self.group_id:
            return "group"
        if self.user_id:
            return f"group (Group: {self.group_id}, User: {self.user_id})"
        return f"group (Group: {self.group_id})"


class RoomSource(_Model):
    type: Literal["room"] = "room"
    room_id: Optional[StrictStr] = Field(default=None, alias="roomId")
    user_id: Optional[StrictStr] = Field(default=None, alias="userId")

    def describe(self) -> str:
        if not self.room_id:
            return "room"
        if self.user_id:
            return f"room (Room: {self.room_id}, User: {self.user_id})"
        return f"room (Room: {self.room_id})"


class OtherSource(_Model):
    # Source kinds this relay does not know about yet
    type: StrictStr = ""

    def describe(self) -> str:
        return self.type


def _source_kind(value: Any) -> str:
    if isinstance(value, dict):
        kind = value.get("type")
    else:
        kind = getattr(value, "type", None)
    return kind if kind in ("user", "group", "room") else "other"


EventSource = Annotated[
    Union[
        Annotated[UserSource, Tag("user")],
        Annotated[GroupSource, Tag("group")],
        Annotated[RoomSource, Tag("room")],
        Annotated[OtherSource, Tag("other")],
    ],
    Discriminator(_source_kind),
]


# (attribute, console label) in display order
OPAQUE_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("message", "Message"),
    ("postback", "Postback"),
    ("beacon", "Beacon"),
    ("link", "Link"),
    ("things", "Things"),
    ("members", "Members"),
    ("unsend", "Unsend"),
    ("video_play_complete", "VideoPlayComplete"),
)


class Event(_Model):
    type: StrictStr = ""
    timestamp: Optional[StrictInt] = None
    source: Optional[EventSource] = None
    reply_token: Optional[StrictStr] = Field(default=None, alias="replyToken")

    message: Optional[RawJSON] = None
    postback: Optional[RawJSON] = None
    beacon: Optional[RawJSON] = None
    link: Optional[RawJSON] = None
    things: Optional[RawJSON] = None
    members: Optional[RawJSON] = None
    unsend: Optional[RawJSON] = None
    video_play_complete: Optional[RawJSON] = Field(default=None, alias="videoPlayComplete")

    def present_fields(self) -> List[Tuple[str, RawJSON]]:
        out: List[Tuple[str, RawJSON]] = []
        for attr, label in OPAQUE_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                out.append((label, value))
        return out


class WebhookPayload(_Model):
    destination: Optional[StrictStr] = None
    events: List[Event] = Field(default_factory=list)

    @field_validator("events", mode="before")
    @classmethod
    def _null_events(cls, v):
        return [] if v is None else v


# JSON keys of the opaque event fields
_OPAQUE_KEYS = frozenset(
    ("message", "postback", "beacon", "link", "things", "members", "unsend", "videoPlayComplete")
)


def _scan_event(text: str, start: int, value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    event: Dict[str, Any] = {}
    for key, member, lo, hi in iter_members(text, start):
        event[key] = RawJSON.from_source(text[lo:hi]) if key in _OPAQUE_KEYS else member
    return event


def _scan_body(text: str) -> Any:
    data = DECODER.decode(text)
    if not isinstance(data, dict):
        return data
    for key, member, lo, _ in iter_members(text, skip_ws(text, 0)):
        if key != "events":
            continue
        if isinstance(member, list):
            member = [_scan_event(text, elo, element) for element, elo, _ in iter_elements(text, lo)]
        # repeated keys: the last one wins, as in the decoded dict
        data[key] = member
    return data


def decode_payload(body: bytes) -> WebhookPayload:
    """Strictly decode a webhook body.

    Opaque event fields keep their source text (compacted). A JSON ``null``
    body decodes to an empty delivery.

    Raises:
        PayloadFormatError: the body is not UTF-8 JSON (NaN/Infinity
            included), or not shaped like a webhook delivery.
    """
    try:
        data = _scan_body(body.decode("utf-8"))
    except ValueError as exc:
        raise PayloadFormatError(f"cannot decode webhook payload: {exc}") from exc
    if data is None:
        return WebhookPayload()
    try:
        return WebhookPayload.model_validate(data)
    except ValidationError as exc:
        raise PayloadFormatError(f"cannot decode webhook payload: {exc.error_count()} error(s)") from exc
