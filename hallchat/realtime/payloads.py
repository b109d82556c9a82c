"""Message types routed by the realtime core.

A message payload is exactly one of text, image reference or audio reference.
The core never mutates a ``Message``; it only routes it.
"""

from __future__ import annotations

import datetime as dt
import enum
from dataclasses import dataclass
from typing import Any
from typing import Union

from hallchat.realtime.exceptions import InvalidPayload


class MessageKind(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


@dataclass(frozen=True)
class TextPayload:
    text: str
    type = "text"

    def __post_init__(self):
        if not isinstance(self.text, str) or not self.text.strip():
            msg = "Message text must not be blank"
            raise InvalidPayload(msg)
        object.__setattr__(self, "text", self.text.strip())

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class _MediaPayload:
    ref: str
    type = "media"

    def __post_init__(self):
        if not isinstance(self.ref, str) or not self.ref.strip():
            msg = f"{self.type.capitalize()} reference must not be empty"
            raise InvalidPayload(msg)

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type, "ref": self.ref}


@dataclass(frozen=True)
class ImagePayload(_MediaPayload):
    type = "image"


@dataclass(frozen=True)
class AudioPayload(_MediaPayload):
    type = "audio"


Payload = Union[TextPayload, ImagePayload, AudioPayload]

_MEDIA_TYPES: dict[str, type[_MediaPayload]] = {
    "image": ImagePayload,
    "audio": AudioPayload,
}
# Flat shape older clients send: {text?, imageRef?, audioRef?}
_LEGACY_FIELDS = {"text": "text", "imageRef": "image", "audioRef": "audio"}


def parse_payload(data: Any) -> Payload:
    """Build the payload variant from wire data.

    Accepts ``{"type": ..., "text"|"ref": ...}`` or the flat legacy shape with
    exactly one of ``text``, ``imageRef`` or ``audioRef`` set.
    """

    if isinstance(data, (TextPayload, ImagePayload, AudioPayload)):
        return data
    if isinstance(data, str):
        return TextPayload(data)
    if not isinstance(data, dict):
        raise InvalidPayload

    payload_type = data.get("type")
    if payload_type is None:
        present = [
            (kind, data[key])
            for key, kind in _LEGACY_FIELDS.items()
            if isinstance(data.get(key), str) and data[key].strip()
        ]
        if len(present) != 1:
            msg = "Exactly one of text, imageRef or audioRef is required"
            raise InvalidPayload(msg)
        payload_type, value = present[0]
        data = {"type": payload_type, "text" if payload_type == "text" else "ref": value}

    if payload_type == "text":
        return TextPayload(data.get("text", ""))
    media_cls = _MEDIA_TYPES.get(payload_type)
    if media_cls is None:
        msg = f"Unknown payload type: {payload_type!r}"
        raise InvalidPayload(msg)
    return media_cls(data.get("ref", ""))


@dataclass(frozen=True)
class MessageDraft:
    kind: MessageKind
    owner_id: str
    payload: Payload
    receiver_id: str | None = None


@dataclass(frozen=True)
class Message:
    id: str
    kind: MessageKind
    owner_id: str
    payload: Payload
    created_at: dt.datetime
    receiver_id: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "ownerId": self.owner_id,
            "receiverId": self.receiver_id,
            "payload": self.payload.to_wire(),
            "createdAt": self.created_at.isoformat(),
        }
