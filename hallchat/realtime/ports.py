"""Interfaces the realtime core needs from the outside world.

The core depends on the message store only through ``append`` and ``query``
and on the user directory only through ``exists``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING
from typing import Protocol

if TYPE_CHECKING:
    from hallchat.realtime.payloads import Message
    from hallchat.realtime.payloads import MessageDraft
    from hallchat.realtime.payloads import MessageKind


@dataclass(frozen=True)
class MessageFilter:
    kind: MessageKind
    # For private history: the two conversation participants, either direction.
    participant_ids: tuple[str, str] | None = None
    # Catch-up: only messages with an id greater than this one.
    since_id: str | None = None


class MessageStore(Protocol):
    async def append(self, draft: MessageDraft) -> Message: ...

    async def query(self, message_filter: MessageFilter) -> list[Message]: ...


class UserDirectory(Protocol):
    async def exists(self, user_id: str) -> bool: ...
