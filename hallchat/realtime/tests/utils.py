from __future__ import annotations

import itertools

from django.utils import timezone

from hallchat.realtime.payloads import Message
from hallchat.realtime.payloads import MessageKind


def events_by_connection(deliveries) -> dict[str, list]:
    grouped: dict[str, list] = {}
    for delivery in deliveries:
        grouped.setdefault(delivery.connection_id, []).append(delivery.event)
    return grouped


def names(events) -> list[str]:
    return [event.name for event in events]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingTransport:
    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []

    async def deliver(self, connection_id: str, event: str, payload: dict) -> None:
        self.sent.append((connection_id, event, payload))


class FakeStore:
    """In-memory stand-in for the message store."""

    def __init__(self):
        self.messages: list[Message] = []
        self.fail_with: Exception | None = None
        self._ids = itertools.count(1)

    async def append(self, draft):
        if self.fail_with is not None:
            raise self.fail_with
        message = Message(
            id=str(next(self._ids)),
            kind=draft.kind,
            owner_id=draft.owner_id,
            receiver_id=draft.receiver_id,
            payload=draft.payload,
            created_at=timezone.now(),
        )
        self.messages.append(message)
        return message

    async def query(self, message_filter):
        rows = [m for m in self.messages if m.kind is message_filter.kind]
        if message_filter.kind is MessageKind.PRIVATE and message_filter.participant_ids:
            pair = set(message_filter.participant_ids)
            rows = [m for m in rows if {m.owner_id, m.receiver_id} == pair]
        if message_filter.since_id:
            rows = [m for m in rows if int(m.id) > int(message_filter.since_id)]
        return rows


class FakeDirectory:
    def __init__(self, *user_ids: str):
        self.user_ids = set(user_ids)

    async def exists(self, user_id: str) -> bool:
        return user_id in self.user_ids
