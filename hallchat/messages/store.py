"""Django ORM implementation of the realtime message store and user directory.

The realtime core only ever calls ``append`` and ``query``; the REST views
reuse ``messages_matching`` and ``conversations_for`` for history.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from channels.db import database_sync_to_async
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.db import IntegrityError
from django.db.models import Q

from hallchat.realtime.exceptions import InvalidPayload
from hallchat.realtime.exceptions import StoreUnavailable
from hallchat.realtime.payloads import MessageKind
from hallchat.realtime.payloads import TextPayload

from .models import Message

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from hallchat.realtime.payloads import Message as RealtimeMessage
    from hallchat.realtime.payloads import MessageDraft
    from hallchat.realtime.ports import MessageFilter

logger = logging.getLogger(__name__)


def as_pk(value: Any, label: str = "id") -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        msg = f"Invalid {label}: {value!r}"
        raise InvalidPayload(msg) from None


def draft_fields(draft: MessageDraft) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "kind": draft.kind.value,
        "owner_id": as_pk(draft.owner_id, "owner id"),
        "receiver_id": as_pk(draft.receiver_id, "receiver id")
        if draft.receiver_id
        else None,
        "payload_type": draft.payload.type,
    }
    if isinstance(draft.payload, TextPayload):
        fields["text"] = draft.payload.text
    else:
        fields["media_ref"] = draft.payload.ref
    return fields


def messages_matching(message_filter: MessageFilter) -> QuerySet[Message]:
    qs = Message.objects.filter(kind=message_filter.kind.value)
    if message_filter.participant_ids:
        user_a, user_b = (as_pk(uid) for uid in message_filter.participant_ids)
        qs = qs.filter(
            Q(owner_id=user_a, receiver_id=user_b)
            | Q(owner_id=user_b, receiver_id=user_a)
        )
    if message_filter.since_id:
        qs = qs.filter(pk__gt=as_pk(message_filter.since_id, "since id"))
    return qs.order_by("created_at", "id")


def conversations_for(user_id: Any) -> list[dict[str, Any]]:
    """Latest private message per conversation partner, newest first."""

    pk = as_pk(user_id)
    rows = (
        Message.objects.filter(kind=MessageKind.PRIVATE.value)
        .filter(Q(owner_id=pk) | Q(receiver_id=pk))
        .order_by("-created_at", "-id")
    )
    latest: dict[int, Message] = {}
    for row in rows.iterator():
        partner = row.receiver_id if row.owner_id == pk else row.owner_id
        latest.setdefault(partner, row)
    return [
        {"userId": str(partner), "lastMessage": row.to_realtime().to_wire()}
        for partner, row in latest.items()
    ]


class DjangoMessageStore:
    async def append(self, draft: MessageDraft) -> RealtimeMessage:
        return await self._append(draft)

    async def query(self, message_filter: MessageFilter) -> list[RealtimeMessage]:
        return await self._query(message_filter)

    @database_sync_to_async
    def _append(self, draft: MessageDraft) -> RealtimeMessage:
        fields = draft_fields(draft)
        try:
            row = Message.objects.create(**fields)
        except IntegrityError as exc:
            # Owner or receiver row is gone: a client error, not an outage.
            msg = "Unknown owner or receiver"
            raise InvalidPayload(msg) from exc
        except DatabaseError as exc:
            logger.exception("Message insert failed")
            raise StoreUnavailable from exc
        return row.to_realtime()

    @database_sync_to_async
    def _query(self, message_filter: MessageFilter) -> list[RealtimeMessage]:
        try:
            return [row.to_realtime() for row in messages_matching(message_filter)]
        except DatabaseError as exc:
            logger.exception("Message query failed")
            raise StoreUnavailable from exc


class DjangoUserDirectory:
    async def exists(self, user_id: str) -> bool:
        return await self._exists(user_id)

    @database_sync_to_async
    def _exists(self, user_id: str) -> bool:
        try:
            pk = int(user_id)
        except (TypeError, ValueError):
            return False
        return get_user_model().objects.filter(pk=pk, is_active=True).exists()
