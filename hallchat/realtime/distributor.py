from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from hallchat.realtime.events.messages import message_new
from hallchat.realtime.exceptions import InvalidPayload
from hallchat.realtime.exceptions import InvalidReceiver
from hallchat.realtime.exceptions import RealtimeError
from hallchat.realtime.exceptions import SelfMessage
from hallchat.realtime.exceptions import StoreUnavailable
from hallchat.realtime.payloads import MessageDraft
from hallchat.realtime.payloads import MessageKind
from hallchat.realtime.payloads import parse_payload

if TYPE_CHECKING:
    from hallchat.realtime.payloads import Message
    from hallchat.realtime.ports import MessageStore
    from hallchat.realtime.ports import UserDirectory
    from hallchat.realtime.router import RoomRouter

logger = logging.getLogger(__name__)


def _parse_kind(kind: Any) -> MessageKind:
    try:
        return MessageKind(kind)
    except ValueError:
        msg = f"Unknown message kind: {kind!r}"
        raise InvalidPayload(msg) from None


class MessageDistributor:
    """Validate, persist, then broadcast a newly submitted message.

    Persistence always completes before anything is delivered: a crash in
    between loses only the live push, never the message, and no client can see
    a message that a concurrent history query would not return.
    """

    def __init__(
        self,
        router: RoomRouter,
        store: MessageStore,
        directory: UserDirectory,
    ):
        self.router = router
        self.store = store
        self.directory = directory

    async def validate(
        self,
        kind: Any,
        owner_id: str,
        receiver_id: str | None,
        payload: Any,
    ) -> MessageDraft:
        message_kind = _parse_kind(kind)
        body = parse_payload(payload)
        if not await self.directory.exists(owner_id):
            msg = f"Unknown owner {owner_id}"
            raise InvalidPayload(msg)

        if message_kind is MessageKind.PUBLIC:
            if receiver_id:
                msg = "Public messages do not take a receiver"
                raise InvalidReceiver(msg)
            return MessageDraft(kind=message_kind, owner_id=owner_id, payload=body)

        if not receiver_id:
            msg = "Receiver ID is required"
            raise InvalidReceiver(msg)
        receiver_id = str(receiver_id)
        if receiver_id == owner_id:
            raise SelfMessage
        if not await self.directory.exists(receiver_id):
            msg = f"Receiver {receiver_id} not found"
            raise InvalidReceiver(msg)
        return MessageDraft(
            kind=message_kind,
            owner_id=owner_id,
            payload=body,
            receiver_id=receiver_id,
        )

    async def submit(
        self,
        kind: Any,
        owner_id: str,
        receiver_id: str | None,
        payload: Any,
    ) -> Message:
        draft = await self.validate(kind, owner_id, receiver_id, payload)

        try:
            message = await self.store.append(draft)
        except RealtimeError:
            raise
        except Exception as exc:  # noqa: BLE001 - any store failure is retryable
            logger.exception("Persisting message from %s failed", owner_id)
            raise StoreUnavailable from exc

        self.broadcast(message)
        return message

    def broadcast(self, message: Message) -> int:
        event = message_new(message)
        if message.kind is MessageKind.PUBLIC:
            return self.router.deliver_to_hall(event)
        # Owner too, so the sender's other devices see the message land.
        delivered = self.router.deliver_to_user(message.receiver_id, event)
        delivered += self.router.deliver_to_user(message.owner_id, event)
        return delivered
