from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING
from typing import Any
from typing import Protocol

from hallchat.realtime.distributor import MessageDistributor
from hallchat.realtime.events.messages import private_typing
from hallchat.realtime.exceptions import InvalidReceiver
from hallchat.realtime.outbox import Outbox
from hallchat.realtime.registry import ConnectionRegistry
from hallchat.realtime.router import RoomRouter
from hallchat.realtime.signaling import CallSignalingRelay

if TYPE_CHECKING:
    from hallchat.realtime.payloads import Message
    from hallchat.realtime.ports import MessageStore
    from hallchat.realtime.ports import UserDirectory
    from hallchat.realtime.registry import Detached

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def deliver(self, connection_id: str, event: str, payload: dict) -> None: ...


class RealtimeHub:
    """Owns one instance of each realtime component.

    Built once per process (see ``RealtimeConfig.ready``) and handed to the
    socket namespace and the REST views; tests build their own.
    """

    def __init__(
        self,
        store: MessageStore,
        directory: UserDirectory,
        *,
        ring_timeout: float = 0,
    ):
        self.registry = ConnectionRegistry()
        self.outbox = Outbox()
        self.router = RoomRouter(self.registry, self.outbox)
        self.distributor = MessageDistributor(self.router, store, directory)
        self.relay = CallSignalingRelay(
            self.registry, self.router, ring_timeout=ring_timeout
        )
        self.transport: Transport | None = None
        self._flush_lock: asyncio.Lock | None = None

    @classmethod
    def from_settings(cls) -> RealtimeHub:
        from django.conf import settings  # noqa: PLC0415

        from hallchat.messages.store import DjangoMessageStore  # noqa: PLC0415
        from hallchat.messages.store import DjangoUserDirectory  # noqa: PLC0415

        return cls(
            DjangoMessageStore(),
            DjangoUserDirectory(),
            ring_timeout=settings.CALL_RING_TIMEOUT_SECONDS,
        )

    def bind_transport(self, transport: Transport) -> None:
        self.transport = transport

    def disconnect(self, connection_id: str) -> Detached:
        detached = self.registry.detach(connection_id)
        if detached.user_unreachable and detached.user_id is not None:
            self.relay.drop_user(detached.user_id)
        return detached

    async def submit_message(
        self,
        kind: Any,
        owner_id: str,
        receiver_id: str | None,
        payload: Any,
    ) -> Message:
        message = await self.distributor.submit(kind, owner_id, receiver_id, payload)
        await self.flush()
        return message

    def notify_typing(self, sender_id: str, receiver_id: Any, *, is_typing: bool):
        if not receiver_id or str(receiver_id) == sender_id:
            raise InvalidReceiver
        return self.router.deliver_to_user(
            str(receiver_id), private_typing(sender_id, is_typing=is_typing)
        )

    def stats(self) -> dict[str, int]:
        return {**self.registry.stats(), "active_calls": self.relay.active_count()}

    async def flush(self) -> int:
        """Hand every pending delivery to the transport, in FIFO order."""

        if self._flush_lock is None:
            self._flush_lock = asyncio.Lock()
        sent = 0
        async with self._flush_lock:
            deliveries = self.outbox.drain()
            if self.transport is None:
                if deliveries:
                    logger.debug("No transport bound; dropped %d", len(deliveries))
                return 0
            for delivery in deliveries:
                # A failed send affects only its own connection.
                try:
                    await self.transport.deliver(
                        delivery.connection_id,
                        delivery.event.name,
                        delivery.event.payload,
                    )
                except Exception:  # noqa: BLE001
                    logger.exception(
                        "Delivering %s to %s failed",
                        delivery.event.name,
                        delivery.connection_id,
                    )
                else:
                    sent += 1
        return sent
