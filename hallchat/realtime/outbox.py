from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hallchat.realtime.events import OutboundEvent


@dataclass(frozen=True)
class Delivery:
    connection_id: str
    event: OutboundEvent


class Outbox:
    """Single FIFO of pending deliveries.

    Producers (router, relay) only enqueue; the connection layer drains. One
    queue for every connection keeps per-connection issue order intact.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: deque[Delivery] = deque()

    def put(self, connection_id: str, event: OutboundEvent) -> None:
        with self._lock:
            self._pending.append(Delivery(connection_id, event))

    def drain(self) -> list[Delivery]:
        with self._lock:
            items = list(self._pending)
            self._pending.clear()
        return items

    def __len__(self) -> int:
        return len(self._pending)
