from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hallchat.realtime.events import OutboundEvent
    from hallchat.realtime.outbox import Outbox
    from hallchat.realtime.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class RoomRouter:
    """Resolves delivery groups from the registry and enqueues deliveries.

    The hall is every announced connection; a private group is the connections
    of one user. Neither is stored, so membership cannot drift from the
    registry.
    """

    def __init__(self, registry: ConnectionRegistry, outbox: Outbox):
        self.registry = registry
        self.outbox = outbox

    def deliver_to_hall(self, event: OutboundEvent) -> int:
        targets = self.registry.announced_connections()
        for connection_id in targets:
            self.outbox.put(connection_id, event)
        logger.debug("Hall %s -> %d connection(s)", event.name, len(targets))
        return len(targets)

    def deliver_to_user(self, user_id: str, event: OutboundEvent) -> int:
        targets = self.registry.connections_for(user_id)
        if not targets:
            # Offline: the live push is dropped, the store still has the data.
            logger.debug("Dropped %s for offline user %s", event.name, user_id)
            return 0
        for connection_id in sorted(targets):
            self.outbox.put(connection_id, event)
        return len(targets)

    def deliver_to_connection(self, connection_id: str, event: OutboundEvent) -> int:
        if self.registry.user_for(connection_id) is None:
            return 0
        self.outbox.put(connection_id, event)
        return 1
