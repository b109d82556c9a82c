from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from hallchat.realtime.exceptions import IdentityConflict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Detached:
    user_id: str | None
    user_unreachable: bool


class ConnectionRegistry:
    """Tracks live connections and the user each one announced.

    Keeps a forward map ``user_id -> {connection_id}`` and the inverse
    ``connection_id -> user_id`` so teardown on disconnect is O(1). Both maps
    are only touched under ``self._lock``.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        # dict preserves attach order, which is the hall iteration order.
        self._owners: dict[str, str | None] = {}
        self._by_user: dict[str, set[str]] = {}

    def attach(self, connection_id: str) -> None:
        with self._lock:
            self._owners.setdefault(connection_id, None)

    def announce(self, connection_id: str, user_id: str) -> bool:
        """Bind ``connection_id`` to ``user_id``.

        Returns True when the user went from unreachable to reachable.
        """

        with self._lock:
            current = self._owners.get(connection_id)
            if current is not None:
                if current == user_id:
                    return False
                msg = f"Connection {connection_id} already belongs to {current}"
                raise IdentityConflict(msg)

            self._owners[connection_id] = user_id
            connections = self._by_user.setdefault(user_id, set())
            became_reachable = not connections
            connections.add(connection_id)

        logger.debug("Connection %s announced as %s", connection_id, user_id)
        return became_reachable

    def detach(self, connection_id: str) -> Detached:
        with self._lock:
            if connection_id not in self._owners:
                return Detached(user_id=None, user_unreachable=False)

            user_id = self._owners.pop(connection_id)
            if user_id is None:
                return Detached(user_id=None, user_unreachable=False)

            connections = self._by_user.get(user_id, set())
            connections.discard(connection_id)
            unreachable = not connections
            if unreachable:
                self._by_user.pop(user_id, None)

        if unreachable:
            logger.info("User %s is no longer reachable", user_id)
        return Detached(user_id=user_id, user_unreachable=unreachable)

    def connections_for(self, user_id: str) -> frozenset[str]:
        with self._lock:
            return frozenset(self._by_user.get(user_id, ()))

    def is_reachable(self, user_id: str) -> bool:
        with self._lock:
            return bool(self._by_user.get(user_id))

    def user_for(self, connection_id: str) -> str | None:
        with self._lock:
            return self._owners.get(connection_id)

    def announced_connections(self) -> list[str]:
        with self._lock:
            return [cid for cid, uid in self._owners.items() if uid is not None]

    def online_users(self) -> list[str]:
        with self._lock:
            return sorted(self._by_user)

    def stats(self) -> dict[str, int]:
        with self._lock:
            announced = sum(len(conns) for conns in self._by_user.values())
            return {
                "connections": len(self._owners),
                "announced_connections": announced,
                "online_users": len(self._by_user),
            }
