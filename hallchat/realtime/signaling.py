"""Call negotiation relay.

One ``CallSession`` per unordered pair of users. States::

    (no session) --initiate--> OFFERED --accept--> ACTIVE
    OFFERED/ACTIVE --end / disconnect / ring timeout--> ENDED (session removed)

Network-path candidates sent while the call is still OFFERED are buffered and
flushed, in submission order, right after the answer is relayed.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from dataclasses import field
from typing import TYPE_CHECKING
from typing import Any

from hallchat.realtime.events import calls
from hallchat.realtime.exceptions import CallAlreadyActive
from hallchat.realtime.exceptions import CalleeUnreachable
from hallchat.realtime.exceptions import NoSuchSession
from hallchat.realtime.exceptions import SelfCall

if TYPE_CHECKING:
    from collections.abc import Callable

    from hallchat.realtime.registry import ConnectionRegistry
    from hallchat.realtime.router import RoomRouter

logger = logging.getLogger(__name__)


class CallState(str, enum.Enum):
    IDLE = "idle"
    OFFERED = "offered"
    ACTIVE = "active"
    ENDED = "ended"


def pair_key(user_a: str, user_b: str) -> frozenset[str]:
    return frozenset((user_a, user_b))


@dataclass
class CallSession:
    caller_id: str
    callee_id: str
    offered_at: float
    state: CallState = CallState.OFFERED
    pending_candidates: list[tuple[str, Any]] = field(default_factory=list)

    @property
    def key(self) -> frozenset[str]:
        return pair_key(self.caller_id, self.callee_id)

    def other(self, user_id: str) -> str:
        return self.callee_id if user_id == self.caller_id else self.caller_id


class CallSignalingRelay:
    def __init__(
        self,
        registry: ConnectionRegistry,
        router: RoomRouter,
        *,
        ring_timeout: float = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.registry = registry
        self.router = router
        self.ring_timeout = ring_timeout
        self.clock = clock
        self._lock = threading.RLock()
        self._sessions: dict[frozenset[str], CallSession] = {}

    def session_for(self, user_a: str, user_b: str) -> CallSession | None:
        with self._lock:
            return self._sessions.get(pair_key(user_a, user_b))

    def state_for(self, user_a: str, user_b: str) -> CallState:
        session = self.session_for(user_a, user_b)
        return session.state if session else CallState.IDLE

    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _require(self, user_a: str, user_b: str, *states: CallState) -> CallSession:
        session = self._sessions.get(pair_key(user_a, user_b))
        if session is None or session.state not in states:
            msg = f"No call between {user_a} and {user_b}"
            raise NoSuchSession(msg)
        return session

    def initiate(self, caller_id: str, callee_id: str, session_description: Any):
        if caller_id == callee_id:
            raise SelfCall
        with self._lock:
            key = pair_key(caller_id, callee_id)
            if key in self._sessions:
                raise CallAlreadyActive
            if not self.registry.is_reachable(callee_id):
                msg = f"User {callee_id} is not connected"
                raise CalleeUnreachable(msg)

            session = CallSession(
                caller_id=caller_id,
                callee_id=callee_id,
                offered_at=self.clock(),
            )
            self._sessions[key] = session
            self.router.deliver_to_user(
                callee_id, calls.call_incoming(caller_id, session_description)
            )
        logger.info("Call offer from %s to %s", caller_id, callee_id)
        return session

    def accept(self, callee_id: str, caller_id: str, session_description: Any):
        with self._lock:
            session = self._require(callee_id, caller_id, CallState.OFFERED)
            if session.callee_id != callee_id:
                msg = f"{callee_id} is not the callee of this call"
                raise NoSuchSession(msg)

            session.state = CallState.ACTIVE
            self.router.deliver_to_user(
                caller_id, calls.call_accepted(callee_id, session_description)
            )
            pending, session.pending_candidates = session.pending_candidates, []
            for to_id, candidate in pending:
                self.router.deliver_to_user(
                    to_id, calls.call_candidate(session.other(to_id), candidate)
                )
        logger.info(
            "Call %s -> %s accepted, flushed %d candidate(s)",
            caller_id,
            callee_id,
            len(pending),
        )
        return session

    def relay_candidate(self, from_id: str, to_id: str, candidate: Any) -> bool:
        """Forward a candidate; returns False when it was buffered instead."""

        with self._lock:
            session = self._require(
                from_id, to_id, CallState.OFFERED, CallState.ACTIVE
            )
            if session.state is CallState.OFFERED:
                # No answer yet; hold until accept.
                session.pending_candidates.append((to_id, candidate))
                return False
            self.router.deliver_to_user(to_id, calls.call_candidate(from_id, candidate))
            return True

    def end(self, from_id: str, to_id: str) -> CallSession:
        with self._lock:
            session = self._require(
                from_id, to_id, CallState.OFFERED, CallState.ACTIVE
            )
            self._finish(session)
            self.router.deliver_to_user(
                to_id, calls.call_ended(from_id, calls.END_REASON_HANGUP)
            )
        logger.info("Call between %s and %s ended by %s", from_id, to_id, from_id)
        return session

    def drop_user(self, user_id: str) -> list[CallSession]:
        """End every call of a user whose last connection went away."""

        with self._lock:
            dropped = [s for s in self._sessions.values() if user_id in s.key]
            for session in dropped:
                self._finish(session)
                remaining = session.other(user_id)
                self.router.deliver_to_user(
                    remaining,
                    calls.call_ended(user_id, calls.END_REASON_DISCONNECTED),
                )
        for session in dropped:
            logger.info(
                "Call between %s and %s ended: %s disconnected",
                session.caller_id,
                session.callee_id,
                user_id,
            )
        return dropped

    def expire_unanswered(self) -> list[CallSession]:
        """End OFFERED calls older than ``ring_timeout`` seconds."""

        if self.ring_timeout <= 0:
            return []
        now = self.clock()
        with self._lock:
            expired = [
                s
                for s in self._sessions.values()
                if s.state is CallState.OFFERED
                and now - s.offered_at >= self.ring_timeout
            ]
            for session in expired:
                self._finish(session)
                self.router.deliver_to_user(
                    session.caller_id,
                    calls.call_ended(session.callee_id, calls.END_REASON_TIMEOUT),
                )
                self.router.deliver_to_user(
                    session.callee_id,
                    calls.call_ended(session.caller_id, calls.END_REASON_TIMEOUT),
                )
        for session in expired:
            logger.info(
                "Call %s -> %s unanswered after %ss",
                session.caller_id,
                session.callee_id,
                self.ring_timeout,
            )
        return expired

    def _finish(self, session: CallSession) -> None:
        session.state = CallState.ENDED
        session.pending_candidates.clear()
        self._sessions.pop(session.key, None)
