from __future__ import annotations

from typing import Any

from .base import OutboundEvent

CALL_INCOMING = "call:incoming"
CALL_ACCEPTED = "call:accepted"
CALL_CANDIDATE = "call:candidate"
CALL_ENDED = "call:ended"

END_REASON_HANGUP = "hangup"
END_REASON_DISCONNECTED = "disconnected"
END_REASON_TIMEOUT = "timeout"


def call_incoming(from_user_id: str, session_description: Any) -> OutboundEvent:
    return OutboundEvent(
        CALL_INCOMING,
        {"fromUserId": from_user_id, "sessionDescription": session_description},
    )


def call_accepted(from_user_id: str, session_description: Any) -> OutboundEvent:
    return OutboundEvent(
        CALL_ACCEPTED,
        {"fromUserId": from_user_id, "sessionDescription": session_description},
    )


def call_candidate(from_user_id: str, candidate: Any) -> OutboundEvent:
    return OutboundEvent(
        CALL_CANDIDATE,
        {"fromUserId": from_user_id, "candidate": candidate},
    )


def call_ended(from_user_id: str, reason: str = END_REASON_HANGUP) -> OutboundEvent:
    return OutboundEvent(CALL_ENDED, {"fromUserId": from_user_id, "reason": reason})
