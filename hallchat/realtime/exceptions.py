"""Errors raised by the realtime core.

Every error is reported back to the originating connection as the
acknowledgement of the event that triggered it. Only ``StoreUnavailable`` is
retryable; the rest indicate a client-side logic error.
"""

from __future__ import annotations

from typing import Any


class RealtimeError(Exception):
    code = "realtime_error"
    retryable = False
    default_message = "Realtime operation failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def as_ack(self) -> dict[str, Any]:
        return {
            "ok": False,
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


class IdentityConflict(RealtimeError):
    code = "identity_conflict"
    default_message = "Connection is already bound to another user"


class InvalidReceiver(RealtimeError):
    code = "invalid_receiver"
    default_message = "Receiver is missing or unknown"


class SelfMessage(RealtimeError):
    code = "self_message"
    default_message = "Cannot send a private message to yourself"


class StoreUnavailable(RealtimeError):
    code = "store_unavailable"
    retryable = True
    default_message = "Message store is unavailable, try again"


class CalleeUnreachable(RealtimeError):
    code = "callee_unreachable"
    default_message = "Callee is not connected"


class NoSuchSession(RealtimeError):
    code = "no_such_session"
    default_message = "No matching call session"


class CallAlreadyActive(RealtimeError):
    code = "call_already_active"
    default_message = "A call between these users is already in progress"


class SelfCall(RealtimeError):
    code = "self_call"
    default_message = "Cannot call yourself"


class InvalidPayload(RealtimeError):
    code = "invalid_payload"
    default_message = "Message text, image, or audio is required"


class NotAnnounced(RealtimeError):
    code = "not_announced"
    default_message = "Connection has not announced a user"
