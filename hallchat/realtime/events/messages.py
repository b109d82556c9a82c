from __future__ import annotations

from typing import TYPE_CHECKING

from .base import OutboundEvent

if TYPE_CHECKING:  # import for type checking only
    from hallchat.realtime.payloads import Message

MESSAGE_NEW = "message:new"
PRIVATE_TYPING = "private:typing"


def message_new(message: Message) -> OutboundEvent:
    """Full persisted message, store id included, so clients can dedupe."""

    return OutboundEvent(MESSAGE_NEW, message.to_wire())


def private_typing(sender_id: str, *, is_typing: bool) -> OutboundEvent:
    return OutboundEvent(
        PRIVATE_TYPING,
        {"senderId": sender_id, "isTyping": bool(is_typing)},
    )
