"""Outbound event builders.

These modules only *build* typed events (name + payload). Delivery is the
router's job; nothing here touches connections or the socket server.
"""

from .base import OutboundEvent

__all__ = ["OutboundEvent"]
