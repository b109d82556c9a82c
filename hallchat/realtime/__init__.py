"""Realtime delivery and call signaling.

Tracks reachable users and their connections, fans persisted messages out to
the hall or to the two participants of a private conversation, and relays
call negotiation between two users. Transport specifics live in
``hallchat.realtime.socketio``; everything else is transport-agnostic.
"""
