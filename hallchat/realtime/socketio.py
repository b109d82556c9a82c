"""Socket.IO server for the chat frontends.

Frontend convention:
- URL base: ws://<host>:8000
- Socket.IO path: settings.SOCKETIO_PATH (default ``/ws/chat/``)
- Auth: ``query.token`` or ``auth.token`` (JWT access token). The connection
  is refused without a valid token.
- After connecting, the client emits ``announce``; the announced user id must
  be the token's user.

Events use ``noun:verb`` names (``message:submit``, ``call:initiate``...).
Python method names cannot hold a colon, so ``ChatNamespace`` maps
``call:initiate`` to ``on_call_initiate``. Every handler returns an ack dict:
``{"ok": True, ...}`` or the ``RealtimeError.as_ack()`` shape.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING
from typing import Any
from urllib.parse import parse_qs

import socketio
from channels.db import database_sync_to_async
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError
from socketio import exceptions as sio_exceptions

from hallchat.realtime.exceptions import IdentityConflict
from hallchat.realtime.exceptions import InvalidPayload
from hallchat.realtime.exceptions import NotAnnounced
from hallchat.realtime.exceptions import RealtimeError

if TYPE_CHECKING:
    from collections.abc import Awaitable
    from collections.abc import Callable

    from hallchat.realtime.hub import RealtimeHub

logger = logging.getLogger(__name__)

SERVER_ERROR_ACK = {
    "ok": False,
    "error": "server_error",
    "message": "Unexpected server error",
    "retryable": True,
}


def _require_dict(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        msg = "Event payload must be an object"
        raise InvalidPayload(msg)
    return data


def _require_field(data: dict[str, Any], name: str) -> Any:
    value = data.get(name)
    if value is None or value == "":
        msg = f"Missing field: {name}"
        raise InvalidPayload(msg)
    return value


def _extract_user_id(data: Any) -> str:
    # `announce` accepts a bare id or `{userId}`.
    if isinstance(data, dict):
        data = data.get("userId")
    if isinstance(data, int) and not isinstance(data, bool):
        data = str(data)
    if not isinstance(data, str) or not data.strip():
        msg = "announce requires a user id"
        raise InvalidPayload(msg)
    return data.strip()


def _extract_token(environ: dict[str, Any], auth: Any | None) -> str | None:
    """Read the JWT from the handshake query string, falling back to ``auth``."""

    scope: Any = environ
    if isinstance(environ, dict) and isinstance(environ.get("asgi.scope"), dict):
        scope = environ["asgi.scope"]

    query_string: str | bytes = ""
    if isinstance(scope, dict):
        query_string = scope.get("query_string", scope.get("QUERY_STRING", ""))
    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")

    token = parse_qs(str(query_string)).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token

    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token:
            return auth_token
    return None


@database_sync_to_async
def user_id_from_access_token(token: str) -> str:
    jwt_auth = JWTAuthentication()
    validated = jwt_auth.get_validated_token(token)
    return str(jwt_auth.get_user(validated).pk)


class ChatNamespace(socketio.AsyncNamespace):
    def __init__(
        self,
        hub: RealtimeHub,
        namespace: str = "/",
        *,
        authenticate: Callable[[str], Awaitable[str]] = user_id_from_access_token,
    ):
        super().__init__(namespace)
        self.hub = hub
        self.authenticate = authenticate
        # sid -> user id proven by the handshake token
        self._token_users: dict[str, str] = {}
        self._sweeper_started = False
        hub.bind_transport(self)

    async def trigger_event(self, event: str, *args):
        return await super().trigger_event(event.replace(":", "_"), *args)

    async def deliver(self, connection_id: str, event: str, payload: dict) -> None:
        await self.emit(event, payload, to=connection_id)

    def _user(self, sid: str) -> str:
        user_id = self.hub.registry.user_for(sid)
        if user_id is None:
            raise NotAnnounced
        return user_id

    async def _run(self, sid: str, event: str, operation) -> dict[str, Any]:
        """Run one unit of work and turn its outcome into an ack."""

        try:
            result = operation()
            if inspect.isawaitable(result):
                result = await result
        except RealtimeError as exc:
            logger.info("Rejected %s from %s: %s", event, sid, exc.code)
            ack = exc.as_ack()
        except Exception:  # noqa: BLE001 - one bad event must not kill the socket
            logger.exception("Socket.IO %s handler error", event)
            ack = dict(SERVER_ERROR_ACK)
        else:
            ack = {"ok": True, **(result or {})}
        await self.hub.flush()
        return ack

    async def on_connect(self, sid: str, environ: dict[str, Any], auth: Any = None):
        token = _extract_token(environ, auth)
        if not token:
            msg = "unauthorized"
            raise sio_exceptions.ConnectionRefusedError(msg)

        try:
            user_id = await self.authenticate(token)
        except TokenError as exc:
            msg = "jwt_expired" if "expired" in str(exc).lower() else "unauthorized"
            raise sio_exceptions.ConnectionRefusedError(msg) from exc
        except AuthenticationFailed as exc:  # bad token, unknown or inactive user
            msg = "unauthorized"
            raise sio_exceptions.ConnectionRefusedError(msg) from exc
        except Exception as exc:
            logger.exception("Socket.IO connect error")
            msg = "server_error"
            raise sio_exceptions.ConnectionRefusedError(msg) from exc

        self._token_users[sid] = user_id
        self.hub.registry.attach(sid)
        self._ensure_sweeper()
        logger.debug("Socket connected: %s (token user=%s)", sid, user_id)

    async def on_disconnect(self, sid: str, reason: Any = None):
        self._token_users.pop(sid, None)
        detached = self.hub.disconnect(sid)
        logger.debug("Socket disconnected: %s (user=%s)", sid, detached.user_id)
        await self.hub.flush()

    async def on_announce(self, sid: str, data: Any = None):
        def operation():
            token_user = self._token_users.get(sid)
            if token_user is None:
                msg = "Connection is not authenticated"
                raise IdentityConflict(msg)
            user_id = token_user if data is None else _extract_user_id(data)
            if user_id != token_user:
                msg = f"Token belongs to user {token_user}, not {user_id}"
                raise IdentityConflict(msg)
            self.hub.registry.announce(sid, user_id)
            logger.info("User %s joined with socket %s", user_id, sid)
            return {"userId": user_id}

        return await self._run(sid, "announce", operation)

    async def on_message_submit(self, sid: str, data: Any = None):
        async def operation():
            owner_id = self._user(sid)
            body = _require_dict(data)
            message = await self.hub.distributor.submit(
                body.get("kind"),
                owner_id,
                body.get("receiverId"),
                body.get("payload"),
            )
            return {"id": message.id}

        return await self._run(sid, "message:submit", operation)

    async def on_call_initiate(self, sid: str, data: Any = None):
        def operation():
            body = _require_dict(data)
            self.hub.relay.initiate(
                self._user(sid),
                str(_require_field(body, "calleeId")),
                _require_field(body, "sessionDescription"),
            )

        return await self._run(sid, "call:initiate", operation)

    async def on_call_accept(self, sid: str, data: Any = None):
        def operation():
            body = _require_dict(data)
            self.hub.relay.accept(
                self._user(sid),
                str(_require_field(body, "callerId")),
                _require_field(body, "sessionDescription"),
            )

        return await self._run(sid, "call:accept", operation)

    async def on_call_candidate(self, sid: str, data: Any = None):
        def operation():
            body = _require_dict(data)
            delivered = self.hub.relay.relay_candidate(
                self._user(sid),
                str(_require_field(body, "toId")),
                _require_field(body, "candidate"),
            )
            return {"buffered": not delivered}

        return await self._run(sid, "call:candidate", operation)

    async def on_call_end(self, sid: str, data: Any = None):
        def operation():
            body = _require_dict(data)
            self.hub.relay.end(self._user(sid), str(_require_field(body, "toId")))

        return await self._run(sid, "call:end", operation)

    async def on_private_typing(self, sid: str, data: Any = None):
        def operation():
            body = _require_dict(data)
            self.hub.notify_typing(
                self._user(sid),
                body.get("receiverId"),
                is_typing=bool(body.get("isTyping")),
            )

        return await self._run(sid, "private:typing", operation)

    async def on_presence_list(self, sid: str, data: Any = None):
        def operation():
            self._user(sid)
            return {"users": self.hub.registry.online_users()}

        return await self._run(sid, "presence:list", operation)

    def _ensure_sweeper(self) -> None:
        if self._sweeper_started or self.hub.relay.ring_timeout <= 0:
            return
        if self.server is None:
            return
        self._sweeper_started = True
        self.server.start_background_task(self._sweep_unanswered_calls)

    async def _sweep_unanswered_calls(self) -> None:
        from django.conf import settings  # noqa: PLC0415

        interval = settings.CALL_SWEEP_INTERVAL_SECONDS
        while True:
            await self.server.sleep(interval)
            try:
                if self.hub.relay.expire_unanswered():
                    await self.hub.flush()
            except Exception:  # noqa: BLE001
                logger.exception("Unanswered call sweep failed")


def create_socket_server(hub: RealtimeHub, **server_kwargs) -> socketio.AsyncServer:
    from django.conf import settings  # noqa: PLC0415

    options = {
        "async_mode": "asgi",
        "cors_allowed_origins": settings.SOCKETIO_CORS_ALLOWED_ORIGINS,
        "logger": False,
        "engineio_logger": False,
    }
    options.update(server_kwargs)
    sio = socketio.AsyncServer(**options)
    sio.register_namespace(ChatNamespace(hub))
    return sio
