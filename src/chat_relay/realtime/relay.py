"""Socket.IO relay for direct messages.

Frontend convention:
- Socket.IO path: /socket.io (default)
- Auth: `auth.token` (JWT access token), `query.token` as fallback

Inbound events: ``sendMessage`` (acked with the stored message), ``messageSeen``
and ``typing``. Outbound events: ``message``, ``messageSeenUpdate`` and
``typing``. Only the handshake is allowed to fail loudly; every other failure
is logged and dropped.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, TypeVar
from urllib.parse import parse_qs

import pydantic
import socketio
from socketio import exceptions as socketio_exceptions

from chat_relay.core.database import utcnow
from chat_relay.core.interfaces import MessageInterface, UserInterface
from chat_relay.exceptions import AuthenticationError, NotFoundError, PersistenceError
from chat_relay.services.authenticator import SessionAuthenticator
from .events import (
    MESSAGE,
    MESSAGE_SEEN,
    MESSAGE_SEEN_UPDATE,
    SEND_MESSAGE,
    TYPING,
    MessageSeenPayload,
    SendMessagePayload,
    TypingPayload,
    build_message_payload,
    build_seen_payload,
    build_typing_payload,
)
from .presence import PresenceRegistry

T = TypeVar("T")


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass
class RelayConnection:
    sid: str
    user_id: str | None = None
    username: str | None = None
    state: ConnectionState = ConnectionState.CONNECTING
    # one event at a time per connection
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


def extract_token(environ: dict[str, Any], auth: Any | None) -> str | None:
    """Extract JWT token from the Socket.IO handshake.

    `auth: { token }` is what the web client sends; the query string is a
    fallback. Handles python-socketio environ shapes across ASGI/WSGI servers.
    """
    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token:
            return auth_token

    scope: Any = environ
    if isinstance(environ, dict) and "asgi.scope" in environ:
        inner = environ.get("asgi.scope")
        if isinstance(inner, dict):
            scope = inner

    query_string: str | bytes = ""
    if isinstance(scope, dict) and "query_string" in scope:
        query_string = scope.get("query_string", b"")
    elif isinstance(scope, dict) and "QUERY_STRING" in scope:
        query_string = scope.get("QUERY_STRING", "")

    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")

    token = parse_qs(str(query_string)).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token

    return None


class ChatRelay:
    """
    Owns the lifecycle of every realtime connection.

    Attributes:
        sio: Socket.IO server the handlers are registered on
        authenticator: Resolves handshake tokens to users
        presence: user id -> live connection
        user_gateway: User lookups (receiver existence)
        message_gateway: Message persistence
        logger: Logger instance
        store_timeout: Upper bound in seconds for each store call
    """

    AUTH_ERROR = "Authentication error"

    def __init__(
            self,
            sio: socketio.AsyncServer,
            authenticator: SessionAuthenticator,
            presence: PresenceRegistry,
            user_gateway: UserInterface,
            message_gateway: MessageInterface,
            logger: logging.Logger,
            store_timeout: float = 10.0
    ):
        self.sio = sio
        self.authenticator = authenticator
        self.presence = presence
        self.user_gateway = user_gateway
        self.message_gateway = message_gateway
        self.logger = logger
        self.store_timeout = store_timeout

        self._connections: dict[str, RelayConnection] = {}
        self._register_handlers()

    def _register_handlers(self):
        self.sio.on("connect", self.connect)
        self.sio.on("disconnect", self.disconnect)
        self.sio.on(SEND_MESSAGE, self.send_message)
        self.sio.on(MESSAGE_SEEN, self.message_seen)
        self.sio.on(TYPING, self.typing)

    def get_connection(self, sid: str) -> RelayConnection | None:
        return self._connections.get(sid)

    async def _store(self, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.store_timeout)
        except asyncio.TimeoutError as e:
            raise PersistenceError("Store call timed out") from e

    def _active_connection(self, sid: str, event: str) -> RelayConnection | None:
        conn = self._connections.get(sid)
        if conn is None or conn.state is not ConnectionState.ACTIVE:
            self.logger.debug("Ignoring %s from inactive connection %s", event, sid)
            return None
        return conn

    async def connect(self, sid: str, environ: dict[str, Any], auth: Any | None = None):
        conn = RelayConnection(sid=sid)
        token = extract_token(environ, auth)

        try:
            user = await self._store(self.authenticator.authenticate(token))
        except AuthenticationError as exc:
            conn.state = ConnectionState.CLOSED
            self.logger.warning("Rejected connection %s: %s", sid, exc.message)
            raise socketio_exceptions.ConnectionRefusedError(self.AUTH_ERROR) from exc
        except PersistenceError as exc:
            conn.state = ConnectionState.CLOSED
            self.logger.error("Rejected connection %s, store unavailable: %s", sid, exc.message)
            raise socketio_exceptions.ConnectionRefusedError(self.AUTH_ERROR) from exc
        except Exception as exc:
            conn.state = ConnectionState.CLOSED
            self.logger.exception("Socket.IO connect error")
            raise socketio_exceptions.ConnectionRefusedError(self.AUTH_ERROR) from exc

        conn.user_id = user.id
        conn.username = user.username
        conn.state = ConnectionState.AUTHENTICATED

        await self.presence.register(user.id, sid)
        self._connections[sid] = conn
        conn.state = ConnectionState.ACTIVE

        self.logger.info("New client connected: %s (sid %s)", user.username, sid)

    async def disconnect(self, sid: str, reason: Any = None):
        conn = self._connections.pop(sid, None)
        if conn is None:
            return

        conn.state = ConnectionState.CLOSED
        try:
            await self.presence.remove(conn.user_id, sid)
        except Exception:
            self.logger.exception("Failed to clear presence for user %s", conn.user_id)

        self.logger.info("Client disconnected: %s (sid %s, reason %s)", conn.username, sid, reason)

    async def send_message(self, sid: str, data: Any = None) -> dict[str, Any] | None:
        """
        Persist a message and fan it out to the sender and the receiver.

        Returns:
            The stored message record (becomes the Socket.IO ack), or None
            when nothing was stored
        """
        conn = self._active_connection(sid, SEND_MESSAGE)
        if conn is None:
            return None

        async with conn.lock:
            if conn.state is not ConnectionState.ACTIVE:
                return None

            try:
                payload = SendMessagePayload.model_validate(data)
            except pydantic.ValidationError as e:
                self.logger.warning("Invalid sendMessage payload from %s: %s", conn.user_id, e.errors())
                return None

            if not payload.content.strip():
                self.logger.warning("Empty message from %s dropped", conn.user_id)
                return None

            try:
                receiver = await self._store(self.user_gateway.get_user_by_id(payload.receiver))
                if receiver is None:
                    raise NotFoundError(f"Receiver {payload.receiver} not found")

                message = await self._store(self.message_gateway.create_message(
                    sender_id=conn.user_id,
                    receiver_id=receiver.id,
                    content=payload.content,
                    timestamp=utcnow()
                ))
            except NotFoundError as e:
                self.logger.warning("sendMessage from %s failed: %s", conn.user_id, e.message)
                return None
            except PersistenceError as e:
                self.logger.error("sendMessage from %s failed: %s", conn.user_id, e.message)
                return None

            record = build_message_payload(message)

            try:
                await self.sio.emit(MESSAGE, record, to=sid)
                receiver_sid = await self.presence.lookup(receiver.id)
                if receiver_sid and receiver_sid != sid:
                    await self.sio.emit(MESSAGE, record, to=receiver_sid)
            except Exception:
                self.logger.exception("Error delivering message %s", message.id)

            self.logger.debug("Message %s relayed from %s to %s", message.id, conn.user_id, receiver.id)
            return record

    async def message_seen(self, sid: str, data: Any = None) -> None:
        """
        Mark a message seen and tell its sender. Best effort: never raises.
        """
        conn = self._active_connection(sid, MESSAGE_SEEN)
        if conn is None:
            return

        async with conn.lock:
            if conn.state is not ConnectionState.ACTIVE:
                return

            if isinstance(data, str):
                data = {"messageId": data}

            try:
                payload = MessageSeenPayload.model_validate(data)
            except pydantic.ValidationError:
                self.logger.error("Invalid messageId received from %s", conn.user_id)
                return

            message_id = payload.message_id
            try:
                message = await self._store(self.message_gateway.get_message_by_id(message_id))
                if message is None:
                    self.logger.error("Message with id %s not found", message_id)
                    return

                if not message.sender_id:
                    self.logger.error("Message with id %s has no sender", message_id)
                    return

                if message.receiver_id != conn.user_id:
                    self.logger.warning(
                        "User %s tried to mark message %s addressed to %s as seen",
                        conn.user_id, message_id, message.receiver_id
                    )
                    return

                await self._store(self.message_gateway.mark_as_seen(message_id))
            except PersistenceError as e:
                self.logger.error("messageSeen for %s failed: %s", message_id, e.message)
                return

            self.logger.info("Message %s marked as seen", message_id)

            try:
                sender_sid = await self.presence.lookup(message.sender_id)
                if sender_sid:
                    await self.sio.emit(MESSAGE_SEEN_UPDATE, build_seen_payload(message_id, True), to=sender_sid)
                else:
                    self.logger.info("Sender of message %s is offline, seen update not delivered", message_id)
            except Exception:
                self.logger.exception("Error delivering seen update for message %s", message_id)

    async def typing(self, sid: str, data: Any = None) -> None:
        """
        Forward a typing indicator to the receiver if connected. Nothing is stored.
        """
        conn = self._active_connection(sid, TYPING)
        if conn is None:
            return

        async with conn.lock:
            if conn.state is not ConnectionState.ACTIVE:
                return

            try:
                payload = TypingPayload.model_validate(data)
            except pydantic.ValidationError:
                self.logger.debug("Invalid typing payload from %s", conn.user_id)
                return

            try:
                receiver_sid = await self.presence.lookup(payload.receiver_id)
                if receiver_sid:
                    await self.sio.emit(
                        TYPING,
                        build_typing_payload(conn.user_id, payload.is_typing),
                        to=receiver_sid
                    )
            except Exception:
                self.logger.exception("Error relaying typing from %s", conn.user_id)
