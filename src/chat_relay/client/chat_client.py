from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
import socketio
from socketio import exceptions as socketio_exceptions

from chat_relay.realtime.events import (
    MESSAGE,
    MESSAGE_SEEN,
    MESSAGE_SEEN_UPDATE,
    SEND_MESSAGE,
    TYPING,
)


class ChatClient:
    """
    Headless chat client mirroring what the web UI does.

    Keeps the user list, the open conversation and a typing flag in sync
    with the server through HTTP (history, users, profile) and the Socket.IO
    relay (send, typing, seen receipts).

    Attributes:
        base_url: Server root, e.g. http://localhost:5000
        token: Access token from /login or /signup
        user_id: ID of the logged in user
        users: Everyone except the current user
        filtered_users: `users` narrowed by the last search term
        selected_user_id: Conversation partner, None when no chat is open
        messages: Messages of the open conversation, oldest first
        is_typing: Whether the partner is typing
        draft: Text being composed
        error: Last user-visible error, empty when none
    """

    TYPING_IDLE_SECONDS = 2.0

    def __init__(
            self,
            base_url: str,
            token: str,
            user_id: str,
            http: httpx.AsyncClient | None = None,
            sio: socketio.AsyncClient | None = None,
            logger: logging.Logger | None = None
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.user_id = user_id
        self.http = http or httpx.AsyncClient(base_url=self.base_url)
        self.sio = sio or socketio.AsyncClient()
        self.logger = logger or logging.getLogger(__name__)

        self.users: list[dict[str, Any]] = []
        self.filtered_users: list[dict[str, Any]] = []
        self.search_term = ""
        self.selected_user_id: str | None = None
        self.messages: list[dict[str, Any]] = []
        self.is_typing = False
        self.draft = ""
        self.error = ""

        self._typing_timer: asyncio.TimerHandle | None = None

        self.sio.on(MESSAGE, self.on_message)
        self.sio.on(TYPING, self.on_typing)
        self.sio.on(MESSAGE_SEEN_UPDATE, self.on_seen_update)

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    async def connect(self):
        await self.sio.connect(self.base_url, auth={"token": self.token})

    async def close(self):
        self._cancel_typing_timer()
        if self.sio.connected:
            await self.sio.disconnect()
        await self.http.aclose()

    # HTTP

    async def fetch_users(self) -> list[dict[str, Any]]:
        try:
            response = await self.http.get("/users", headers=self.headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.logger.error("Error fetching users: %s", e)
            return self.users

        self.users = [u for u in response.json() if u["id"] != self.user_id]
        self.search(self.search_term)
        return self.users

    def search(self, term: str) -> list[dict[str, Any]]:
        self.search_term = term.lower()
        self.filtered_users = [
            u for u in self.users if self.search_term in u["username"].lower()
        ]
        return self.filtered_users

    async def select_user(self, user_id: str | None):
        """Open a conversation. History is always fetched fresh."""
        self.selected_user_id = user_id
        self.is_typing = False
        self.messages = []
        if user_id is None:
            return

        try:
            response = await self.http.get(f"/messages/{user_id}", headers=self.headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.logger.error("Error fetching messages: %s", e)
            return

        # the partner may have changed while the request was in flight
        if self.selected_user_id == user_id:
            self.messages = []
            for message in response.json():
                self.add_message(message)

    async def fetch_profile(self) -> dict[str, Any] | None:
        self.error = ""
        try:
            response = await self.http.get(f"/users/{self.user_id}", headers=self.headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.logger.error("Error fetching user data: %s", e)
            self.error = "Failed to fetch user data. Please try again."
            return None
        return response.json()

    async def update_profile(self, **fields: Any) -> dict[str, Any] | None:
        self.error = ""
        try:
            response = await self.http.put(f"/users/{self.user_id}", json=fields, headers=self.headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.logger.error("Error updating profile: %s", e)
            self.error = "Failed to update profile. Please try again."
            return None
        return response.json()

    # realtime, outbound

    async def send_message(self, text: str | None = None) -> dict[str, Any] | None:
        """
        Send `text` (or the draft) to the open conversation.
        Returns:
            The stored message acked by the server, None if nothing was sent
        """
        content = self.draft if text is None else text
        if not content.strip() or self.selected_user_id is None:
            return None

        self.draft = ""
        try:
            ack = await self.sio.call(
                SEND_MESSAGE,
                {"content": content, "receiver": self.selected_user_id}
            )
        except socketio_exceptions.SocketIOError as e:
            self.logger.error("Error sending message: %s", e)
            return None

        if not ack:
            return None
        self.on_message(ack)
        return ack

    async def update_draft(self, text: str):
        """Update the draft and signal typing, cleared after a short idle period."""
        self.draft = text
        if self.selected_user_id is None:
            return

        receiver_id = self.selected_user_id
        await self.sio.emit(TYPING, {"receiverId": receiver_id, "isTyping": True})

        self._cancel_typing_timer()
        loop = asyncio.get_running_loop()
        self._typing_timer = loop.call_later(
            self.TYPING_IDLE_SECONDS,
            lambda: asyncio.ensure_future(self._stop_typing(receiver_id))
        )

    async def _stop_typing(self, receiver_id: str):
        self._typing_timer = None
        if self.sio.connected:
            await self.sio.emit(TYPING, {"receiverId": receiver_id, "isTyping": False})

    def _cancel_typing_timer(self):
        if self._typing_timer is not None:
            self._typing_timer.cancel()
            self._typing_timer = None

    async def mark_seen(self, message_id: str):
        await self.sio.emit(MESSAGE_SEEN, {"messageId": message_id})

    # realtime, inbound

    def add_message(self, message: dict[str, Any]) -> bool:
        if any(m["id"] == message["id"] for m in self.messages):
            return False
        self.messages.append(message)
        return True

    def on_message(self, message: dict[str, Any]):
        partner = self.selected_user_id
        if partner is None:
            return
        if message.get("sender") == partner or message.get("receiver") == partner:
            self.add_message(message)

    def on_typing(self, data: dict[str, Any]):
        if data.get("userId") == self.selected_user_id:
            self.is_typing = bool(data.get("isTyping"))

    def on_seen_update(self, data: dict[str, Any]):
        for message in self.messages:
            if message["id"] == data.get("messageId"):
                message["seen"] = bool(data.get("seen", True))
