"""Who is connected right now.

The relay only ever talks to a `PresenceRegistry`; which backend sits behind
it is decided by the DI container (`PRESENCE_BACKEND`). One slot per user:
a second connection replaces the first.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class PresenceRegistry(ABC):
    @abstractmethod
    async def register(self, user_id: str, connection: str) -> None:
        """
        Map a user to its live connection, replacing any previous entry.
        :param user_id:
        :param connection: Socket.IO session id
        """
        raise NotImplementedError()

    @abstractmethod
    async def lookup(self, user_id: str) -> str | None:
        """
        Current connection of a user, None when offline.
        :param user_id:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def remove(self, user_id: str, connection: str | None = None) -> None:
        """
        Drop the entry of a user. Removing an absent entry is a no-op.
        :param user_id:
        :param connection: when given, only remove if the entry still points at it
        """
        raise NotImplementedError()


class InMemoryPresenceRegistry(PresenceRegistry):
    """Process-local registry. Empty after every restart."""

    def __init__(self):
        self._connections: dict[str, str] = {}

    async def register(self, user_id: str, connection: str) -> None:
        previous = self._connections.get(user_id)
        if previous is not None and previous != connection:
            logger.info("User %s reconnected, replacing connection %s", user_id, previous)
        self._connections[user_id] = connection

    async def lookup(self, user_id: str) -> str | None:
        return self._connections.get(user_id)

    async def remove(self, user_id: str, connection: str | None = None) -> None:
        if connection is not None and self._connections.get(user_id) != connection:
            return
        self._connections.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._connections)


class RedisPresenceRegistry(PresenceRegistry):
    """Registry kept in Redis under ``presence:<user_id>`` keys."""

    KEY_PREFIX = "presence:"

    def __init__(self, redis: aioredis.Redis):
        self.redis = redis
        self._lock = asyncio.Lock()

    def _key(self, user_id: str) -> str:
        return f"{self.KEY_PREFIX}{user_id}"

    async def register(self, user_id: str, connection: str) -> None:
        async with self._lock:
            await self.redis.set(self._key(user_id), connection)

    async def lookup(self, user_id: str) -> str | None:
        value = await self.redis.get(self._key(user_id))
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes) else value

    async def remove(self, user_id: str, connection: str | None = None) -> None:
        key = self._key(user_id)
        if connection is None:
            await self.redis.delete(key)
            return

        # get-then-delete must not interleave with a register of the same user
        async with self._lock:
            if await self.lookup(user_id) == connection:
                await self.redis.delete(key)
