"""Realtime delivery: presence tracking and the Socket.IO relay."""

from .presence import PresenceRegistry, InMemoryPresenceRegistry, RedisPresenceRegistry
from .relay import ChatRelay, ConnectionState, RelayConnection
