from __future__ import annotations

import logging
from typing import Any

import httpx
import pytest
import pytest_asyncio

from chat_relay.config import Config, DBConfig, JWTConfig, RedisConfig, RelayConfig
from chat_relay.core.db_manager import DatabaseManager
from chat_relay.core.gateways import MessageGateway, UserGateway
from chat_relay.main import create_app
from chat_relay.realtime.presence import InMemoryPresenceRegistry
from chat_relay.realtime.relay import ChatRelay
from chat_relay.services.authenticator import SessionAuthenticator

SECRET = "test-secret-key"


class FakeSocketServer:
    """Stands in for socketio.AsyncServer: records handlers and emits."""

    def __init__(self):
        self.handlers: dict[str, Any] = {}
        self.emitted: list[tuple[str, Any, str | None]] = []

    def on(self, event, handler=None, namespace=None):
        self.handlers[event] = handler

    async def emit(self, event, data=None, to=None, room=None, **kwargs):
        self.emitted.append((event, data, to or room))

    def sent_to(self, sid: str, event: str | None = None) -> list[Any]:
        return [
            data for name, data, target in self.emitted
            if target == sid and (event is None or name == event)
        ]


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        jwt=JWTConfig(secret_key=SECRET),
        db=DBConfig(path=str(tmp_path / "chat.db")),
        redis=RedisConfig(),
        relay=RelayConfig(store_timeout=2.0),
    )


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("chat_relay.tests")


@pytest_asyncio.fixture
async def db_manager(config):
    manager = DatabaseManager(config)
    await manager.initialize()
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
def user_gateway(db_manager, logger) -> UserGateway:
    return UserGateway(db_manager, logger)


@pytest.fixture
def message_gateway(db_manager, logger) -> MessageGateway:
    return MessageGateway(db_manager, logger)


@pytest.fixture
def authenticator(user_gateway, logger) -> SessionAuthenticator:
    return SessionAuthenticator(SECRET, user_gateway, logger)


@pytest.fixture
def presence() -> InMemoryPresenceRegistry:
    return InMemoryPresenceRegistry()


@pytest.fixture
def sio() -> FakeSocketServer:
    return FakeSocketServer()


@pytest.fixture
def relay(sio, authenticator, presence, user_gateway, message_gateway, logger) -> ChatRelay:
    return ChatRelay(
        sio=sio,
        authenticator=authenticator,
        presence=presence,
        user_gateway=user_gateway,
        message_gateway=message_gateway,
        logger=logger,
        store_timeout=2.0,
    )


@pytest_asyncio.fixture
async def alice(user_gateway):
    return await user_gateway.create_user("alice", "not-a-real-hash", email="alice@example.com")


@pytest_asyncio.fixture
async def bob(user_gateway):
    return await user_gateway.create_user("bob", "not-a-real-hash")


@pytest_asyncio.fixture
async def app(config):
    application = await create_app(config)
    yield application
    await application.state.dishka_container.close()


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


async def signup(client: httpx.AsyncClient, username: str, password: str = "secret123", **profile) -> dict:
    response = await client.post("/signup", json={"username": username, "password": password, **profile})
    assert response.status_code == 201, response.text
    return response.json()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
