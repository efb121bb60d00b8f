from typing import AsyncIterable
from dishka import Provider, Scope, provide
import redis.asyncio as aioredis
import socketio
import logging

from chat_relay.config import Config, load_config
from chat_relay.core.db_manager import DatabaseManager
from chat_relay.core.gateways import UserGateway, MessageGateway
from chat_relay.encryption.password_hash import PasswordHash
from chat_relay.realtime.presence import PresenceRegistry, InMemoryPresenceRegistry, RedisPresenceRegistry
from chat_relay.realtime.relay import ChatRelay
from chat_relay.services.authenticator import SessionAuthenticator
from chat_relay.services.routers import AuthAPI, UserAPI, MessageAPI

class AdaptersProvider(Provider):
    def __init__(self, config: Config | None = None):
        super().__init__()
        self._config = config

    @provide(scope=Scope.APP)
    def get_config(self) -> Config:
        return self._config or load_config(".env")

    @provide(scope=Scope.APP)
    def get_logger(self) -> logging.Logger:
        return logging.getLogger("chat_relay")

    @provide(scope=Scope.APP)
    async def get_redis(self, config: Config) -> AsyncIterable[aioredis.Redis]:
        client = aioredis.Redis(host=config.redis.host, port=config.redis.port, db=0)
        yield client
        await client.aclose()

    @provide(scope=Scope.APP)
    async def get_db_manager(self, config: Config) -> AsyncIterable[DatabaseManager]:
        db_manager = DatabaseManager(config)
        await db_manager.initialize()
        await db_manager.create_tables()
        yield db_manager
        await db_manager.close()

    @provide(scope=Scope.APP)
    def get_presence(
            self,
            config: Config,
            redis: aioredis.Redis,
            logger: logging.Logger
    ) -> PresenceRegistry:
        if config.relay.presence_backend == "redis":
            logger.info("Using Redis presence registry")
            return RedisPresenceRegistry(redis)
        return InMemoryPresenceRegistry()

    @provide(scope=Scope.APP)
    def get_password_hash(self) -> PasswordHash:
        return PasswordHash()

class GatewaysProvider(Provider):
    # gateways hold no per-request state, the relay shares them with HTTP handlers
    @provide(scope=Scope.APP)
    def get_user_gateway(
            self,
            db_manager: DatabaseManager,
            logger: logging.Logger
    ) -> UserGateway:
        return UserGateway(db_manager, logger)

    @provide(scope=Scope.APP)
    def get_message_gateway(
            self,
            db_manager: DatabaseManager,
            logger: logging.Logger
    ) -> MessageGateway:
        return MessageGateway(db_manager, logger)

class ServicesProvider(Provider):
    @provide(scope=Scope.APP)
    def get_authenticator(
        self,
        config: Config,
        user_gateway: UserGateway,
        logger: logging.Logger
    ) -> SessionAuthenticator:
        return SessionAuthenticator(
            secret_key=config.jwt.secret_key,
            user_gateway=user_gateway,
            logger=logger,
            expire_minutes=config.jwt.access_token_expire_minutes
        )

    @provide(scope=Scope.APP)
    def get_auth_api(
        self,
        authenticator: SessionAuthenticator,
        password_hash: PasswordHash,
        db_manager: DatabaseManager,
        logger: logging.Logger
    ) -> AuthAPI:
        return AuthAPI(
            authenticator=authenticator,
            password_hash=password_hash,
            db_manager=db_manager,
            logger=logger
        )

    @provide(scope=Scope.APP)
    def get_user_api(
            self,
            logger: logging.Logger,
            auth_api: AuthAPI
    ) -> UserAPI:
        return UserAPI(
            logger=logger,
            auth_api=auth_api
        )

    @provide(scope=Scope.APP)
    def get_message_api(
            self,
            logger: logging.Logger,
            auth_api: AuthAPI
    ) -> MessageAPI:
        return MessageAPI(
            logger=logger,
            auth_api=auth_api
        )

    @provide(scope=Scope.APP)
    def get_socketio_server(self, config: Config) -> socketio.AsyncServer:
        return socketio.AsyncServer(
            async_mode="asgi",
            cors_allowed_origins=config.relay.cors_allowed_origins,
            logger=False,
            engineio_logger=False,
        )

    @provide(scope=Scope.APP)
    def get_chat_relay(
            self,
            config: Config,
            sio: socketio.AsyncServer,
            authenticator: SessionAuthenticator,
            presence: PresenceRegistry,
            user_gateway: UserGateway,
            message_gateway: MessageGateway,
            logger: logging.Logger
    ) -> ChatRelay:
        return ChatRelay(
            sio=sio,
            authenticator=authenticator,
            presence=presence,
            user_gateway=user_gateway,
            message_gateway=message_gateway,
            logger=logger,
            store_timeout=config.relay.store_timeout
        )
