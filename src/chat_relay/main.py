import asyncio
import logging
from contextlib import asynccontextmanager

from dishka import make_async_container
from dishka.integrations.fastapi import setup_dishka
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import socketio
import uvicorn

from chat_relay.config import Config, load_config
from chat_relay.exceptions import ChatError
from chat_relay.providers import AdaptersProvider, GatewaysProvider, ServicesProvider
from chat_relay.realtime import ChatRelay
from chat_relay.services import AuthAPI, UserAPI, MessageAPI

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.dishka_container.close()

async def handle_chat_error(request: Request, exc: ChatError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

async def create_app(config: Config | None = None) -> FastAPI:
    container = make_async_container(
        AdaptersProvider(config),
        GatewaysProvider(),
        ServicesProvider(),
    )
    config = await container.get(Config)

    app = FastAPI(lifespan=lifespan)
    setup_dishka(container, app)
    app.add_exception_handler(ChatError, handle_chat_error)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.relay.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    auth_api = await container.get(AuthAPI)
    user_api = await container.get(UserAPI)
    message_api = await container.get(MessageAPI)

    app.include_router(auth_api.get_router())
    app.include_router(user_api.get_router())
    app.include_router(message_api.get_router())

    app.state.relay = await container.get(ChatRelay)

    return app

def create_asgi_app(app: FastAPI) -> socketio.ASGIApp:
    relay: ChatRelay = app.state.relay
    return socketio.ASGIApp(relay.sio, other_asgi_app=app)

async def main(config: Config | None = None):
    config = config or load_config(".env")
    logging.basicConfig(
        level=config.server.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = await create_app(config)
    server = uvicorn.Server(
        uvicorn.Config(
            create_asgi_app(app),
            host=config.server.host,
            port=config.server.port,
            log_level=config.server.log_level.lower(),
        )
    )
    await server.serve()

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
