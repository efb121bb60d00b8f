from fastapi import APIRouter, Depends, Query
from dishka.integrations.fastapi import inject
from dishka import FromDishka
import logging

from ..models.message_api_models import MessageResponse
from chat_relay.core.gateways import MessageGateway
from .auth_api import AuthAPI


class MessageAPI:
    """
    Message history endpoint.

    Sending, seen receipts and typing go through the realtime relay; HTTP only
    serves the history a client loads when it opens a conversation. Messages
    sent while the reader was offline surface here.

    Attributes:
        logger: Logger instance for tracking operations
        auth_api: Authentication API instance for user validation
        message_router: FastAPI router containing message endpoints
    """

    def __init__(
            self,
            logger: logging.Logger,
            auth_api: AuthAPI,
    ):
        self.logger = logger
        self.auth_api = auth_api

        self._message_router = APIRouter(tags=["Messages"])
        self._register_endpoints()

    @property
    def message_router(self) -> APIRouter:
        return self._message_router

    def get_router(self) -> APIRouter:
        return self._message_router

    def _register_endpoints(self):
        @self.message_router.get("/messages/{user_id}", response_model=list[MessageResponse])
        @inject
        async def get_conversation_history(
                user_id: str,
                message_gateway: FromDishka[MessageGateway],
                limit: int | None = Query(None, ge=1),
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            """
            Retrieve conversation history with another user.

            Args:
                user_id: ID of the other conversation participant
                message_gateway: Message persistence interface
                limit: Keep only the newest `limit` messages
                token: JWT authentication token

            Returns:
                Messages in both directions, oldest first
            """
            current_user = await self.auth_api.get_current_user(token)

            history = await message_gateway.get_conversation_history(
                current_user.id, user_id, limit
            )
            return [MessageResponse.from_dto(msg) for msg in history]
