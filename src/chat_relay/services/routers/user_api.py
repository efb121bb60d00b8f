from fastapi import APIRouter, Body, Depends
from dishka.integrations.fastapi import inject
from dishka import FromDishka
from typing import Any
import logging

import pydantic

from ..models.auth_api_models import UserResponse
from ..models.user_api_models import UserUpdateRequest, ALLOWED_UPDATES
from chat_relay.core.gateways import UserGateway
from chat_relay.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from .auth_api import AuthAPI


class UserAPI:
    """
    User directory and profile endpoints.

    Attributes:
        logger: Logger instance for tracking operations
        auth_api: Authentication API instance for user validation
        user_router: FastAPI router containing user endpoints
    """

    def __init__(
            self,
            logger: logging.Logger,
            auth_api: AuthAPI
    ):
        self.logger = logger
        self.auth_api = auth_api

        self._user_router = APIRouter(tags=["Users"])
        self._register_endpoints()

    @property
    def user_router(self) -> APIRouter:
        return self._user_router

    def get_router(self) -> APIRouter:
        return self._user_router

    def _register_endpoints(self):
        @self.user_router.get("/users", response_model=list[UserResponse])
        @inject
        async def list_users(
                user_gateway: FromDishka[UserGateway],
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            """
            List every user except the caller. Passwords are never included.
            """
            user = await self.auth_api.get_current_user(token)
            users = await user_gateway.get_users_except(user.id)
            return [UserResponse(**u.model_dump()) for u in users]

        @self.user_router.get("/users/{user_id}", response_model=UserResponse)
        @inject
        async def get_user(
                user_id: str,
                user_gateway: FromDishka[UserGateway],
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            await self.auth_api.get_current_user(token)

            user = await user_gateway.get_user_by_id(user_id)
            if not user:
                raise NotFoundError("User not found")
            return UserResponse(**user.model_dump())

        @self.user_router.put("/users/{user_id}", response_model=UserResponse)
        @inject
        async def update_user(
                user_id: str,
                user_gateway: FromDishka[UserGateway],
                updates: dict[str, Any] = Body(...),
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            """
            Update profile fields of the calling user.

            Args:
                user_id: ID of the profile to update, must be the caller's
                user_gateway: User persistence interface
                updates: Subset of username, email, bio, avatar, theme

            Returns:
                The updated user

            Raises:
                ValidationError: If a field outside the whitelist is present or a value is invalid
                PermissionDeniedError: If the caller targets another user's profile
                NotFoundError: If the user does not exist
            """
            current_user = await self.auth_api.get_current_user(token)

            disallowed = set(updates) - ALLOWED_UPDATES
            if disallowed:
                self.logger.warning(
                    "User %s sent disallowed profile fields: %s",
                    current_user.id, sorted(disallowed)
                )
                raise ValidationError("Invalid updates!")

            try:
                update_data = UserUpdateRequest(**updates)
            except pydantic.ValidationError as e:
                raise ValidationError(str(e.errors()[0].get("msg", "Invalid updates!"))) from e

            if user_id != current_user.id:
                raise PermissionDeniedError("Cannot update another user's profile")

            # unset and null fields are left untouched
            fields = update_data.model_dump(exclude_none=True)
            if "username" in fields and fields["username"] != current_user.username:
                existing = await user_gateway.get_user_by_name(fields["username"])
                if existing:
                    raise ValidationError("Username already exists")

            user = await user_gateway.update_user(user_id, fields)
            if not user:
                raise NotFoundError("User not found")

            self.logger.info("Profile updated for user %s: %s", user_id, sorted(fields))
            return UserResponse(**user.model_dump())
