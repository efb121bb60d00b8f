from fastapi import status, HTTPException, Depends, APIRouter
from fastapi.security import OAuth2PasswordBearer
from datetime import datetime, timezone

from dishka import FromDishka
from dishka.integrations.fastapi import inject

import logging

from chat_relay.core.db_manager import DatabaseManager
from chat_relay.core.dto import UserDTO
from chat_relay.core.gateways import UserGateway
from chat_relay.encryption.password_hash import PasswordHash
from chat_relay.exceptions import AuthenticationError, ValidationError
from chat_relay.services.authenticator import SessionAuthenticator
from ..models.auth_api_models import *


class AuthAPI:
    """
    Authentication API service: signup, password login and the bearer
    dependency the other routers use to resolve the calling user.
    Attributes:
        authenticator (SessionAuthenticator): Token issuing and verification
        password_hash (PasswordHash): Password hashing helper
        db_manager (DatabaseManager): Used by the health check only
        logger (logging.Logger): Logger instance
        oauth2_scheme (OAuth2PasswordBearer): OAuth2 password bearer scheme
        _auth_router (APIRouter): FastAPI router for authentication endpoints
    """
    def __init__(
            self,
            authenticator: SessionAuthenticator,
            password_hash: PasswordHash,
            db_manager: DatabaseManager,
            logger: logging.Logger
    ):
        self.authenticator = authenticator
        self.password_hash = password_hash
        self.db_manager = db_manager
        self.logger = logger
        self.oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login")
        self._auth_router = APIRouter(tags=["Authentication"])
        self._register_endpoints()

    @property
    def auth_router(self) -> APIRouter:
        return self._auth_router

    def get_router(self) -> APIRouter:
        return self._auth_router

    async def get_current_user(self, token: str) -> UserDTO:
        """
        Resolve the bearer token of a request to its user.
        Raises:
            AuthenticationError: If the token is invalid or its user is gone
        """
        return await self.authenticator.authenticate(token)

    def _register_endpoints(self):
        """
        Register all authentication endpoints with the FastAPI router.

        This method sets up the following endpoints:
        - GET /health: Health check
        - POST /signup: User registration
        - POST /login: Password login
        - GET /me: Get current user information
        """
        @self.auth_router.get("/health")
        async def health_check():
            """
            Health check endpoint to verify service status and database connectivity.
            Returns:
                dict: Health status with timestamp and service information
            Raises:
                HTTPException: If the database is unavailable
            """
            if not await self.db_manager.ping():
                raise HTTPException(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    detail="Service unavailable"
                )
            return {
                "status": "healthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "service": "chat",
                "database": "connected"
            }

        @self.auth_router.post("/signup", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
        @inject
        async def signup(
                user_data: SignupRequest,
                user_gateway: FromDishka[UserGateway]
        ):
            """
            Register a new user and log them in.
            Args:
                user_data: Username, password and optional profile fields
                user_gateway: User gateway for database operations
            Returns:
                AuthResponse: Created user and an access token
            Raises:
                ValidationError: If the username already exists
            """
            existing_user = await user_gateway.get_user_by_name(user_data.username)
            if existing_user:
                raise ValidationError("Username already exists")

            hashed_password = await self.password_hash.hash_async(user_data.password)
            user = await user_gateway.create_user(
                username=user_data.username,
                hashed_password=hashed_password,
                email=user_data.email,
                bio=user_data.bio,
                avatar=user_data.avatar,
                theme=user_data.theme
            )

            self.logger.info("New user registered: %s (ID: %s)", user.username, user.id)
            return AuthResponse(
                user=UserResponse(**user.model_dump()),
                token=self.authenticator.create_access_token(user.id)
            )

        @self.auth_router.post("/login", response_model=AuthResponse)
        @inject
        async def login(
                login_data: LoginRequest,
                user_gateway: FromDishka[UserGateway]
        ):
            """
            Authenticate user with username and password.
            Args:
                login_data: Username and password
                user_gateway: User gateway for database operations
            Returns:
                AuthResponse: The user and an access token
            Raises:
                AuthenticationError: If the user is unknown or the password is wrong
            """
            credentials = await user_gateway.get_credentials_by_name(login_data.username)
            if credentials is None or not await self.password_hash.verify_async(
                    login_data.password,
                    credentials.hashed_password
            ):
                self.logger.warning("Failed login for user: %s", login_data.username)
                raise AuthenticationError("Invalid login credentials")

            self.logger.info("User logged in: %s (ID: %s)", credentials.username, credentials.id)
            return AuthResponse(
                user=UserResponse(**credentials.model_dump(exclude={"hashed_password"})),
                token=self.authenticator.create_access_token(credentials.id)
            )

        @self.auth_router.get("/me", response_model=UserResponse)
        async def get_current_user_info(
                token: str = Depends(self.oauth2_scheme)
        ):
            """
            Get current authenticated user's information.
            """
            user = await self.get_current_user(token)
            return UserResponse(**user.model_dump())
