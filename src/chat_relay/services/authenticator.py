from datetime import datetime, timedelta, timezone
import logging

from jose import jwt, JWTError, ExpiredSignatureError

from chat_relay.core.dto import UserDTO
from chat_relay.core.interfaces import UserInterface
from chat_relay.exceptions import AuthenticationError


class SessionAuthenticator:
    """
    Issues and verifies signed access tokens.

    The same instance backs the HTTP bearer dependency and the realtime
    handshake, so both paths reject a credential for the same reasons.

    Attributes:
        SECRET_KEY (str): Secret key for JWT token signing
        ALGORITHM (str): JWT signing algorithm (HS256)
        ACCESS_TOKEN_EXPIRE_MINUTES (int): JWT token expiration time in minutes
        user_gateway (UserInterface): User lookup used to reject tokens of deleted users
        logger (logging.Logger): Logger instance
    """
    def __init__(
            self,
            secret_key: str,
            user_gateway: UserInterface,
            logger: logging.Logger,
            expire_minutes: int = 480
    ):
        self.SECRET_KEY = secret_key
        self.ALGORITHM = "HS256"
        self.ACCESS_TOKEN_EXPIRE_MINUTES: int = expire_minutes
        self.user_gateway = user_gateway
        self.logger = logger

    def create_access_token(self, user_id: str) -> str:
        """
        Create JWT access token for authenticated user.
        Args:
            user_id: User ID to include in the token payload
        Returns:
            str: Encoded JWT access token
        """
        try:
            now = datetime.now(timezone.utc)
            payload = {
                "sub": str(user_id),
                "exp": now + timedelta(minutes=self.ACCESS_TOKEN_EXPIRE_MINUTES),
                "type": "access",
                "iat": now
            }
            return jwt.encode(payload, self.SECRET_KEY, algorithm=self.ALGORITHM)
        except Exception as e:
            self.logger.error("Error creating access token: %s", str(e), exc_info=True)
            raise

    def decode_token(self, token: str | None) -> str:
        """
        Validate JWT token and extract user ID.
        Args:
            token: JWT token string
        Returns:
            str: User ID extracted from token
        Raises:
            AuthenticationError: If token is missing, invalid, expired, or has wrong type
        """
        if not token or not isinstance(token, str):
            raise AuthenticationError("Missing token")

        try:
            payload = jwt.decode(token, self.SECRET_KEY, algorithms=[self.ALGORITHM])
        except ExpiredSignatureError as e:
            raise AuthenticationError("Token expired") from e
        except JWTError as e:
            raise AuthenticationError("Invalid token") from e

        if payload.get("type") != "access":
            raise AuthenticationError("Invalid token type")

        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError("Invalid authentication credentials")
        return str(user_id)

    async def authenticate(self, token: str | None) -> UserDTO:
        """
        Resolve a token to an existing user.
        Args:
            token: JWT token string
        Returns:
            UserDTO: The user the token was issued to
        Raises:
            AuthenticationError: If the token is unusable or its user no longer exists
        """
        user_id = self.decode_token(token)
        user = await self.user_gateway.get_user_by_id(user_id)
        if user is None:
            self.logger.warning("Token presented for unknown user %s", user_id)
            raise AuthenticationError("User not found")
        return user
