from datetime import datetime
import logging

from sqlalchemy import select, insert, update, or_, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from chat_relay.exceptions import PersistenceError, ValidationError
from .database import User, Message, utcnow
from .interfaces import UserInterface, MessageInterface
from .dto import UserDTO, UserCredentialsDTO, MessageDTO
from .db_manager import DatabaseManager


def _user_dto(user: User) -> UserDTO:
    return UserDTO(
        id=user.id,
        username=user.username,
        email=user.email,
        bio=user.bio,
        avatar=user.avatar,
        theme=user.theme
    )


def _message_dto(msg: Message) -> MessageDTO:
    return MessageDTO(
        id=msg.id,
        content=msg.content,
        sender_id=msg.sender_id,
        receiver_id=msg.receiver_id,
        timestamp=msg.timestamp,
        seen=msg.seen
    )


class UserGateway(UserInterface):
    __slots__ = ("_db_manager", "_logger")

    def __init__(self, db_manager: DatabaseManager, logger: logging.Logger | None = None):
        self._db_manager = db_manager
        self._logger = logger or logging.getLogger(__name__)

    async def create_user(
            self,
            username: str,
            hashed_password: str,
            email: str | None = None,
            bio: str | None = None,
            avatar: str | None = None,
            theme: str | None = None
    ) -> UserDTO:
        try:
            async with self._db_manager.session() as session:
                stmt = insert(User).values(
                    username=username,
                    hashed_password=hashed_password,
                    email=email,
                    bio=bio,
                    avatar=avatar,
                    theme=theme or "light"
                ).returning(User)
                result = await session.execute(stmt)
                return _user_dto(result.scalars().one())
        except IntegrityError as e:
            self._logger.warning("Duplicate username %s: %s", username, e)
            raise ValidationError("Username already exists") from e
        except SQLAlchemyError as e:
            self._logger.error("Error creating user in database: %s", e)
            raise PersistenceError() from e

    async def get_user_by_id(self, user_id: str) -> UserDTO | None:
        try:
            async with self._db_manager.session() as session:
                stmt = select(User).where(User.id == user_id)
                result = await session.execute(stmt)
                user = result.scalars().first()
                return _user_dto(user) if user else None
        except SQLAlchemyError as e:
            self._logger.error("Error getting user by id in database: %s", e)
            raise PersistenceError() from e

    async def get_user_by_name(self, username: str) -> UserDTO | None:
        try:
            async with self._db_manager.session() as session:
                stmt = select(User).where(User.username == username)
                result = await session.execute(stmt)
                user = result.scalars().first()
                return _user_dto(user) if user else None
        except SQLAlchemyError as e:
            self._logger.error("Error getting user by name in database: %s", e)
            raise PersistenceError() from e

    async def get_credentials_by_name(self, username: str) -> UserCredentialsDTO | None:
        try:
            async with self._db_manager.session() as session:
                stmt = select(User).where(User.username == username)
                result = await session.execute(stmt)
                user = result.scalars().first()
                if user is None:
                    return None

                return UserCredentialsDTO(
                    **_user_dto(user).model_dump(),
                    hashed_password=user.hashed_password
                )
        except SQLAlchemyError as e:
            self._logger.error("Error getting credentials in database: %s", e)
            raise PersistenceError() from e

    async def get_users_except(self, user_id: str) -> list[UserDTO]:
        try:
            async with self._db_manager.session() as session:
                stmt = select(User).where(User.id != user_id).order_by(User.username)
                result = await session.execute(stmt)
                return [_user_dto(user) for user in result.scalars().all()]
        except SQLAlchemyError as e:
            self._logger.error("Error listing users in database: %s", e)
            raise PersistenceError() from e

    async def update_user(self, user_id: str, fields: dict) -> UserDTO | None:
        if not fields:
            return await self.get_user_by_id(user_id)

        try:
            async with self._db_manager.session() as session:
                stmt = update(User).where(
                    User.id == user_id
                ).values(**fields).returning(User)
                result = await session.execute(stmt)
                user = result.scalars().first()
                return _user_dto(user) if user else None
        except IntegrityError as e:
            self._logger.warning("Profile update for %s rejected: %s", user_id, e)
            raise ValidationError("Username already exists") from e
        except SQLAlchemyError as e:
            self._logger.error("Error updating user in database: %s", e)
            raise PersistenceError() from e


class MessageGateway(MessageInterface):
    __slots__ = ("_db_manager", "_logger")

    def __init__(self, db_manager: DatabaseManager, logger: logging.Logger | None = None):
        self._db_manager = db_manager
        self._logger = logger or logging.getLogger(__name__)

    async def create_message(
            self,
            sender_id: str,
            receiver_id: str,
            content: str,
            timestamp: datetime | None = None
    ) -> MessageDTO:
        try:
            async with self._db_manager.session() as session:
                stmt = insert(Message).values(
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    content=content,
                    timestamp=timestamp or utcnow(),
                    seen=False
                ).returning(Message)
                result = await session.execute(stmt)
                return _message_dto(result.scalars().one())
        except SQLAlchemyError as e:
            self._logger.error("Error creating message in database: %s", e)
            raise PersistenceError() from e

    async def get_message_by_id(self, message_id: str) -> MessageDTO | None:
        try:
            async with self._db_manager.session() as session:
                stmt = select(Message).where(Message.id == message_id)
                result = await session.execute(stmt)
                msg = result.scalars().first()
                return _message_dto(msg) if msg else None
        except SQLAlchemyError as e:
            self._logger.error("Error getting message by ID in database: %s", e)
            raise PersistenceError() from e

    async def mark_as_seen(self, message_id: str) -> bool:
        try:
            async with self._db_manager.session() as session:
                stmt = update(Message).where(
                    Message.id == message_id
                ).values(seen=True)
                result = await session.execute(stmt)
                return result.rowcount > 0
        except SQLAlchemyError as e:
            self._logger.error("Error marking message seen in database: %s", e)
            raise PersistenceError() from e

    async def get_conversation_history(
            self,
            user_id: str,
            other_user_id: str,
            limit: int | None = None
    ) -> list[MessageDTO]:
        try:
            async with self._db_manager.session() as session:
                conversation = or_(
                    and_(
                        Message.sender_id == user_id,
                        Message.receiver_id == other_user_id
                    ),
                    and_(
                        Message.sender_id == other_user_id,
                        Message.receiver_id == user_id
                    )
                )
                if limit is None:
                    stmt = select(Message).where(conversation).order_by(Message.timestamp.asc())
                    result = await session.execute(stmt)
                    return [_message_dto(m) for m in result.scalars().all()]

                stmt = select(Message).where(conversation).order_by(
                    Message.timestamp.desc()
                ).limit(limit)
                result = await session.execute(stmt)
                return [_message_dto(m) for m in reversed(result.scalars().all())]
        except SQLAlchemyError as e:
            self._logger.error("Error getting conversation history in database: %s", e)
            raise PersistenceError() from e
