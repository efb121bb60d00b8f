from abc import ABC, abstractmethod
from datetime import datetime

from .dto import UserDTO, UserCredentialsDTO, MessageDTO

class UserInterface(ABC):
    @abstractmethod
    async def create_user(
            self,
            username: str,
            hashed_password: str,
            email: str | None = None,
            bio: str | None = None,
            avatar: str | None = None,
            theme: str | None = None
    ) -> UserDTO:
        """
        Creates a new user in the database.
        :param username:
        :param hashed_password:
        :param email:
        :param bio:
        :param avatar:
        :param theme:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_user_by_id(
            self,
            user_id: str
    ) -> UserDTO | None:
        """
        Get user by User.id
        :param user_id:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_user_by_name(
            self,
            username: str
    ) -> UserDTO | None:
        """
        Get user by User.username
        :param username:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_credentials_by_name(
            self,
            username: str
    ) -> UserCredentialsDTO | None:
        """
        Get user together with the password hash, for login only
        :param username:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_users_except(
            self,
            user_id: str
    ) -> list[UserDTO]:
        """
        Get every user except the given one, ordered by username
        :param user_id:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def update_user(
            self,
            user_id: str,
            fields: dict
    ) -> UserDTO | None:
        """
        Updates profile fields of a user.
        :param user_id:
        :param fields: column name -> new value
        :return: updated user, None if the user does not exist
        """
        raise NotImplementedError()


class MessageInterface(ABC):
    @abstractmethod
    async def create_message(
            self,
            sender_id: str,
            receiver_id: str,
            content: str,
            timestamp: datetime | None = None
    ) -> MessageDTO:
        """
        Creates a new (unseen) message in the database.
        :param sender_id:
        :param receiver_id:
        :param content:
        :param timestamp: server time if omitted
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_message_by_id(
            self,
            message_id: str
    ) -> MessageDTO | None:
        """
        Gets a message by ID.
        :param message_id:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def mark_as_seen(
            self,
            message_id: str
    ) -> bool:
        """
        Marks a message as seen.
        :param message_id:
        :return: False if there is no such message
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_conversation_history(
            self,
            user_id: str,
            other_user_id: str,
            limit: int | None = None
    ) -> list[MessageDTO]:
        """
        Gets the messages exchanged by two users, oldest first.
        :param user_id:
        :param other_user_id:
        :param limit: keep only the newest `limit` messages
        :return:
        """
        raise NotImplementedError()
