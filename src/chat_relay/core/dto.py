from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timezone


class UserDTO(BaseModel):
    id: str
    username: str = Field(min_length=1, max_length=50)
    email: str | None = None
    bio: str | None = None
    avatar: str | None = None
    theme: str | None = "light"

class UserCredentialsDTO(UserDTO):
    hashed_password: str

class MessageDTO(BaseModel):
    id: str
    content: str
    sender_id: str
    receiver_id: str
    timestamp: datetime
    seen: bool = False

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive datetimes
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
