from pydantic import BaseModel, Field

# Profile fields a user may change through PUT /users/{id}
ALLOWED_UPDATES = frozenset({"username", "email", "bio", "avatar", "theme"})


class UserUpdateRequest(BaseModel):
    username: str | None = Field(None, min_length=3, max_length=50, pattern="^[a-zA-Z0-9_]+$")
    email: str | None = Field(None, max_length=255)
    bio: str | None = None
    avatar: str | None = None
    theme: str | None = Field(None, max_length=20)
