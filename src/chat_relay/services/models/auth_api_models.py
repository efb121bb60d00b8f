from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    id: str
    username: str
    email: str | None = None
    bio: str | None = None
    avatar: str | None = None
    theme: str | None = None

    class Config:

        from_attributes = True

class SignupRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern="^[a-zA-Z0-9_]+$")
    password: str = Field(..., min_length=6, max_length=128)
    email: str | None = Field(None, max_length=255)
    bio: str | None = None
    avatar: str | None = None
    theme: str | None = Field(None, max_length=20)

class LoginRequest(BaseModel):
    username: str
    password: str

class AuthResponse(BaseModel):
    """ Returned by signup and login """
    user: UserResponse
    token: str
