from .auth_api_models import UserResponse, SignupRequest, LoginRequest, AuthResponse
from .user_api_models import UserUpdateRequest, ALLOWED_UPDATES
from .message_api_models import MessageResponse
