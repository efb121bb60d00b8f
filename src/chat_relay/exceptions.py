class ChatError(Exception):
    """Base class for errors raised by the chat backend."""

    status_code: int = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


class AuthenticationError(ChatError):
    """Missing, malformed, expired or otherwise unusable credentials."""

    status_code = 401

    def __init__(self, message: str = "Authentication error"):
        super().__init__(message)


class ValidationError(ChatError):
    """Malformed or disallowed payload."""

    status_code = 400


class PermissionDeniedError(ChatError):
    status_code = 403


class NotFoundError(ChatError):
    status_code = 404


class PersistenceError(ChatError):
    """The store is unavailable, a write failed or a store call timed out."""

    status_code = 503

    def __init__(self, message: str = "Storage unavailable"):
        super().__init__(message)
