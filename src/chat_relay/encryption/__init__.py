from .password_hash import PasswordHash
