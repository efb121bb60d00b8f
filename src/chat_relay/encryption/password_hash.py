import asyncio
import base64
import os

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt


class PasswordHash:
    """
    scrypt password hashing.

    Hashes are stored as ``scrypt$<n>$<r>$<p>$<salt b64>$<key b64>`` so the
    cost parameters can be raised later without invalidating old hashes.
    """
    ALGORITHM = "scrypt"

    def __init__(self, n: int = 2 ** 14, r: int = 8, p: int = 1, salt_size: int = 16, key_length: int = 32):
        self.n = n
        self.r = r
        self.p = p
        self.salt_size = salt_size
        self.key_length = key_length

    def _kdf(self, salt: bytes, n: int, r: int, p: int, length: int) -> Scrypt:
        return Scrypt(salt=salt, length=length, n=n, r=r, p=p)

    def hash(self, password: str) -> str:
        salt = os.urandom(self.salt_size)
        key = self._kdf(salt, self.n, self.r, self.p, self.key_length).derive(password.encode())
        return "$".join([
            self.ALGORITHM,
            str(self.n),
            str(self.r),
            str(self.p),
            base64.b64encode(salt).decode(),
            base64.b64encode(key).decode(),
        ])

    def verify(self, password: str, hashed_password: str) -> bool:
        try:
            algorithm, n, r, p, salt_b64, key_b64 = hashed_password.split("$")
            if algorithm != self.ALGORITHM:
                return False
            salt = base64.b64decode(salt_b64)
            expected = base64.b64decode(key_b64)
            kdf = self._kdf(salt, int(n), int(r), int(p), len(expected))
            kdf.verify(password.encode(), expected)
            return True
        except (InvalidKey, ValueError):
            return False

    async def hash_async(self, password: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.hash, password)

    async def verify_async(self, password: str, hashed_password: str) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.verify, password, hashed_password)
