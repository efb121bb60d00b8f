from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from chat_relay.encryption.password_hash import PasswordHash
from chat_relay.exceptions import AuthenticationError
from chat_relay.services.authenticator import SessionAuthenticator

from conftest import SECRET


@pytest.mark.asyncio
async def test_token_resolves_to_user(authenticator, alice):
    token = authenticator.create_access_token(alice.id)

    assert authenticator.decode_token(token) == alice.id
    assert await authenticator.authenticate(token) == alice


@pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
def test_missing_or_malformed_token(authenticator, token):
    with pytest.raises(AuthenticationError):
        authenticator.decode_token(token)


def test_token_signed_with_other_key(authenticator):
    token = jwt.encode({"sub": "u1", "type": "access"}, "other-key", algorithm="HS256")
    with pytest.raises(AuthenticationError, match="Invalid token"):
        authenticator.decode_token(token)


def test_token_of_wrong_type(authenticator):
    token = jwt.encode({"sub": "u1", "type": "refresh"}, SECRET, algorithm="HS256")
    with pytest.raises(AuthenticationError, match="type"):
        authenticator.decode_token(token)


def test_token_without_subject(authenticator):
    token = jwt.encode({"type": "access"}, SECRET, algorithm="HS256")
    with pytest.raises(AuthenticationError):
        authenticator.decode_token(token)


def test_expired_token(authenticator):
    token = jwt.encode(
        {
            "sub": "u1",
            "type": "access",
            "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
        },
        SECRET,
        algorithm="HS256",
    )
    with pytest.raises(AuthenticationError, match="expired"):
        authenticator.decode_token(token)


@pytest.mark.asyncio
async def test_token_of_unknown_user(authenticator):
    token = authenticator.create_access_token("ghost")
    with pytest.raises(AuthenticationError, match="User not found"):
        await authenticator.authenticate(token)


@pytest.mark.asyncio
async def test_expire_minutes_is_honoured(user_gateway, logger, alice):
    short_lived = SessionAuthenticator(SECRET, user_gateway, logger, expire_minutes=-1)
    token = short_lived.create_access_token(alice.id)

    with pytest.raises(AuthenticationError, match="expired"):
        await short_lived.authenticate(token)


def test_password_hash_roundtrip():
    hasher = PasswordHash(n=2 ** 10)
    hashed = hasher.hash("correct horse")

    assert hashed.startswith("scrypt$")
    assert hasher.verify("correct horse", hashed)
    assert not hasher.verify("wrong horse", hashed)
    assert hasher.hash("correct horse") != hashed


@pytest.mark.parametrize("hashed", ["", "plain-text", "bcrypt$1$2$3$AAAA$BBBB", "scrypt$x$8$1$AAAA$BBBB"])
def test_password_hash_rejects_malformed_hashes(hashed):
    assert PasswordHash().verify("anything", hashed) is False
