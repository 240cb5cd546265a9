"""
Unit tests for security utilities (password hashing and JWT tokens).
"""

from datetime import timedelta
from uuid import UUID, uuid4

import pytest
from jose import JWTError, jwt

from bizsuite.config.settings import get_settings
from bizsuite.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
    verify_token,
)

pytestmark = pytest.mark.unit

settings = get_settings()


def decode(token: str) -> dict:
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


class TestPasswordHashing:
    """Test password hashing and verification."""

    def test_hash_is_salted(self):
        password = "correct-horse-battery"
        hash1 = hash_password(password)
        hash2 = hash_password(password)

        assert hash1 != password
        assert hash1 != hash2

    def test_verify_password_correct(self):
        hashed = hash_password("correct-horse-battery")
        assert verify_password("correct-horse-battery", hashed) is True

    def test_verify_password_incorrect(self):
        hashed = hash_password("correct-horse-battery")
        assert verify_password("wrong-password", hashed) is False
        assert verify_password("", hashed) is False

    def test_verify_password_invalid_hash(self):
        assert verify_password("correct-horse-battery", "invalid_hash") is False


class TestAccessToken:
    """Test access token generation."""

    def test_claims(self):
        user_id, org_id = uuid4(), uuid4()
        payload = decode(create_access_token(user_id=user_id, organization_id=org_id, email="a@b.com"))

        assert payload["sub"] == str(user_id)
        assert payload["email"] == "a@b.com"
        assert payload["org_id"] == str(org_id)
        assert payload["type"] == "access"

    def test_default_expiration(self):
        payload = decode(create_access_token(user_id=uuid4(), organization_id=uuid4(), email="a@b.com"))
        assert payload["exp"] - payload["iat"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    def test_custom_expiration(self):
        token = create_access_token(
            user_id=uuid4(), organization_id=uuid4(), email="a@b.com", expires_delta=timedelta(minutes=5)
        )
        payload = decode(token)
        assert payload["exp"] - payload["iat"] == 300

    def test_tokens_are_unique(self):
        user_id, org_id = uuid4(), uuid4()
        token1 = create_access_token(user_id=user_id, organization_id=org_id, email="a@b.com")
        token2 = create_access_token(user_id=user_id, organization_id=org_id, email="a@b.com")

        assert token1 != token2
        UUID(decode(token1)["jti"])


class TestRefreshToken:
    def test_claims(self):
        user_id = uuid4()
        payload = decode(create_refresh_token(user_id=user_id))

        assert payload["sub"] == str(user_id)
        assert payload["type"] == "refresh"
        assert "email" not in payload
        assert "org_id" not in payload

    def test_default_expiration(self):
        payload = decode(create_refresh_token(user_id=uuid4()))
        assert payload["exp"] - payload["iat"] == settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60


class TestTokenVerification:
    """Test token verification."""

    def test_verify_access_token(self):
        user_id = uuid4()
        token = create_access_token(user_id=user_id, organization_id=uuid4(), email="a@b.com")
        assert verify_token(token, token_type="access")["sub"] == str(user_id)

    def test_refresh_token_rejected_as_access(self):
        with pytest.raises(ValueError, match="Invalid token type"):
            verify_token(create_refresh_token(user_id=uuid4()), token_type="access")

    def test_wrong_signature(self):
        token = jwt.encode({"sub": str(uuid4()), "type": "access"}, "wrong_secret_key", algorithm="HS256")
        with pytest.raises(JWTError):
            verify_token(token)

    def test_expired_token(self):
        token = create_access_token(
            user_id=uuid4(), organization_id=uuid4(), email="a@b.com", expires_delta=timedelta(seconds=-1)
        )
        with pytest.raises(JWTError):
            verify_token(token)

    def test_malformed_token(self):
        with pytest.raises(JWTError):
            verify_token("not.a.valid.token")
