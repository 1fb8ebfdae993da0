"""
Tests for security functions including JWT tokens and caller resolution.
"""
import pytest
from datetime import timedelta
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from secure_upload.api.deps import get_current_user, require_roles
from secure_upload.core.exceptions import AccessDeniedException
from secure_upload.core.security import (
    create_access_token,
    decode_access_token,
    user_id_from_claims,
)


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestJWTTokens:
    """Tests for JWT token creation and validation."""

    def test_create_access_token_returns_string(self):
        """Token creation should return a JWT string."""
        token = create_access_token({"id": "user123", "role": "admin"})

        assert isinstance(token, str)
        # JWT tokens have 3 parts separated by dots
        assert token.count(".") == 2

    def test_decode_access_token_valid(self):
        """Valid token should decode successfully."""
        token = create_access_token({"id": "user123", "role": "admin"}, timedelta(hours=1))

        payload = decode_access_token(token)

        assert payload["id"] == "user123"
        assert payload["role"] == "admin"
        assert "exp" in payload

    def test_decode_access_token_expired(self):
        """Expired token should return None."""
        token = create_access_token({"id": "user123"}, timedelta(seconds=-10))

        assert decode_access_token(token) is None

    def test_decode_access_token_invalid(self):
        assert decode_access_token("not.a.valid.jwt.token") is None
        assert decode_access_token("") is None

    def test_decode_access_token_tampered(self):
        """Tampered token should return None."""
        token = create_access_token({"id": "user123"})

        parts = token.split(".")
        parts[1] = parts[1][:-5] + "XXXXX"
        tampered_token = ".".join(parts)

        assert decode_access_token(tampered_token) is None


class TestUserIdClaims:
    """Tests for picking the caller id out of token claims."""

    def test_id_claim_preferred(self):
        assert user_id_from_claims({"id": "a", "sub": "b", "userId": "c"}) == "a"

    def test_falls_back_to_sub_then_user_id(self):
        assert user_id_from_claims({"sub": "b", "userId": "c"}) == "b"
        assert user_id_from_claims({"userId": 42}) == "42"

    def test_missing_id(self):
        assert user_id_from_claims({"id": "", "role": "admin"}) is None


class TestCurrentUser:
    """Tests for the bearer-token dependency."""

    @pytest.mark.asyncio
    async def test_valid_token(self):
        token = create_access_token({"sub": "user-1", "role": "Recruiter", "email": "r@example.com"})

        user = await get_current_user(_credentials(token))

        assert user.id == "user-1"
        assert user.role == "recruiter"
        assert user.email == "r@example.com"

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(None)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Authentication required"

    @pytest.mark.asyncio
    async def test_invalid_token(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_credentials("garbage"))

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_token_without_role(self):
        token = create_access_token({"id": "user-1"})

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_credentials(token))

        assert exc_info.value.detail == "Invalid token payload"

    @pytest.mark.asyncio
    async def test_require_roles(self, manager, recruiter):
        dependency = require_roles({"admin", "manager"})

        assert await dependency(manager) == manager
        with pytest.raises(AccessDeniedException):
            await dependency(recruiter)


class TestSecurityEdgeCases:
    """Tests for edge cases in security functions."""

    def test_token_with_special_data(self):
        """Token with special characters in data should work."""
        data = {
            "sub": "user@example.com",
            "name": "José García",
            "role": "admin/superuser",
        }
        token = create_access_token(data)
        payload = decode_access_token(token)

        assert payload["sub"] == "user@example.com"
        assert payload["name"] == "José García"
