"""Unit tests for bearer token verification."""

from unittest.mock import patch

import jwt
import pytest
from fastapi import HTTPException

from app.core.config import settings
from app.core.security import ClerkAuthenticator

SIGNING_KEY = "clerk-test-signing-key-0123456789abcdef"


class TestClerkAuthenticator:
    """Test cases for ClerkAuthenticator.verify_token."""

    @pytest.mark.asyncio
    async def test_decodes_without_secret(self):
        """Without a configured secret the claims are read unverified."""
        token = jwt.encode({"sub": "clerk_dev", "email": "dev@example.com"}, "some-other-key-0123456789abcdefgh")

        with patch.object(settings, "clerk_secret_key", None):
            payload = await ClerkAuthenticator().verify_token(token)

        assert payload["sub"] == "clerk_dev"

    @pytest.mark.asyncio
    async def test_verifies_with_secret(self):
        token = jwt.encode({"sub": "clerk_prod"}, SIGNING_KEY, algorithm="HS256")

        with patch.object(settings, "clerk_secret_key", SIGNING_KEY):
            payload = await ClerkAuthenticator().verify_token(token)

        assert payload == {"sub": "clerk_prod"}

    @pytest.mark.asyncio
    async def test_rejects_wrong_signature(self):
        token = jwt.encode({"sub": "clerk_forged"}, "attacker-key-0123456789abcdefghijk", algorithm="HS256")

        with patch.object(settings, "clerk_secret_key", SIGNING_KEY):
            with pytest.raises(HTTPException) as exc_info:
                await ClerkAuthenticator().verify_token(token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail.startswith("Invalid authentication token")

    @pytest.mark.asyncio
    async def test_rejects_malformed_token(self):
        with patch.object(settings, "clerk_secret_key", None):
            with pytest.raises(HTTPException):
                await ClerkAuthenticator().verify_token("not-a-jwt")
