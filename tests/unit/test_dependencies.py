"""
Unit tests for Dependencies module.

This module contains unit tests for the authentication and realtime
dependency functions shared by the REST controllers and the gateway.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException, status

from app.core.dependencies import (
    get_current_user,
    get_hub,
    get_publisher,
    resolve_user,
    validate_token,
)
from app.realtime.publisher import EventPublisher


class TestValidateToken:
    """Test cases for validate_token dependency."""

    @pytest.mark.asyncio
    async def test_validate_token_success(self):
        """Test successful token validation."""
        mock_token = MagicMock()
        mock_token.credentials = "valid_jwt_token"
        mock_payload = {"sub": "user_123", "email": "test@example.com"}

        with patch("app.core.dependencies.auth.verify_token", AsyncMock(return_value=mock_payload)) as mock_verify:
            result = await validate_token(mock_token)

        assert result == mock_payload
        mock_verify.assert_awaited_once_with("valid_jwt_token")

    @pytest.mark.asyncio
    async def test_validate_token_none_token(self):
        """Test token validation with None token."""
        with pytest.raises(HTTPException) as exc_info:
            await validate_token(None)

        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
        assert exc_info.value.detail == "Authentication token is required"

    @pytest.mark.asyncio
    async def test_validate_token_empty_payload(self):
        mock_token = MagicMock()
        mock_token.credentials = "token"

        with patch("app.core.dependencies.auth.verify_token", AsyncMock(return_value={})):
            with pytest.raises(HTTPException) as exc_info:
                await validate_token(mock_token)

        assert exc_info.value.detail == "Invalid authentication token"

    @pytest.mark.asyncio
    async def test_validate_token_verifier_rejects(self):
        """Test that verifier HTTP errors pass through unchanged."""
        mock_token = MagicMock()
        mock_token.credentials = "expired"
        rejection = HTTPException(status_code=401, detail="Invalid authentication token: Signature has expired")

        with patch("app.core.dependencies.auth.verify_token", AsyncMock(side_effect=rejection)):
            with pytest.raises(HTTPException) as exc_info:
                await validate_token(mock_token)

        assert exc_info.value is rejection

    @pytest.mark.asyncio
    async def test_validate_token_unexpected_error(self):
        mock_token = MagicMock()
        mock_token.credentials = "token"

        with patch("app.core.dependencies.auth.verify_token", AsyncMock(side_effect=RuntimeError("boom"))):
            with pytest.raises(HTTPException) as exc_info:
                await validate_token(mock_token)

        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
        assert exc_info.value.detail == "Authentication failed"


class TestResolveUser:
    """Test cases for mapping token claims onto users."""

    @pytest.mark.asyncio
    async def test_creates_user_on_first_sight(self, test_db):
        """Test that an unknown subject is provisioned locally."""
        user = await resolve_user({"sub": "clerk_new", "email": "new@example.com", "username": "newbie"}, test_db)

        assert user.clerk_user_id == "clerk_new"
        assert user.username == "newbie"

    @pytest.mark.asyncio
    async def test_returns_existing_user(self, test_db, test_user):
        user = await resolve_user({"sub": test_user.clerk_user_id}, test_db)

        assert user.id == test_user.id

    @pytest.mark.asyncio
    async def test_missing_subject(self, test_db):
        with pytest.raises(HTTPException) as exc_info:
            await resolve_user({"email": "nobody@example.com"}, test_db)

        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
        assert exc_info.value.detail == "Invalid token payload - missing user ID"

    @pytest.mark.asyncio
    async def test_inactive_user(self, test_db, test_user):
        """Test that deactivated accounts are refused."""
        test_user.is_active = False
        await test_db.commit()

        with pytest.raises(HTTPException) as exc_info:
            await resolve_user({"sub": test_user.clerk_user_id}, test_db)

        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN


class TestGetCurrentUser:
    """Test cases for get_current_user dependency."""

    @pytest.mark.asyncio
    async def test_sets_request_state(self, test_db, test_user):
        request = MagicMock()

        user = await get_current_user(request, {"sub": test_user.clerk_user_id}, test_db)

        assert user.id == test_user.id
        assert request.state.user_id == test_user.id
        assert request.state.clerk_user_id == test_user.clerk_user_id

    @pytest.mark.asyncio
    async def test_unexpected_error_is_reported_as_service_error(self, test_db):
        """Test that lookup failures do not leak as authentication errors."""
        with patch("app.core.dependencies.resolve_user", AsyncMock(side_effect=RuntimeError("db down"))):
            with pytest.raises(HTTPException) as exc_info:
                await get_current_user(MagicMock(), {"sub": "clerk_x"}, test_db)

        assert exc_info.value.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc_info.value.detail == "Authentication service error"


class TestRealtimeDependencies:
    """Test cases for get_hub and get_publisher."""

    def test_get_hub_returns_application_hub(self, hub):
        connection = MagicMock()
        connection.app.state.hub = hub

        assert get_hub(connection) is hub

    def test_get_hub_before_startup(self):
        connection = MagicMock()
        connection.app.state = object()

        assert get_hub(connection) is None

    def test_get_publisher_wraps_hub(self, hub):
        publisher = get_publisher(hub)

        assert isinstance(publisher, EventPublisher)
        assert publisher.hub is hub

    @pytest.mark.asyncio
    async def test_publisher_without_hub_is_inert(self):
        publisher = get_publisher(None)

        assert publisher.to_user("someone", "dm:receive", {}) == 0
