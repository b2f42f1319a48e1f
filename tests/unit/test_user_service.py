"""
Unit tests for UserService.

This module contains unit tests for the UserService class: account
provisioning from token claims, bulk lookup and persisted presence.
"""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.domains.user.service import UserService
from app.exceptions.base import NotFoundError


class TestUserService:
    """Test cases for UserService."""

    @pytest.mark.asyncio
    async def test_get_user_by_clerk_id_existing_user(self, test_db, test_user):
        """Test getting an existing user by clerk_user_id."""
        result = await UserService(test_db).get_user_by_clerk_id(test_user.clerk_user_id)

        assert result.id == test_user.id

    @pytest.mark.asyncio
    async def test_get_user_by_clerk_id_nonexistent_user(self, test_db):
        assert await UserService(test_db).get_user_by_clerk_id("nonexistent_clerk_id") is None

    @pytest.mark.asyncio
    async def test_create_user_success(self, test_db):
        """Test successful user creation."""
        clerk_user_id = f"clerk_user_{uuid.uuid4()}"

        result = await UserService(test_db).create_user(
            clerk_user_id=clerk_user_id, email="newuser@example.com", username="newuser"
        )

        assert result.id is not None
        assert result.is_active is True
        assert result.is_online is False

    @pytest.mark.asyncio
    async def test_create_user_database_error(self, test_db):
        """Test that write failures roll back and propagate."""
        service = UserService(test_db)

        with patch.object(test_db, "commit", AsyncMock(side_effect=SQLAlchemyError("insert failed"))):
            with pytest.raises(SQLAlchemyError):
                await service.create_user(clerk_user_id="clerk_err", email="err@example.com")

    @pytest.mark.asyncio
    async def test_get_or_create_existing(self, test_db, test_user):
        result = await UserService(test_db).get_or_create_user(test_user.clerk_user_id, {"email": "other@example.com"})

        assert result.id == test_user.id
        assert result.email == test_user.email

    @pytest.mark.asyncio
    async def test_get_or_create_without_email_claim(self, test_db):
        """Test that tokens without an email still provision an account."""
        result = await UserService(test_db).get_or_create_user("clerk_noemail", {"sub": "clerk_noemail"})

        assert result.email == "clerk_noemail@users.invalid"
        assert result.username is None

    @pytest.mark.asyncio
    async def test_get_user_by_id(self, test_db, test_user):
        service = UserService(test_db)

        assert (await service.get_user_by_id(test_user.id)).id == test_user.id
        assert await service.get_user_by_id(uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_require_user_missing(self, test_db):
        with pytest.raises(NotFoundError) as exc_info:
            await UserService(test_db).require_user(uuid.uuid4())

        assert exc_info.value.message == "User not found"

    @pytest.mark.asyncio
    async def test_get_users_by_ids_keeps_order_and_skips_unknown(self, test_db, test_user, test_user_2, test_user_3):
        """Test bulk lookup used when creating groups."""
        ids = [test_user_3.id, uuid.uuid4(), test_user.id]

        result = await UserService(test_db).get_users_by_ids(ids)

        assert [user.id for user in result] == [test_user_3.id, test_user.id]

    @pytest.mark.asyncio
    async def test_get_users_by_ids_empty(self, test_db):
        assert await UserService(test_db).get_users_by_ids([]) == []

    @pytest.mark.asyncio
    async def test_set_presence(self, test_db, test_user):
        """Test that presence transitions are persisted with a timestamp."""
        service = UserService(test_db)

        online = await service.set_presence(test_user.id, True)
        assert online.is_online is True
        assert online.last_active_at is not None

        offline = await service.set_presence(test_user.id, False)
        assert offline.is_online is False

    @pytest.mark.asyncio
    async def test_set_presence_unknown_user(self, test_db):
        assert await UserService(test_db).set_presence(uuid.uuid4(), True) is None
