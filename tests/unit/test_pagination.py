"""
Unit tests for pagination utilities.

Covers parameter validation and the ``paginate`` helper run against real
direct message rows.
"""

import pytest
from pydantic import ValidationError
from sqlalchemy.future import select

from app.shared.pagination import PaginationParams, paginate
from models import DirectMessage


async def seed_messages(db, sender, recipient, count):
    for i in range(count):
        db.add(DirectMessage(from_user_id=sender.id, to_user_id=recipient.id, text=f"note {i}"))
    await db.commit()


class TestPaginationParams:
    """Test cases for PaginationParams."""

    def test_defaults(self):
        params = PaginationParams()

        assert params.page == 1
        assert params.size == 20
        assert params.offset == 0

    @pytest.mark.parametrize("page, size, offset", [(1, 10, 0), (2, 10, 10), (5, 25, 100)])
    def test_offset(self, page, size, offset):
        assert PaginationParams(page=page, size=size).offset == offset

    @pytest.mark.parametrize("kwargs", [{"page": 0}, {"size": 0}, {"size": 101}])
    def test_bounds(self, kwargs):
        """Test that out-of-range values are rejected."""
        with pytest.raises(ValidationError):
            PaginationParams(**kwargs)


class TestPaginate:
    """Test cases for paginate."""

    @pytest.mark.asyncio
    async def test_first_page(self, test_db, test_user, test_user_2):
        await seed_messages(test_db, test_user, test_user_2, 5)
        query = select(DirectMessage).order_by(DirectMessage.created_at, DirectMessage.id)

        result = await paginate(test_db, query, PaginationParams(page=1, size=2))

        assert len(result["items"]) == 2
        assert result["total"] == 5
        assert result["total_pages"] == 3
        assert result["has_next"] is True
        assert result["has_prev"] is False

    @pytest.mark.asyncio
    async def test_last_page(self, test_db, test_user, test_user_2):
        await seed_messages(test_db, test_user, test_user_2, 5)
        query = select(DirectMessage).order_by(DirectMessage.created_at, DirectMessage.id)

        result = await paginate(test_db, query, PaginationParams(page=3, size=2))

        assert len(result["items"]) == 1
        assert result["has_next"] is False
        assert result["has_prev"] is True

    @pytest.mark.asyncio
    async def test_pages_do_not_overlap(self, test_db, test_user, test_user_2):
        await seed_messages(test_db, test_user, test_user_2, 4)
        query = select(DirectMessage).order_by(DirectMessage.created_at, DirectMessage.id)

        first = await paginate(test_db, query, PaginationParams(page=1, size=2))
        second = await paginate(test_db, query, PaginationParams(page=2, size=2))

        first_ids = {dm.id for dm in first["items"]}
        second_ids = {dm.id for dm in second["items"]}
        assert first_ids.isdisjoint(second_ids)
        assert len(first_ids | second_ids) == 4

    @pytest.mark.asyncio
    async def test_empty(self, test_db):
        """Test that an empty result has no pages."""
        result = await paginate(test_db, select(DirectMessage), PaginationParams())

        assert result["items"] == []
        assert result["total"] == 0
        assert result["total_pages"] == 0
        assert result["has_next"] is False

    @pytest.mark.asyncio
    async def test_filtered_total(self, test_db, test_user, test_user_2, test_user_3):
        await seed_messages(test_db, test_user, test_user_2, 3)
        await seed_messages(test_db, test_user, test_user_3, 2)
        query = select(DirectMessage).where(DirectMessage.to_user_id == test_user_3.id)

        result = await paginate(test_db, query, PaginationParams(size=10))

        assert result["total"] == 2
