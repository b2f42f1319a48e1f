# app/domains/user/service.py
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions.base import NotFoundError
from models import User


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_clerk_id(self, clerk_user_id: str) -> Optional[User]:
        """Get a user by Clerk user ID."""
        result = await self.db.execute(select(User).where(User.clerk_user_id == clerk_user_id))
        return result.scalar_one_or_none()

    async def create_user(self, clerk_user_id: str, email: str, username: str = None) -> User:
        """Create a new user."""
        user = User(clerk_user_id=clerk_user_id, email=email, username=username)

        try:
            self.db.add(user)
            await self.db.commit()
            await self.db.refresh(user)
            return user
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

    async def get_or_create_user(self, clerk_user_id: str, clerk_payload: dict) -> User:
        """Get existing user or create new one from Clerk payload."""
        user = await self.get_user_by_clerk_id(clerk_user_id)
        if not user:
            user = await self.create_user(
                clerk_user_id=clerk_user_id,
                email=clerk_payload.get("email") or f"{clerk_user_id}@users.invalid",
                username=clerk_payload.get("username"),
            )
        return user

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        """Get a user by ID."""
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def require_user(self, user_id: UUID) -> User:
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def get_users_by_ids(self, user_ids: list[UUID]) -> list[User]:
        """Get the users that exist among ``user_ids``, in the order given."""
        if not user_ids:
            return []
        result = await self.db.execute(select(User).where(User.id.in_(user_ids)))
        found = {user.id: user for user in result.scalars().all()}
        return [found[uid] for uid in user_ids if uid in found]

    async def set_presence(self, user_id: UUID, is_online: bool) -> Optional[User]:
        """Persist the user's latest presence transition."""
        user = await self.get_user_by_id(user_id)
        if not user:
            return None

        try:
            user.is_online = is_online
            user.last_active_at = datetime.utcnow()
            await self.db.commit()
            return user
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e
