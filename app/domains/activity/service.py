# app/domains/activity/service.py
"""Boundary to the activity collaborator as used by group chats."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import ActivityFullChatPolicy, settings
from app.exceptions.base import NotFoundError, PermissionDeniedError
from models import Activity

logger = logging.getLogger(__name__)


class ActivityService:
    """
    Reads and updates the parts of an activity a group chat depends on.

    Methods here never commit; they run inside the caller's unit of work so
    that chat and activity changes land together.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_activity(self, activity_id: UUID) -> Optional[Activity]:
        result = await self.db.execute(select(Activity).where(Activity.id == activity_id))
        return result.scalar_one_or_none()

    async def require_activity(self, activity_id: UUID) -> Activity:
        activity = await self.get_activity(activity_id)
        if activity is None:
            raise NotFoundError("Related activity not found")
        return activity

    @staticmethod
    def is_full(activity: Activity) -> bool:
        if not activity.max_participants:
            return False
        return len(activity.participants) >= activity.max_participants

    @staticmethod
    def is_participant(activity: Activity, user_id: UUID) -> bool:
        return any(p.user_id == user_id for p in activity.participants)

    def link_chat(self, activity: Activity, chat_id: UUID) -> None:
        activity.chat_id = chat_id

    def remove_participant(self, activity: Activity, user_id: UUID) -> bool:
        """Pull ``user_id`` out of the activity. Returns False if it was not a member."""
        participant = next((p for p in activity.participants if p.user_id == user_id), None)
        if participant is None:
            return False
        activity.participants.remove(participant)
        return True

    def sync_group_info(
        self,
        activity: Activity,
        name: str | None = None,
        description: str | None = None,
        max_members: int | None = None,
    ) -> None:
        """Mirror group info edits onto the related activity."""
        if name is not None:
            activity.title = name
        if description is not None:
            activity.description = description
        if max_members is not None:
            activity.max_participants = max_members

    async def delete_activity(self, activity: Activity) -> None:
        logger.info("Deleting activity %s with its chat", activity.id)
        await self.db.delete(activity)

    def check_chat_access(self, activity: Activity | None, chat, user_id: UUID) -> None:
        """
        Apply the full-activity gate to a chat read.

        Raises PermissionDeniedError when the configured policy denies
        ``user_id`` access to ``chat`` because its activity is full.
        """
        policy = settings.activity_full_chat_policy
        if policy == ActivityFullChatPolicy.off or activity is None:
            return
        if not self.is_full(activity) or self.is_participant(activity, user_id):
            return
        if user_id in (activity.created_by_id, chat.created_by_id):
            return

        in_chat = chat.is_participant(user_id)
        if policy == ActivityFullChatPolicy.newcomers and in_chat:
            return
        raise PermissionDeniedError("This activity is full")
