"""Direct message service: one-to-one notes delivered live or fetched later."""

import logging
from uuid import UUID

from sqlalchemy import and_, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.config import settings
from app.domains.user.service import UserService
from app.exceptions.base import InvalidArgumentError, NotFoundError, PersistenceError
from app.realtime.publisher import EventPublisher
from app.schemas.direct_message import (
    DirectMessageHistory,
    DirectMessageResponse,
    DirectMessageUser,
)
from app.shared.pagination import PaginationParams, paginate
from models.direct_message import DirectMessage
from models.user import User

logger = logging.getLogger(__name__)


class DirectMessageService:
    """Service class for direct messages."""

    def __init__(self, db: AsyncSession, publisher: EventPublisher | None = None):
        self.db = db
        self.publisher = publisher or EventPublisher()

    async def send(self, sender: User, to_user_id: UUID, text: str) -> DirectMessageResponse:
        """
        Persist a direct message, then push ``dm:receive`` to the recipient's
        live connections and ``dm:sent`` back to the sender.

        A recipient without connections is not an error; the message waits in
        history.
        """
        text = (text or "").strip()
        if not text:
            raise InvalidArgumentError("Message text is required")
        if len(text) > settings.chat_max_message_length:
            raise InvalidArgumentError("Message is too long")
        if to_user_id == sender.id:
            raise InvalidArgumentError("Cannot send a direct message to yourself")

        recipient = await UserService(self.db).get_user_by_id(to_user_id)
        if recipient is None:
            raise NotFoundError("Recipient user not found")

        dm = DirectMessage(
            from_user_id=sender.id,
            to_user_id=recipient.id,
            from_user=sender,
            to_user=recipient,
            text=text,
            is_read=False,
        )
        try:
            self.db.add(dm)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to store direct message: %s", e)
            raise PersistenceError() from e

        payload = self.to_response(dm)
        wire = payload.to_wire()
        delivered = self.publisher.to_user(recipient.id, "dm:receive", wire)
        if not delivered:
            logger.debug("Recipient %s offline; direct message %s kept for later", recipient.id, dm.id)
        if self.publisher.origin is not None:
            self.publisher.to_origin("dm:sent", wire)
        else:
            self.publisher.to_user(sender.id, "dm:sent", wire)
        return payload

    async def history(
        self, user: User, other_user_id: UUID, pagination: PaginationParams
    ) -> DirectMessageHistory:
        """Conversation with another user, oldest first. Incoming messages are marked read."""
        query = (
            select(DirectMessage)
            .where(
                or_(
                    and_(
                        DirectMessage.from_user_id == user.id,
                        DirectMessage.to_user_id == other_user_id,
                    ),
                    and_(
                        DirectMessage.from_user_id == other_user_id,
                        DirectMessage.to_user_id == user.id,
                    ),
                )
            )
            .order_by(DirectMessage.created_at, DirectMessage.id)
        )
        result = await paginate(self.db, query, pagination)

        try:
            await self.db.execute(
                update(DirectMessage)
                .where(
                    DirectMessage.from_user_id == other_user_id,
                    DirectMessage.to_user_id == user.id,
                    DirectMessage.is_read.is_(False),
                )
                .values(is_read=True)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError() from e

        return DirectMessageHistory(
            messages=[self.to_response(dm) for dm in result["items"]],
            total=result["total"],
            page=result["page"],
            size=result["size"],
            has_next=result["has_next"],
        )

    @staticmethod
    def _user(user: User) -> DirectMessageUser:
        profile = user.loaded_profile
        return DirectMessageUser(
            id=user.id,
            username=user.username,
            email=user.email,
            avatar=profile.avatar if profile else None,
        )

    def to_response(self, dm: DirectMessage) -> DirectMessageResponse:
        return DirectMessageResponse(
            id=dm.id,
            from_=self._user(dm.from_user),
            to=self._user(dm.to_user),
            text=dm.text,
            is_read=dm.is_read,
            created_at=dm.created_at,
        )
