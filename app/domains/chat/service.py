"""Chat service layer: the mutate-then-publish operations on the chat aggregate."""

import logging
import math
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.domains.activity.service import ActivityService
from app.domains.user.service import UserService
from app.exceptions.base import (
    InvalidArgumentError,
    InvalidStateError,
    PermissionDeniedError,
    PersistenceError,
)
from app.exceptions.chat import (
    AlreadyParticipantError,
    ChatNotFoundError,
    GroupOnlyOperationError,
    ParticipantNotFoundError,
)
from app.realtime.publisher import EventPublisher
from app.schemas.chat import (
    ChatDetailResponse,
    ChatListPagination,
    ChatListResponse,
    ChatResponse,
    ChatSummaryResponse,
    GroupInfoResponse,
    LastMessagePreview,
    MessageResponse,
    MessagesPagination,
    ParticipantResponse,
    ReadReceiptResponse,
    SenderResponse,
)
from app.shared.locks import KeyedLock, chat_locks
from app.shared.pagination import PaginationParams, paginate
from models.chat import (
    Chat,
    ChatMessage,
    ChatParticipant,
    ChatType,
    MessageType,
    ParticipantRole,
    direct_key_for,
)
from models.user import User

logger = logging.getLogger(__name__)


class ChatService:
    """
    Service class for chat business logic.

    Every mutation follows the same protocol: take the chat's lock, load the
    aggregate, apply the change through the aggregate's methods, commit,
    release the lock and only then publish. Publishing never fails the
    operation.
    """

    def __init__(
        self,
        db: AsyncSession,
        publisher: EventPublisher | None = None,
        locks: KeyedLock = chat_locks,
    ):
        self.db = db
        self.publisher = publisher or EventPublisher()
        self.locks = locks
        self.users = UserService(db)
        self.activities = ActivityService(db)

    # ===== Creation =====

    async def create_direct(self, user: User, recipient_id: UUID) -> tuple[Chat, bool]:
        """Return the pair's direct chat, creating or reopening it. The flag is True when newly created."""
        recipient = await self.users.get_user_by_id(recipient_id)
        if recipient is None:
            raise ParticipantNotFoundError("Recipient user not found")
        if recipient.id == user.id:
            raise InvalidArgumentError("Cannot create chat with yourself")

        key = direct_key_for(user.id, recipient.id)
        created = False
        rejoined = []
        async with self.locks.hold(f"direct:{key}"):
            result = await self.db.execute(
                select(Chat)
                .where(Chat.direct_key == key)
                .execution_options(populate_existing=True)
            )
            chat = result.scalar_one_or_none()
            if chat is None:
                chat = Chat.new_direct(user, recipient)
                self.db.add(chat)
                created = True
            else:
                for member in (user, recipient):
                    if not chat.is_participant(member.id):
                        chat.add_participant(member)
                        rejoined.append(member.id)
                chat.is_active = True
            await self._commit()

        if created:
            self.publisher.to_user(recipient.id, "chat:updated", self.chat_payload(chat, recipient.id).to_wire())
        elif rejoined:
            self.publish_participants(chat)
        return chat, created

    async def create_group(
        self,
        created_by: User,
        name: str,
        description: str | None = None,
        participant_ids: List[UUID] | None = None,
        related_activity_id: UUID | None = None,
        max_members: int | None = None,
    ) -> Chat:
        """Create a group chat owned by ``created_by``. Unknown participant ids are skipped."""
        activity = None
        if related_activity_id is not None:
            activity = await self.activities.require_activity(related_activity_id)

        ids = [uid for uid in dict.fromkeys(participant_ids or []) if uid != created_by.id]
        members = await self.users.get_users_by_ids(ids)

        chat = Chat.new_group(
            created_by,
            members,
            name=name,
            description=description or "",
            max_members=max_members or settings.chat_default_max_members,
            related_activity_id=related_activity_id,
        )
        chat.related_activity = activity
        if activity is not None:
            self.activities.link_chat(activity, chat.id)

        self.db.add(chat)
        await self._commit()
        logger.info("Created group chat %s with %d participants", chat.id, len(chat.participants))

        for member in members:
            self.publisher.to_user(member.id, "chat:updated", self.chat_payload(chat, member.id).to_wire())
        return chat

    # ===== Reads =====

    async def list_chats(
        self,
        user: User,
        chat_type: ChatType | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> ChatListResponse:
        """The user's inbox, most recently active first."""
        query = (
            select(Chat)
            .join(ChatParticipant, ChatParticipant.chat_id == Chat.id)
            .where(ChatParticipant.user_id == user.id, Chat.is_active.is_(True))
        )
        if chat_type is not None:
            query = query.where(Chat.type == chat_type)
        query = query.order_by(Chat.last_message_at.desc(), Chat.id)

        pagination = PaginationParams(page=page, size=limit or settings.chat_default_list_limit)
        result = await paginate(self.db, query, pagination)
        chats = result["items"]

        last_ids = [chat.last_message_id for chat in chats if chat.last_message_id is not None]
        last_messages = {}
        if last_ids:
            rows = await self.db.execute(select(ChatMessage).where(ChatMessage.id.in_(last_ids)))
            last_messages = {message.id: message for message in rows.scalars().all()}

        summaries = []
        for chat in chats:
            base = self.chat_payload(chat, user.id)
            preview = None
            last = last_messages.get(chat.last_message_id)
            if last is not None:
                preview = LastMessagePreview(
                    content=last.content,
                    type=last.type,
                    sender=self.sender_payload(last),
                    created_at=last.created_at,
                )
            summaries.append(ChatSummaryResponse(**base.model_dump(), last_message_preview=preview))

        return ChatListResponse(
            chats=summaries,
            pagination=ChatListPagination(
                total=result["total"],
                page=result["page"],
                limit=result["size"],
                total_pages=result["total_pages"],
                has_next=result["has_next"],
                has_prev=result["has_prev"],
            ),
        )

    async def get_chat(
        self, chat_id: UUID, user: User, page: int = 1, limit: int | None = None
    ) -> ChatDetailResponse:
        """Chat with one page of history counted from the newest message."""
        limit = min(limit or settings.chat_default_history_limit, settings.chat_max_history_limit)
        chat = await self._get_chat(chat_id, with_messages=True)
        self.activities.check_chat_access(chat.related_activity, chat, user.id)
        chat.require_participant(user.id)

        if chat.is_group and chat.participants and chat.owner is None:
            chat = await self._repair_owner(chat_id, user)

        messages, total = chat.history_page(page, limit)
        total_pages = math.ceil(total / limit) if total else 0
        base = self.chat_payload(chat, user.id)
        return ChatDetailResponse(
            **base.model_dump(),
            messages=[self.message_payload(m) for m in messages],
            messages_pagination=MessagesPagination(
                total=total,
                page=page,
                limit=limit,
                total_pages=total_pages,
                has_more=page < total_pages,
            ),
        )

    async def _repair_owner(self, chat_id: UUID, actor: User) -> Chat:
        async with self.locks.hold(chat_id):
            chat = await self._get_chat(chat_id, with_messages=True)
            successor = chat.ensure_owner()
            if successor is not None:
                notice = chat.add_system_message(
                    actor,
                    f"System: Ownership transferred to {successor.user.username or 'new owner'} automatically.",
                )
                await self._commit()
                logger.info("Repaired chat %s: %s promoted to owner", chat.id, successor.user_id)

        if successor is not None:
            self.publish_participants(chat)
            self.publish_system_messages(chat, [notice])
        return chat

    async def get_participants(self, chat_id: UUID, user: User) -> List[ParticipantResponse]:
        chat = await self._get_chat(chat_id)
        chat.require_participant(user.id)
        return self.participants_payload(chat)

    async def join_chat(self, chat_id: UUID, user: User) -> Chat:
        """Access check for subscribing to a chat's realtime topic."""
        chat = await self._get_chat(chat_id)
        self.activities.check_chat_access(chat.related_activity, chat, user.id)
        chat.require_participant(user.id)
        return chat

    async def get_unread_count(self, chat_id: UUID, user: User) -> int:
        chat = await self._get_chat(chat_id, with_messages=True)
        return chat.unread_count_for(user.id)

    # ===== Messages =====

    async def add_message(
        self,
        chat_id: UUID,
        sender: User,
        content: str,
        message_type: MessageType | str = MessageType.TEXT,
        file_url: str | None = None,
    ) -> MessageResponse:
        """Append a message and fan it out: ``message:receive`` to the chat, ``message:sent`` to the origin."""
        message_type = self._message_type(message_type)
        if content and len(content) > settings.chat_max_message_length:
            raise InvalidArgumentError(
                "Message is too long",
                details={"max_length": settings.chat_max_message_length},
            )

        async with self.locks.hold(chat_id):
            chat = await self._get_chat(chat_id, with_messages=True)
            message = chat.add_message(sender, content, message_type, file_url)
            await self._commit()

        payload = self.message_payload(message).to_wire()
        self.publisher.to_chat(chat.id, "message:receive", payload)
        self.publisher.to_origin("message:sent", payload)
        return self.message_payload(message)

    async def edit_message(
        self, chat_id: UUID, message_id: UUID, actor: User, content: str
    ) -> MessageResponse:
        if content and len(content) > settings.chat_max_message_length:
            raise InvalidArgumentError("Message is too long")

        async with self.locks.hold(chat_id):
            chat = await self._get_chat(chat_id, with_messages=True)
            chat.require_participant(actor.id)
            message = chat.edit_message(message_id, actor.id, content)
            await self._commit()

        response = self.message_payload(message)
        self.publisher.to_chat(chat.id, "message:edited", response.to_wire(), include_origin=True)
        return response

    async def delete_message(self, chat_id: UUID, message_id: UUID, actor: User) -> MessageResponse:
        async with self.locks.hold(chat_id):
            chat = await self._get_chat(chat_id, with_messages=True)
            chat.require_participant(actor.id)
            message = chat.delete_message(message_id, actor.id)
            await self._commit()

        self.publisher.to_chat(
            chat.id,
            "message:deleted",
            {
                "chatId": str(chat.id),
                "messageId": str(message.id),
                "lastMessageId": str(chat.last_message_id) if chat.last_message_id else None,
            },
            include_origin=True,
        )
        return self.message_payload(message)

    async def mark_read(
        self, chat_id: UUID, user: User, message_ids: Optional[List[UUID]] = None
    ) -> ReadReceiptResponse:
        async with self.locks.hold(chat_id):
            chat = await self._get_chat(chat_id, with_messages=True)
            participant = chat.mark_read(user.id, message_ids)
            await self._commit()

        receipt = ReadReceiptResponse(
            chat_id=chat.id,
            user_id=user.id,
            message_ids=message_ids or [],
            last_read_seq=participant.last_read_seq,
            unread_count=participant.unread_count,
        )
        self.publisher.to_chat(chat.id, "message:read_update", receipt.to_wire())
        return receipt

    # ===== Participants =====

    async def add_participant(
        self,
        chat_id: UUID,
        actor: User,
        user_id: UUID,
        role: ParticipantRole | str = ParticipantRole.MEMBER,
    ) -> Chat:
        role = self._assignable_role(role)
        user = await self.users.get_user_by_id(user_id)
        if user is None:
            raise ParticipantNotFoundError("User not found")

        async with self.locks.hold(chat_id):
            chat = await self._get_chat(chat_id, with_messages=True)
            if not chat.is_group:
                raise GroupOnlyOperationError("Can only add participants to group chats")
            if not chat.has_admin_rights(actor.id):
                raise PermissionDeniedError("Only admins can add participants")
            if chat.is_participant(user.id):
                raise AlreadyParticipantError()
            if chat.group_max_members and len(chat.participants) >= chat.group_max_members:
                raise InvalidStateError("Group has reached its member limit")

            chat.add_participant(user, role)
            notice = chat.add_system_message(actor, f"{user.email} has been added to the chat")
            await self._commit()

        self.publish_participants(chat)
        self.publish_system_messages(chat, [notice])
        return chat

    async def remove_participant(self, chat_id: UUID, actor: User, user_id: UUID) -> Chat | None:
        """
        Remove ``user_id`` from a group chat.

        Ownership succession happens in the same commit as the removal. When
        the last participant goes the chat is deleted and None is returned.
        """
        async with self.locks.hold(chat_id):
            chat = await self._get_chat(chat_id, with_messages=True)
            if not chat.is_group:
                raise GroupOnlyOperationError("Can only remove participants from group chats")
            chat.require_participant(actor.id)
            is_self = actor.id == user_id
            if not is_self and not chat.has_admin_rights(actor.id):
                raise PermissionDeniedError("Only admins can remove other participants")

            target = chat.find_participant(user_id)
            if target is None:
                raise ParticipantNotFoundError()
            target_user = target.user

            departure = chat.remove_participant(user_id)
            if chat.related_activity is not None:
                self.activities.remove_participant(chat.related_activity, user_id)

            deleted = not chat.participants
            notices = []
            if deleted:
                await self._delete_chat(chat)
            else:
                if departure.ownership_transferred:
                    successor = departure.successor
                    notices.append(
                        chat.add_system_message(
                            actor,
                            f"Ownership has been transferred to {successor.user.username or 'new owner'}",
                        )
                    )
                    logger.info("Chat %s ownership passed to %s", chat.id, successor.user_id)
                who = target_user.email if target_user is not None else "User"
                verb = "has left the chat" if is_self else "has been removed from the chat"
                notices.append(chat.add_system_message(actor, f"{who} {verb}"))
            await self._commit()

        if deleted:
            self.publisher.to_chat(chat.id, "chat:deleted", {"chatId": str(chat.id)}, include_origin=True)
            self.publisher.close_chat(chat.id)
            return None

        self.publish_participants(chat)
        self.publisher.drop_user(chat.id, user_id)
        self.publish_system_messages(chat, notices)
        return chat

    async def leave_chat(self, chat_id: UUID, user: User) -> Chat | None:
        """Leave a chat. A direct chat left by one side is hidden until reopened."""
        chat = await self._get_chat(chat_id)
        chat.require_participant(user.id)
        if chat.is_group:
            return await self.remove_participant(chat_id, user, user.id)

        async with self.locks.hold(chat_id):
            chat = await self._get_chat(chat_id, with_messages=True)
            chat.require_participant(user.id)
            chat.remove_participant(user.id)
            deleted = not chat.participants
            if deleted:
                await self._delete_chat(chat)
            elif len(chat.participants) < 2:
                chat.is_active = False
            await self._commit()

        if deleted:
            self.publisher.to_chat(chat.id, "chat:deleted", {"chatId": str(chat.id)}, include_origin=True)
            self.publisher.close_chat(chat.id)
            return None

        self.publish_participants(chat)
        self.publisher.drop_user(chat.id, user.id)
        return chat

    async def update_role(
        self, chat_id: UUID, actor: User, user_id: UUID, role: ParticipantRole | str
    ) -> Chat:
        role = self._assignable_role(role)
        async with self.locks.hold(chat_id):
            chat = await self._get_chat(chat_id)
            if not chat.is_group:
                raise GroupOnlyOperationError("Roles only apply to group chats")
            if not chat.has_admin_rights(actor.id):
                raise PermissionDeniedError("Only admins can update roles")
            chat.change_role(user_id, role)
            await self._commit()

        self.publish_participants(chat)
        return chat

    async def set_muted(self, chat_id: UUID, user: User, is_muted: bool) -> ChatParticipant:
        async with self.locks.hold(chat_id):
            chat = await self._get_chat(chat_id)
            participant = chat.require_participant(user.id)
            participant.is_muted = is_muted
            await self._commit()

        self.publisher.to_user(user.id, "chat:updated", {"chatId": str(chat.id), "isMuted": is_muted})
        return participant

    async def update_group_info(
        self,
        chat_id: UUID,
        actor: User,
        name: str | None = None,
        description: str | None = None,
        max_members: int | None = None,
    ) -> Chat:
        async with self.locks.hold(chat_id):
            chat = await self._get_chat(chat_id)
            if not chat.is_group:
                raise GroupOnlyOperationError("Can only update group chats")
            if not chat.has_admin_rights(actor.id):
                raise PermissionDeniedError("Only admins can update group info")

            if name is not None:
                name = name.strip()
                if not name:
                    raise InvalidArgumentError("Group name is required")
                chat.group_name = name
            if description is not None:
                description = description.strip()
                chat.group_description = description
            if max_members is not None:
                if max_members < len(chat.participants):
                    raise InvalidArgumentError(
                        "Max members cannot be lower than the current participant count",
                        details={"participants": len(chat.participants)},
                    )
                chat.group_max_members = max_members

            if chat.related_activity is not None:
                self.activities.sync_group_info(chat.related_activity, name, description, max_members)
            await self._commit()

        self.publisher.to_chat(chat.id, "chat:updated", self.chat_payload(chat).to_wire(), include_origin=True)
        return chat

    async def destroy_chat(self, chat_id: UUID, actor: User) -> None:
        """Hard-delete a chat. Owner only."""
        async with self.locks.hold(chat_id):
            chat = await self._get_chat(chat_id, with_messages=True)
            participant = chat.find_participant(actor.id)
            if participant is None or participant.role != ParticipantRole.OWNER:
                raise PermissionDeniedError("Permission denied. Only the group owner can delete this group.")
            await self._delete_chat(chat, delete_activity=settings.chat_destroy_deletes_activity)
            await self._commit()

        self.publisher.to_chat(chat.id, "chat:deleted", {"chatId": str(chat.id)}, include_origin=True)
        self.publisher.close_chat(chat.id)

    # ===== Payloads =====

    def is_online(self, user: User) -> bool:
        hub = self.publisher.hub
        if hub is not None:
            return hub.is_online(user.id)
        return bool(user.is_online)

    def participant_payload(self, participant: ChatParticipant) -> ParticipantResponse:
        user = participant.user
        profile = user.loaded_profile
        return ParticipantResponse(
            id=user.id,
            email=user.email,
            username=user.username,
            role=participant.role,
            is_online=self.is_online(user),
            is_muted=participant.is_muted,
            avatar=(profile.avatar if profile else None) or "",
            bio=(profile.bio if profile else None) or "",
            created_at=user.created_at,
            joined_at=participant.joined_at,
        )

    def participants_payload(self, chat: Chat) -> List[ParticipantResponse]:
        return [self.participant_payload(p) for p in chat.participants if p.user is not None]

    def publish_participants(self, chat: Chat) -> None:
        participants = [p.to_wire() for p in self.participants_payload(chat)]
        self.publisher.to_chat(
            chat.id,
            "chat:participants",
            {"chatId": str(chat.id), "participants": participants},
            include_origin=True,
        )

    def publish_system_messages(self, chat: Chat, messages: List[ChatMessage]) -> None:
        """Membership and ownership notices reach every subscriber, the acting connection included."""
        for message in messages:
            self.publisher.to_chat(
                chat.id, "message:receive", self.message_payload(message).to_wire(), include_origin=True
            )

    @staticmethod
    def sender_payload(message: ChatMessage) -> SenderResponse:
        sender = message.sender
        if sender is None:
            return SenderResponse.deleted()
        profile = sender.loaded_profile
        return SenderResponse(
            id=str(sender.id),
            username=sender.username,
            email=sender.email,
            avatar=(profile.avatar if profile else None) or "",
        )

    def message_payload(self, message: ChatMessage) -> MessageResponse:
        return MessageResponse(
            id=message.id,
            chat_id=message.chat_id,
            seq=message.seq,
            sender=self.sender_payload(message),
            content=message.content,
            type=message.type,
            file_url=message.file_url,
            is_edited=message.is_edited,
            edited_at=message.edited_at,
            is_deleted=message.is_deleted,
            deleted_at=message.deleted_at,
            created_at=message.created_at,
        )

    def chat_payload(self, chat: Chat, viewer_id: UUID | None = None) -> ChatResponse:
        group_info = None
        if chat.is_group:
            activity = chat.related_activity if chat.related_activity_id else None
            group_info = GroupInfoResponse(
                name=chat.group_name,
                description=chat.group_description or "",
                max_members=chat.group_max_members,
                related_activity_id=chat.related_activity_id,
                related_activity_title=activity.title if activity is not None else None,
            )

        viewer = chat.find_participant(viewer_id) if viewer_id is not None else None
        return ChatResponse(
            id=chat.id,
            type=chat.type,
            participants=self.participants_payload(chat),
            group_info=group_info,
            last_message_id=chat.last_message_id,
            last_message_at=chat.last_message_at,
            is_active=chat.is_active,
            created_at=chat.created_at,
            unread_count=viewer.unread_count if viewer is not None else 0,
            is_muted=viewer.is_muted if viewer is not None else False,
        )

    # ===== Helpers =====

    async def _get_chat(self, chat_id: UUID, with_messages: bool = False) -> Chat:
        query = select(Chat).where(Chat.id == chat_id).execution_options(populate_existing=True)
        if with_messages:
            query = query.options(selectinload(Chat.messages))
        result = await self.db.execute(query)
        chat = result.scalar_one_or_none()
        if chat is None:
            raise ChatNotFoundError()
        return chat

    async def _delete_chat(self, chat: Chat, delete_activity: bool = False) -> None:
        activity = chat.related_activity if chat.related_activity_id else None
        if activity is not None:
            if delete_activity:
                await self.activities.delete_activity(activity)
            else:
                activity.chat_id = None
        await self.db.delete(chat)
        logger.info("Deleted chat %s", chat.id)

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to persist chat change: %s", e)
            raise PersistenceError() from e

    @staticmethod
    def _message_type(value) -> MessageType:
        try:
            return MessageType(value)
        except ValueError as e:
            raise InvalidArgumentError(
                "Invalid message type",
                details={"allowed": [t.value for t in MessageType]},
            ) from e

    @staticmethod
    def _assignable_role(value) -> ParticipantRole:
        try:
            role = ParticipantRole(value)
        except ValueError as e:
            raise InvalidArgumentError("Invalid role. Must be admin or member") from e
        if role not in (ParticipantRole.ADMIN, ParticipantRole.MEMBER):
            raise InvalidArgumentError("Invalid role. Must be admin or member")
        return role
