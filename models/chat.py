"""
Chat aggregate: a chat together with its participants and message log.

A chat is mutated and persisted as one consistency unit. Participants are kept
in join order and messages in log order (``seq``); neither collection is ever
reordered. Code outside this module changes a chat only through the methods of
:class:`Chat`, which keep the ownership and unread invariants intact.
"""

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship

from app.exceptions.base import InvalidArgumentError, InvalidStateError, PermissionDeniedError
from app.exceptions.chat import (
    AlreadyParticipantError,
    MessageNotFoundError,
    NotParticipantError,
    ParticipantNotFoundError,
)

from .base import UUID, BaseModel

DELETED_MESSAGE_CONTENT = "[Message deleted]"


class ChatType(str, enum.Enum):
    """Chat type enumeration."""

    DIRECT = "direct"
    GROUP = "group"


class ParticipantRole(str, enum.Enum):
    """Participant role enumeration. Only group chats assign roles."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class MessageType(str, enum.Enum):
    """Message type enumeration."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


ADMIN_ROLES = (ParticipantRole.OWNER, ParticipantRole.ADMIN)


def direct_key_for(user_a: uuid.UUID, user_b: uuid.UUID) -> str:
    """Key identifying the unordered pair of a direct chat."""
    first, second = sorted((str(user_a), str(user_b)))
    return f"{first}:{second}"


@dataclass
class Departure:
    """Outcome of removing a participant from a chat."""

    removed: "ChatParticipant"
    successor: "ChatParticipant | None" = None

    @property
    def ownership_transferred(self) -> bool:
        return self.successor is not None


class Chat(BaseModel):
    """
    Represents a direct or group chat.

    :ivar type: ``direct`` or ``group``.
    :ivar direct_key: Sorted user-pair key; set for direct chats only.
    :ivar group_name: Group display name.
    :ivar group_description: Group description.
    :ivar group_max_members: Maximum number of participants in a group.
    :ivar related_activity_id: Optional activity the group chat belongs to.
    :ivar last_message_id: Latest non-deleted message in the log, if any.
    :ivar last_message_at: Timestamp used to order the inbox.
    :ivar message_seq: Sequence number of the newest message in the log.
    :ivar is_active: Visibility flag.
    """

    __tablename__ = "chats"

    type = Column(Enum(ChatType), nullable=False)
    direct_key = Column(String(80), unique=True, nullable=True)

    group_name = Column(String(255), nullable=True)
    group_description = Column(Text, nullable=True)
    group_max_members = Column(Integer, nullable=True)
    related_activity_id = Column(
        UUID(), ForeignKey("activities.id", ondelete="SET NULL"), nullable=True
    )

    created_by_id = Column(UUID(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    last_message_id = Column(UUID(), nullable=True)
    last_message_at = Column(DateTime, default=datetime.utcnow, index=True)
    message_seq = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    # Relationships
    participants = relationship(
        "ChatParticipant",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="ChatParticipant.position",
        collection_class=ordering_list("position"),
        lazy="selectin",
    )
    messages = relationship(
        "ChatMessage",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="ChatMessage.seq",
    )
    related_activity = relationship("Activity", lazy="selectin")

    # ----- construction -----

    @classmethod
    def new_direct(cls, user_a, user_b) -> "Chat":
        """Build a direct chat between two distinct users."""
        if user_a.id == user_b.id:
            raise InvalidArgumentError("Cannot create chat with yourself")

        chat = cls(
            id=uuid.uuid4(),
            type=ChatType.DIRECT,
            direct_key=direct_key_for(user_a.id, user_b.id),
            created_by_id=user_a.id,
            message_seq=0,
            is_active=True,
            last_message_at=datetime.utcnow(),
            messages=[],
        )
        chat.add_participant(user_a)
        chat.add_participant(user_b)
        return chat

    @classmethod
    def new_group(
        cls,
        created_by,
        members,
        name: str,
        description: str = "",
        max_members: int = 100,
        related_activity_id: uuid.UUID | None = None,
    ) -> "Chat":
        """Build a group chat owned by ``created_by``; ``members`` are deduplicated by user id."""
        name = (name or "").strip()
        if not name:
            raise InvalidArgumentError("Group name is required")

        chat = cls(
            id=uuid.uuid4(),
            type=ChatType.GROUP,
            group_name=name,
            group_description=(description or "").strip(),
            group_max_members=max_members,
            related_activity_id=related_activity_id,
            created_by_id=created_by.id,
            message_seq=0,
            is_active=True,
            last_message_at=datetime.utcnow(),
            messages=[],
        )
        chat.add_participant(created_by, ParticipantRole.OWNER)
        for user in members:
            if not chat.is_participant(user.id):
                chat.add_participant(user, ParticipantRole.MEMBER)

        if len(chat.participants) > max_members:
            raise InvalidArgumentError(
                "Too many participants for this group",
                details={"max_members": max_members, "requested": len(chat.participants)},
            )
        return chat

    # ----- participants -----

    @property
    def is_group(self) -> bool:
        return self.type == ChatType.GROUP

    @property
    def owner(self) -> "ChatParticipant | None":
        return next((p for p in self.participants if p.role == ParticipantRole.OWNER), None)

    def find_participant(self, user_id) -> "ChatParticipant | None":
        return next((p for p in self.participants if p.user_id == user_id), None)

    def is_participant(self, user_id) -> bool:
        return self.find_participant(user_id) is not None

    def require_participant(self, user_id) -> "ChatParticipant":
        participant = self.find_participant(user_id)
        if participant is None:
            raise NotParticipantError()
        return participant

    def has_admin_rights(self, user_id) -> bool:
        participant = self.find_participant(user_id)
        return participant is not None and participant.role in ADMIN_ROLES

    def add_participant(self, user, role: ParticipantRole | None = None) -> "ChatParticipant":
        """Append ``user`` at the end of the join order."""
        if self.is_participant(user.id):
            raise AlreadyParticipantError()
        if self.is_group and role is None:
            role = ParticipantRole.MEMBER
        if not self.is_group:
            role = None

        participant = ChatParticipant(
            id=uuid.uuid4(),
            user=user,
            user_id=user.id,
            role=role,
            is_muted=False,
            joined_at=datetime.utcnow(),
            last_read_seq=self.message_seq or 0,
            unread_count=0,
        )
        self.participants.append(participant)
        return participant

    def remove_participant(self, user_id) -> Departure:
        """Remove ``user_id`` and, if it held ownership, promote a successor in the same step.

        Succession picks the earliest-joined admin, else the earliest-joined
        remaining participant. When nobody remains there is no successor and
        the caller is expected to delete the chat.
        """
        participant = self.find_participant(user_id)
        if participant is None:
            raise ParticipantNotFoundError()

        successor = None
        if self.is_group and participant.role == ParticipantRole.OWNER:
            successor = self._succession_candidate(exclude=participant)
            if successor is not None:
                successor.role = ParticipantRole.OWNER

        self.participants.remove(participant)
        return Departure(removed=participant, successor=successor)

    def ensure_owner(self) -> "ChatParticipant | None":
        """Repair a group that lost its owner. Returns the promoted participant, if any."""
        if not self.is_group or not self.participants or self.owner is not None:
            return None
        successor = self._succession_candidate()
        successor.role = ParticipantRole.OWNER
        return successor

    def _succession_candidate(self, exclude=None) -> "ChatParticipant | None":
        remaining = [p for p in self.participants if p is not exclude]
        if not remaining:
            return None
        admins = [p for p in remaining if p.role == ParticipantRole.ADMIN]
        return admins[0] if admins else remaining[0]

    def change_role(self, user_id, role: ParticipantRole) -> "ChatParticipant":
        """Set a non-owner participant's role to admin or member."""
        if role not in (ParticipantRole.ADMIN, ParticipantRole.MEMBER):
            raise InvalidArgumentError("Invalid role. Must be admin or member")
        participant = self.find_participant(user_id)
        if participant is None:
            raise ParticipantNotFoundError()
        if participant.role == ParticipantRole.OWNER:
            raise InvalidStateError("Ownership can only change through succession")
        participant.role = role
        return participant

    # ----- messages -----

    @property
    def visible_messages(self) -> list["ChatMessage"]:
        return [m for m in self.messages if not m.is_deleted]

    @property
    def last_message(self) -> "ChatMessage | None":
        if self.last_message_id is None:
            return None
        return self.find_message(self.last_message_id)

    def find_message(self, message_id) -> "ChatMessage | None":
        return next((m for m in self.messages if m.id == message_id), None)

    def require_message(self, message_id) -> "ChatMessage":
        message = self.find_message(message_id)
        if message is None:
            raise MessageNotFoundError()
        return message

    def add_message(
        self,
        sender,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        file_url: str | None = None,
    ) -> "ChatMessage":
        """Append a message from a current participant and bump other participants' unread counters."""
        self.require_participant(sender.id)
        return self._append(sender, content, message_type, file_url)

    def add_system_message(self, actor, content: str) -> "ChatMessage":
        """Record a membership or ownership change; ``actor`` may already have left."""
        return self._append(actor, content, MessageType.SYSTEM)

    def _append(self, sender, content, message_type, file_url=None) -> "ChatMessage":
        content = (content or "").strip()
        if not content:
            raise InvalidArgumentError("Message content is required")

        now = datetime.utcnow()
        self.message_seq = (self.message_seq or 0) + 1
        message = ChatMessage(
            id=uuid.uuid4(),
            seq=self.message_seq,
            sender=sender,
            sender_id=sender.id,
            content=content,
            type=message_type,
            file_url=file_url,
            is_edited=False,
            is_deleted=False,
            created_at=now,
        )
        self.messages.append(message)

        self.last_message_id = message.id
        self.last_message_at = now
        for participant in self.participants:
            if participant.user_id != sender.id:
                participant.unread_count = (participant.unread_count or 0) + 1
        return message

    def edit_message(self, message_id, actor_id, content: str) -> "ChatMessage":
        message = self.require_message(message_id)
        if message.sender_id != actor_id:
            raise PermissionDeniedError("You can only edit your own messages")
        if message.is_deleted:
            raise InvalidStateError("Cannot edit a deleted message")
        content = (content or "").strip()
        if not content:
            raise InvalidArgumentError("Message content is required")

        message.content = content
        message.is_edited = True
        message.edited_at = datetime.utcnow()
        return message

    def delete_message(self, message_id, actor_id) -> "ChatMessage":
        """Tombstone a message in place; its slot and id stay addressable."""
        message = self.require_message(message_id)
        if message.sender_id != actor_id and not self.has_admin_rights(actor_id):
            raise PermissionDeniedError("You can only delete your own messages or be an admin")
        if message.is_deleted:
            raise InvalidStateError("Message is already deleted")

        message.is_deleted = True
        message.deleted_at = datetime.utcnow()
        message.content = DELETED_MESSAGE_CONTENT

        if self.last_message_id == message.id:
            visible = self.visible_messages
            self.last_message_id = visible[-1].id if visible else None
        self.recount_unread()
        return message

    # ----- read receipts -----

    def mark_read(self, user_id, message_ids=None) -> "ChatParticipant":
        """Advance ``user_id``'s last-read marker. Without ids, everything currently in the log is read."""
        participant = self.require_participant(user_id)
        if message_ids:
            target = max(self.require_message(mid).seq for mid in message_ids)
        else:
            target = self.message_seq or 0
        participant.last_read_seq = max(participant.last_read_seq or 0, target)
        participant.unread_count = self.unread_count_for(user_id)
        return participant

    def unread_count_for(self, user_id) -> int:
        participant = self.require_participant(user_id)
        marker = participant.last_read_seq or 0
        return sum(
            1
            for m in self.messages
            if m.seq > marker and not m.is_deleted and m.sender_id != user_id
        )

    def recount_unread(self) -> None:
        for participant in self.participants:
            participant.unread_count = self.unread_count_for(participant.user_id)

    # ----- pagination -----

    def history_page(self, page: int = 1, limit: int = 50) -> tuple[list["ChatMessage"], int]:
        """Return one page of visible messages counted from the tail, oldest first, and the total.

        Deleted messages are excluded before the page boundaries are computed,
        so page 1 is always the most recent ``limit`` visible messages.
        """
        visible = self.visible_messages
        total = len(visible)
        end = total - (page - 1) * limit
        if end <= 0:
            return [], total
        start = max(0, end - limit)
        return visible[start:end], total


class ChatParticipant(BaseModel):
    """
    A user's membership in a chat.

    :ivar role: ``owner``/``admin``/``member`` for groups, ``None`` for direct chats.
    :ivar position: Join order within the chat.
    :ivar last_read_seq: Sequence number of the last message the user has read.
    :ivar unread_count: Cached count of unread messages from others.
    """

    __tablename__ = "chat_participants"
    __table_args__ = (UniqueConstraint("chat_id", "user_id", name="uq_chat_participant_user"),)

    chat_id = Column(UUID(), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Enum(ParticipantRole), nullable=True)
    is_muted = Column(Boolean, nullable=False, default=False)
    joined_at = Column(DateTime, default=datetime.utcnow)
    position = Column(Integer, nullable=False, default=0)
    last_read_seq = Column(Integer, nullable=False, default=0)
    unread_count = Column(Integer, nullable=False, default=0)

    # Relationships
    chat = relationship("Chat", back_populates="participants")
    user = relationship("User", lazy="selectin")


class ChatMessage(BaseModel):
    """
    A message in a chat's log.

    The sender reference becomes ``NULL`` when the user row is deleted; readers
    render it as a "Deleted User" placeholder.
    """

    __tablename__ = "chat_messages"

    chat_id = Column(UUID(), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    seq = Column(Integer, nullable=False)
    sender_id = Column(UUID(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    content = Column(Text, nullable=False)
    type = Column(Enum(MessageType), nullable=False, default=MessageType.TEXT)
    file_url = Column(String(1024), nullable=True)

    is_edited = Column(Boolean, nullable=False, default=False)
    edited_at = Column(DateTime, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)

    # Relationships
    chat = relationship("Chat", back_populates="messages")
    sender = relationship("User", lazy="selectin")
