"""Chat schemas for request/response serialization.

Wire names are camelCase, matching what realtime clients already consume.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field, field_validator

from models.chat import ChatType, MessageType, ParticipantRole

from .base import CamelSchema

DELETED_USER_NAME = "Deleted User"


# ===== Requests =====


class DirectChatCreate(CamelSchema):
    """Schema for opening a direct chat."""

    recipient_id: UUID = Field(..., description="User to chat with")


class GroupChatCreate(CamelSchema):
    """Schema for creating a group chat."""

    name: str = Field(..., max_length=255, description="Group name")
    description: str | None = Field(None, max_length=2000, description="Group description")
    participant_ids: list[UUID] = Field(default_factory=list, description="Initial members")
    related_activity_id: UUID | None = Field(None, description="Activity this group belongs to")
    max_members: int | None = Field(None, ge=2, le=10000, description="Group size cap")


class MessageCreate(CamelSchema):
    """Schema for sending a message."""

    content: str = Field(..., description="Message content")
    type: MessageType = Field(default=MessageType.TEXT, description="Message type")
    file_url: str | None = Field(None, max_length=1024, description="Attachment URL")


class MessageUpdate(CamelSchema):
    """Schema for editing a message."""

    content: str = Field(..., description="New message content")


class MarkReadRequest(CamelSchema):
    """Schema for read receipts. Omit ``messageIds`` to mark everything read."""

    message_ids: list[UUID] | None = Field(None, description="Messages being acknowledged")


class ParticipantAdd(CamelSchema):
    """Schema for adding a participant to a group."""

    user_id: UUID
    role: ParticipantRole = Field(default=ParticipantRole.MEMBER)


class RoleUpdate(CamelSchema):
    """Schema for changing a participant's role."""

    role: ParticipantRole


class MuteUpdate(CamelSchema):
    """Schema for muting or unmuting a chat."""

    is_muted: bool

    @field_validator("is_muted", mode="before")
    @classmethod
    def require_boolean(cls, v):
        if not isinstance(v, bool):
            raise ValueError("isMuted must be a boolean value")
        return v


class GroupInfoPatch(CamelSchema):
    """Editable group fields."""

    name: str | None = Field(None, max_length=255)
    description: str | None = Field(None, max_length=2000)
    max_members: int | None = Field(None, ge=2, le=10000)


class GroupInfoUpdate(CamelSchema):
    """Schema for updating group info."""

    group_info: GroupInfoPatch


# ===== Responses =====


class ParticipantResponse(CamelSchema):
    """Participant as shown in participant lists."""

    id: UUID
    email: str
    username: str | None = None
    role: ParticipantRole | None = None
    is_online: bool = False
    is_muted: bool = False
    avatar: str = ""
    bio: str = ""
    created_at: datetime | None = None
    joined_at: datetime | None = None


class SenderResponse(CamelSchema):
    """Message sender; a placeholder when the user no longer exists."""

    id: str
    username: str | None = None
    email: str = ""
    avatar: str = ""

    @classmethod
    def deleted(cls) -> SenderResponse:
        return cls(id="deleted", username=DELETED_USER_NAME)


class MessageResponse(CamelSchema):
    """Schema for message response."""

    id: UUID
    chat_id: UUID
    seq: int
    sender: SenderResponse
    content: str
    type: MessageType
    file_url: str | None = None
    is_edited: bool = False
    edited_at: datetime | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    created_at: datetime


class LastMessagePreview(CamelSchema):
    """Inbox preview of a chat's latest message."""

    content: str
    type: MessageType
    sender: SenderResponse
    created_at: datetime


class GroupInfoResponse(CamelSchema):
    """Group metadata."""

    name: str
    description: str = ""
    max_members: int | None = None
    related_activity_id: UUID | None = None
    related_activity_title: str | None = None


class ChatResponse(CamelSchema):
    """Schema for chat response."""

    id: UUID
    type: ChatType
    participants: list[ParticipantResponse]
    group_info: GroupInfoResponse | None = None
    last_message_id: UUID | None = None
    last_message_at: datetime | None = None
    is_active: bool = True
    created_at: datetime
    unread_count: int = 0
    is_muted: bool = False


class ChatSummaryResponse(ChatResponse):
    """Chat as listed in the inbox."""

    last_message_preview: LastMessagePreview | None = None


class MessagesPagination(CamelSchema):
    """Tail-first pagination info for a chat's history."""

    total: int
    page: int
    limit: int
    total_pages: int
    has_more: bool


class ChatDetailResponse(ChatResponse):
    """Chat with one page of message history."""

    messages: list[MessageResponse] = Field(default_factory=list)
    messages_pagination: MessagesPagination


class ChatListPagination(CamelSchema):
    """Pagination info for the inbox."""

    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ChatListResponse(CamelSchema):
    """Schema for the inbox."""

    chats: list[ChatSummaryResponse]
    pagination: ChatListPagination


class ReadReceiptResponse(CamelSchema):
    """Result of marking messages read."""

    chat_id: UUID
    user_id: UUID
    message_ids: list[UUID] = Field(default_factory=list)
    last_read_seq: int
    unread_count: int
