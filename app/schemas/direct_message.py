"""Direct message schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from .base import CamelSchema


class DirectMessageCreate(CamelSchema):
    """Schema for sending a direct message."""

    to: UUID = Field(..., description="Recipient user")
    text: str = Field(..., min_length=1, description="Message text")


class DirectMessageUser(CamelSchema):
    id: UUID
    username: str | None = None
    email: str
    avatar: str | None = None


class DirectMessageResponse(CamelSchema):
    """Schema for a direct message as delivered to either side."""

    id: UUID
    from_: DirectMessageUser = Field(..., alias="from")
    to: DirectMessageUser
    text: str
    is_read: bool = False
    created_at: datetime


class DirectMessageHistory(CamelSchema):
    messages: list[DirectMessageResponse]
    total: int
    page: int
    size: int
    has_next: bool
