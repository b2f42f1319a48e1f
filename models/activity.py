"""
Activity models as seen by the chat core.

Activities (events users organise and join) are managed by the activity
service. The chat core only needs the fields that group chats link to: title,
description, capacity, creator and the participant list.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel


class Activity(BaseModel):
    """Represents an activity that may own a group chat."""

    __tablename__ = "activities"

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    max_participants = Column(Integer, nullable=True)
    created_by_id = Column(UUID(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    chat_id = Column(UUID(), nullable=True)

    # Relationships
    participants = relationship(
        "ActivityParticipant",
        back_populates="activity",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class ActivityParticipant(BaseModel):
    """A user's membership in an activity."""

    __tablename__ = "activity_participants"
    __table_args__ = (UniqueConstraint("activity_id", "user_id", name="uq_activity_participant_user"),)

    activity_id = Column(
        UUID(), ForeignKey("activities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    joined_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    activity = relationship("Activity", back_populates="participants")
