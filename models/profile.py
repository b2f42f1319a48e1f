"""
Profile model: public avatar and bio for a user.

Profiles are owned by the profile service; the chat core only reads them to
decorate participant lists and message senders.
"""

from sqlalchemy import Column, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel


class Profile(BaseModel):
    """Represents a user's public profile."""

    __tablename__ = "profiles"

    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    avatar = Column(String(1024), nullable=True)
    bio = Column(Text, nullable=True)

    # Relationships
    user = relationship("User", back_populates="profile")
