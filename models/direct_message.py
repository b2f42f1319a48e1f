"""
Direct message model for one-to-one realtime notes outside any chat.

Delivered live to the recipient's connections when online; otherwise
fetched later from history.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Text
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel


class DirectMessage(BaseModel):
    """Represents a direct message between two users."""

    __tablename__ = "direct_messages"

    from_user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    to_user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)

    # Relationships
    from_user = relationship("User", foreign_keys=[from_user_id], lazy="selectin")
    to_user = relationship("User", foreign_keys=[to_user_id], lazy="selectin")
