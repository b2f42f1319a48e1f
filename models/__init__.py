"""
Models package initialization.
"""

from .activity import Activity, ActivityParticipant
from .base import Base, BaseModel
from .chat import Chat, ChatMessage, ChatParticipant, ChatType, MessageType, ParticipantRole
from .direct_message import DirectMessage
from .profile import Profile
from .user import User

__all__ = [
    "Base",
    "BaseModel",
    "User",
    "Profile",
    "Activity",
    "ActivityParticipant",
    # Chat aggregate
    "Chat",
    "ChatParticipant",
    "ChatMessage",
    "ChatType",
    "ParticipantRole",
    "MessageType",
    "DirectMessage",
]
