# ruff: noqa: F403, F401
"""Schemas package initialization."""

# Import all schemas to ensure they're registered
from .base import *
from .chat import *
from .direct_message import *

# Resolve forward references from postponed annotations
from .chat import ChatDetailResponse, ChatListResponse, ChatSummaryResponse

ChatSummaryResponse.model_rebuild()
ChatDetailResponse.model_rebuild()
ChatListResponse.model_rebuild()
