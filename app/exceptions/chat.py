"""Chat-related exceptions."""

from .base import ConflictError, InvalidStateError, NotFoundError, PermissionDeniedError


class ChatNotFoundError(NotFoundError):
    """Raised when a chat is not found."""

    def __init__(self, message: str = "Chat not found"):
        super().__init__(message=message)


class MessageNotFoundError(NotFoundError):
    """Raised when a message is not part of the chat's log."""

    def __init__(self, message: str = "Message not found"):
        super().__init__(message=message)


class ParticipantNotFoundError(NotFoundError):
    """Raised when the target user is not a participant of the chat."""

    def __init__(self, message: str = "Participant not found"):
        super().__init__(message=message)


class NotParticipantError(PermissionDeniedError):
    """Raised when the actor is not a participant of the chat."""

    def __init__(self, message: str = "You are not a participant in this chat"):
        super().__init__(message=message)


class AlreadyParticipantError(ConflictError):
    """Raised when adding a user who is already a participant."""

    def __init__(self, message: str = "User is already a participant"):
        super().__init__(message=message)


class GroupOnlyOperationError(InvalidStateError):
    """Raised when a group-only operation targets a direct chat."""

    def __init__(self, message: str = "This operation is only available for group chats"):
        super().__init__(message=message)
