"""Chat API controller with FastAPI endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.dependencies import get_current_user, get_db, get_publisher, validate_token
from app.domains.chat.service import ChatService
from app.realtime.publisher import EventPublisher
from app.schemas.base import ResponseSchema
from app.schemas.chat import (
    DirectChatCreate,
    GroupChatCreate,
    GroupInfoUpdate,
    MarkReadRequest,
    MessageCreate,
    MessageUpdate,
    MuteUpdate,
    ParticipantAdd,
    RoleUpdate,
)
from models.chat import ChatType
from models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/chats",
    tags=["chats"],
    dependencies=[Depends(validate_token)],
)


def get_chat_service(
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
) -> ChatService:
    return ChatService(db, publisher)


@router.post("/direct", response_model=ResponseSchema)
async def create_direct_chat(
    _request: Request,
    response: Response,
    chat_data: DirectChatCreate,
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """Open the direct chat with a user; repeated calls return the same chat."""
    chat, created = await service.create_direct(current_user, chat_data.recipient_id)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK

    return ResponseSchema(
        status="success",
        message="Direct chat created/retrieved successfully",
        data={"chat": service.chat_payload(chat, current_user.id).to_wire()},
    )


@router.post("/group", response_model=ResponseSchema, status_code=201)
async def create_group_chat(
    _request: Request,
    chat_data: GroupChatCreate,
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """Create a group chat owned by the caller."""
    chat = await service.create_group(
        current_user,
        name=chat_data.name,
        description=chat_data.description,
        participant_ids=chat_data.participant_ids,
        related_activity_id=chat_data.related_activity_id,
        max_members=chat_data.max_members,
    )

    return ResponseSchema(
        status="success",
        message="Group chat created successfully",
        data={"chat": service.chat_payload(chat, current_user.id).to_wire()},
    )


@router.get("/", response_model=ResponseSchema)
async def list_chats(
    _request: Request,
    chat_type: ChatType | None = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.chat_default_list_limit, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """Get the caller's chats with unread counts and a preview of the last message."""
    result = await service.list_chats(current_user, chat_type=chat_type, page=page, limit=limit)

    return ResponseSchema(
        status="success",
        message="Chats retrieved successfully",
        data=result.to_wire(),
    )


@router.get("/{chat_id}", response_model=ResponseSchema)
async def get_chat(
    _request: Request,
    chat_id: UUID = Path(...),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.chat_default_history_limit, ge=1, le=settings.chat_max_history_limit),
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """Get a chat with the most recent page of messages."""
    chat = await service.get_chat(chat_id, current_user, page=page, limit=limit)

    return ResponseSchema(
        status="success",
        message="Chat retrieved successfully",
        data={"chat": chat.to_wire()},
    )


@router.get("/{chat_id}/unread-count", response_model=ResponseSchema)
async def get_unread_count(
    _request: Request,
    chat_id: UUID = Path(...),
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    count = await service.get_unread_count(chat_id, current_user)
    return ResponseSchema(
        status="success",
        message="Unread count retrieved successfully",
        data={"chatId": str(chat_id), "unreadCount": count},
    )


@router.post("/{chat_id}/messages", response_model=ResponseSchema, status_code=201)
async def send_message(
    _request: Request,
    message_data: MessageCreate,
    chat_id: UUID = Path(...),
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """Send a message; chat subscribers receive it as ``message:receive``."""
    message = await service.add_message(
        chat_id,
        current_user,
        message_data.content,
        message_data.type,
        message_data.file_url,
    )

    return ResponseSchema(
        status="success",
        message="Message sent successfully",
        data={"message": message.to_wire()},
    )


@router.put("/{chat_id}/messages/{message_id}", response_model=ResponseSchema)
async def edit_message(
    _request: Request,
    message_data: MessageUpdate,
    chat_id: UUID = Path(...),
    message_id: UUID = Path(...),
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    message = await service.edit_message(chat_id, message_id, current_user, message_data.content)

    return ResponseSchema(
        status="success",
        message="Message updated successfully",
        data={"message": message.to_wire()},
    )


@router.delete("/{chat_id}/messages/{message_id}", response_model=ResponseSchema)
async def delete_message(
    _request: Request,
    chat_id: UUID = Path(...),
    message_id: UUID = Path(...),
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    message = await service.delete_message(chat_id, message_id, current_user)

    return ResponseSchema(
        status="success",
        message="Message deleted successfully",
        data={"message": message.to_wire()},
    )


@router.put("/{chat_id}/read", response_model=ResponseSchema)
async def mark_read(
    _request: Request,
    read_data: MarkReadRequest | None = None,
    chat_id: UUID = Path(...),
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """Mark the listed messages, or everything, as read."""
    message_ids = read_data.message_ids if read_data else None
    receipt = await service.mark_read(chat_id, current_user, message_ids)

    return ResponseSchema(
        status="success",
        message="Messages marked as read",
        data=receipt.to_wire(),
    )


@router.post("/{chat_id}/participants", response_model=ResponseSchema)
async def add_participant(
    _request: Request,
    participant_data: ParticipantAdd,
    chat_id: UUID = Path(...),
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    chat = await service.add_participant(
        chat_id, current_user, participant_data.user_id, participant_data.role
    )

    return ResponseSchema(
        status="success",
        message="Participant added successfully",
        data={"chat": service.chat_payload(chat, current_user.id).to_wire()},
    )


@router.delete("/{chat_id}/participants/{user_id}", response_model=ResponseSchema)
async def remove_participant(
    _request: Request,
    chat_id: UUID = Path(...),
    user_id: UUID = Path(...),
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """Remove a participant, or leave when the target is the caller."""
    chat = await service.remove_participant(chat_id, current_user, user_id)

    data = {"chat": service.chat_payload(chat, current_user.id).to_wire()} if chat else None
    return ResponseSchema(
        status="success",
        message="Participant removed successfully",
        data=data,
    )


@router.put("/{chat_id}/participants/{user_id}/role", response_model=ResponseSchema)
async def update_participant_role(
    _request: Request,
    role_data: RoleUpdate,
    chat_id: UUID = Path(...),
    user_id: UUID = Path(...),
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    chat = await service.update_role(chat_id, current_user, user_id, role_data.role)

    return ResponseSchema(
        status="success",
        message="Participant role updated successfully",
        data={"chat": service.chat_payload(chat, current_user.id).to_wire()},
    )


@router.put("/{chat_id}/mute", response_model=ResponseSchema)
async def set_muted(
    _request: Request,
    mute_data: MuteUpdate,
    chat_id: UUID = Path(...),
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    participant = await service.set_muted(chat_id, current_user, mute_data.is_muted)

    return ResponseSchema(
        status="success",
        message="Chat muted" if participant.is_muted else "Chat unmuted",
        data={"chatId": str(chat_id), "isMuted": participant.is_muted},
    )


@router.put("/{chat_id}", response_model=ResponseSchema)
async def update_group_info(
    _request: Request,
    update_data: GroupInfoUpdate,
    chat_id: UUID = Path(...),
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    info = update_data.group_info
    chat = await service.update_group_info(
        chat_id,
        current_user,
        name=info.name,
        description=info.description,
        max_members=info.max_members,
    )

    return ResponseSchema(
        status="success",
        message="Group info updated successfully",
        data={"chat": service.chat_payload(chat, current_user.id).to_wire()},
    )


@router.delete("/{chat_id}", response_model=ResponseSchema)
async def leave_chat(
    _request: Request,
    chat_id: UUID = Path(...),
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    await service.leave_chat(chat_id, current_user)

    return ResponseSchema(status="success", message="Left chat successfully")


@router.delete("/{chat_id}/destroy", response_model=ResponseSchema)
async def destroy_chat(
    _request: Request,
    chat_id: UUID = Path(...),
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """Permanently delete a group chat. Owner only."""
    await service.destroy_chat(chat_id, current_user)

    return ResponseSchema(status="success", message="Group chat deleted successfully")
