"""Direct message API controller."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db, get_publisher, validate_token
from app.domains.direct_message.service import DirectMessageService
from app.realtime.publisher import EventPublisher
from app.schemas.base import ResponseSchema
from app.schemas.direct_message import DirectMessageCreate
from app.shared.pagination import PaginationParams
from models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/direct-messages",
    tags=["direct-messages"],
    dependencies=[Depends(validate_token)],
)


@router.get("/{user_id}", response_model=ResponseSchema)
async def get_conversation(
    _request: Request,
    user_id: UUID = Path(...),
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Fetch direct messages exchanged with a user, including ones missed while offline."""
    service = DirectMessageService(db)
    history = await service.history(current_user, user_id, PaginationParams(page=page, size=size))

    return ResponseSchema(
        status="success",
        message="Direct messages retrieved successfully",
        data=history.to_wire(),
    )


@router.post("/", response_model=ResponseSchema, status_code=201)
async def send_direct_message(
    _request: Request,
    message_data: DirectMessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
):
    service = DirectMessageService(db, publisher)
    message = await service.send(current_user, message_data.to, message_data.text)

    return ResponseSchema(
        status="success",
        message="Direct message sent successfully",
        data={"message": message.to_wire()},
    )
