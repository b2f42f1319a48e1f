# app/core/dependencies.py
import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from app.core.security import ClerkAuthenticator
from app.database import get_db
from app.domains.user.service import UserService
from app.realtime.hub import RealtimeHub
from app.realtime.publisher import EventPublisher
from models import User

logger = logging.getLogger(__name__)

security = HTTPBearer()
auth = ClerkAuthenticator()


async def validate_token(token: str = Depends(security)) -> dict:
    """Validate and decode JWT token from Clerk.

    Returns:
        dict: Decoded token payload

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        if not token or not token.credentials:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication token is required",
                headers={"WWW-Authenticate": "Bearer"},
            )

        payload = await auth.verify_token(token.credentials)

        if not payload:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return payload

    except HTTPException:
        raise
    except Exception as e:
        logger.error("Token validation error: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def resolve_user(payload: dict, db: AsyncSession) -> User:
    """Map a verified token payload onto the local user row, creating it on first sight."""
    clerk_user_id = payload.get("sub")
    if not clerk_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload - missing user ID",
        )

    user = await UserService(db).get_or_create_user(clerk_user_id, payload)
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return user


async def get_current_user(
    request: Request,
    payload: dict = Depends(validate_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current authenticated user from JWT payload.

    Returns:
        User: Current authenticated user

    Raises:
        HTTPException: If user not found or inactive
    """
    try:
        user = await resolve_user(payload, db)

        # Add user info to request state for logging
        request.state.user_id = user.id
        request.state.clerk_user_id = payload.get("sub")

        return user

    except HTTPException:
        raise
    except Exception as e:
        logger.error("User authentication error: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication service error",
        ) from e


def get_hub(connection: HTTPConnection) -> RealtimeHub | None:
    """The process-wide realtime hub, if the application started one."""
    return getattr(connection.app.state, "hub", None)


def get_publisher(hub: RealtimeHub | None = Depends(get_hub)) -> EventPublisher:
    return EventPublisher(hub)
