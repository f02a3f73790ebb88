"""Shared API dependencies for authentication and the realtime runtime."""

from typing import Annotated

from fastapi import Depends, HTTPException, WebSocket, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_chat.core.security import InvalidTokenError, decode_access_token
from storefront_chat.db.session import get_db
from storefront_chat.models import User
from storefront_chat.repositories.user_repo import UserRepository
from storefront_chat.services.chat_session import ChatSessionManager

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from the bearer token.

    Args:
        credentials: HTTP Bearer token credentials
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        HTTPException: If token is invalid or user not found
    """
    try:
        user_id = decode_access_token(credentials.credentials)
    except InvalidTokenError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    user = await UserRepository(db).get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def get_chat_sessions(websocket: WebSocket) -> ChatSessionManager:
    """Return the session manager created at application startup."""
    return websocket.app.state.chat_sessions


CurrentUserDep = Annotated[User, Depends(get_current_user)]
ChatSessionsDep = Annotated[ChatSessionManager, Depends(get_chat_sessions)]
