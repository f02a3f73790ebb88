# src/storefront_chat/api/v1/endpoints/chats.py
"""Chat inbox endpoints for the Storefront Chat API."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from storefront_chat.api.v1.dependencies import CurrentUserDep, SessionDep
from storefront_chat.schemas.chat import (
    ConversationResponse,
    PublicProfile,
    ThreadSummaryResponse,
)
from storefront_chat.services.chat_threads import ChatThreadService
from storefront_chat.services.errors import InvalidParticipantsError, UserNotFoundError

router = APIRouter(prefix="/chats", tags=["chats"])


@router.get("/", response_model=list[ThreadSummaryResponse])
async def get_chat_threads(
    current_user: CurrentUserDep,
    db: SessionDep,
) -> list[ThreadSummaryResponse]:
    """Return the current user's conversations with their latest message, newest first."""
    summaries = await ChatThreadService(db).get_threads(current_user.id)
    return [ThreadSummaryResponse.from_summary(summary) for summary in summaries]


@router.get("/chat-id/{user_id}", response_model=ConversationResponse)
async def get_chat_id_for_user(
    user_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> ConversationResponse:
    """Return the conversation with another user, creating it on first contact."""
    service = ChatThreadService(db)
    try:
        conversation, partner, created = await service.get_or_create_thread(
            current_user.id, user_id
        )
    except InvalidParticipantsError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except UserNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        ) from exc

    return ConversationResponse.from_conversation(conversation, partner, created=created)


@router.get("/new-users", response_model=list[PublicProfile])
async def get_new_users(
    current_user: CurrentUserDep,
    db: SessionDep,
) -> list[PublicProfile]:
    """Return users the current user has not chatted with yet."""
    users = await ChatThreadService(db).get_new_users(current_user.id)
    return [PublicProfile.from_user(user) for user in users]
