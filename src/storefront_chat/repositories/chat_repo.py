"""Data access helpers for conversations and their message logs."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from storefront_chat.db.time import as_utc, utcnow
from storefront_chat.models import (
    ChatMessage,
    Conversation,
    ConversationParticipant,
    User,
    participant_key,
)
from storefront_chat.services.errors import (
    ConversationNotFoundError,
    InvalidParticipantsError,
    PersistenceError,
)

__all__ = ["ChatRepository", "ThreadSummary"]

MIN_PARTICIPANTS = 2


@dataclass(frozen=True)
class ThreadSummary:
    """Inbox row: a conversation, its latest message and the other participant."""

    chat_id: int
    last_message: ChatMessage
    user: User


class ChatRepository:
    """Thin wrapper around database access for conversations.

    The repository flushes but never commits; callers own the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository with an async SQLAlchemy session."""
        self.session = session

    async def get_conversation(self, conversation_id: int) -> Conversation | None:
        """Return a conversation by identifier.

        Raises:
            PersistenceError: If the lookup fails.
        """
        try:
            return await self.session.get(Conversation, conversation_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load conversation {conversation_id}") from exc

    async def find_conversation_by_participants(
        self, participant_ids: Iterable[int]
    ) -> Conversation | None:
        """Return the oldest conversation whose participant set equals ``participant_ids``."""
        result = await self.session.execute(
            select(Conversation)
            .where(Conversation.participant_key == participant_key(participant_ids))
            .order_by(Conversation.id)
            .limit(1)
        )
        return result.scalars().first()

    async def create_conversation(self, participant_ids: Iterable[int]) -> Conversation:
        """Insert a new conversation for ``participant_ids``.

        No uniqueness check is made against existing conversations.

        Raises:
            InvalidParticipantsError: If fewer than two distinct participants are given.
            PersistenceError: If the insert fails.
        """
        ordered = list(dict.fromkeys(participant_ids))
        if len(ordered) < MIN_PARTICIPANTS:
            raise InvalidParticipantsError("A conversation needs at least two distinct participants")

        conversation = Conversation(
            participant_key=participant_key(ordered),
            participants=[
                ConversationParticipant(user_id=user_id, position=position)
                for position, user_id in enumerate(ordered)
            ],
        )
        self.session.add(conversation)
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to create conversation") from exc
        return conversation

    async def get_or_create_conversation(
        self, participant_ids: Iterable[int]
    ) -> tuple[Conversation, bool]:
        """Return the conversation for ``participant_ids``, creating it if absent.

        Returns:
            The conversation and True if it was created by this call.
        """
        ordered = list(participant_ids)
        existing = await self.find_conversation_by_participants(ordered)
        if existing is not None:
            return existing, False
        return await self.create_conversation(ordered), True

    async def participant_ids(self, conversation_id: int) -> list[int]:
        """Return the participant identifiers of a conversation in creation order."""
        result = await self.session.execute(
            select(ConversationParticipant.user_id)
            .where(ConversationParticipant.conversation_id == conversation_id)
            .order_by(ConversationParticipant.position)
        )
        return list(result.scalars())

    async def list_messages(self, conversation_id: int) -> list[ChatMessage]:
        """Return the full message log of a conversation, oldest first."""
        try:
            result = await self.session.execute(
                select(ChatMessage)
                .where(ChatMessage.conversation_id == conversation_id)
                .order_by(ChatMessage.created_at, ChatMessage.id)
            )
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to load messages of conversation {conversation_id}"
            ) from exc
        return list(result.scalars())

    async def append_message(self, conversation_id: int, sender_id: int, body: str) -> ChatMessage:
        """Append a message to a conversation log.

        The timestamp is taken on the server at append time; the insert of a
        single row is the atomic append primitive.

        Raises:
            ConversationNotFoundError: If the conversation does not exist.
            PersistenceError: If the lookup or the insert fails.
        """
        try:
            exists = await self.session.scalar(
                select(Conversation.id).where(Conversation.id == conversation_id)
            )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load conversation {conversation_id}") from exc
        if exists is None:
            raise ConversationNotFoundError(conversation_id)

        message = ChatMessage(
            conversation_id=conversation_id,
            sender_id=sender_id,
            body=body,
            created_at=utcnow(),
            delivered=False,
            read=False,
        )
        self.session.add(message)
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to append message to conversation {conversation_id}"
            ) from exc
        return message

    async def list_conversations_for_user(self, user_id: int) -> list[Conversation]:
        """Return every conversation the user participates in."""
        result = await self.session.execute(
            select(Conversation)
            .join(ConversationParticipant)
            .where(ConversationParticipant.user_id == user_id)
            .order_by(Conversation.id)
        )
        return list(result.scalars())

    async def thread_summaries(self, user_id: int) -> list[ThreadSummary]:
        """Return the latest message of each non-empty conversation of ``user_id``.

        One summary is produced per other participant; conversations without
        messages are skipped. Results are ordered newest first.
        """
        membership = select(ConversationParticipant.conversation_id).where(
            ConversationParticipant.user_id == user_id
        )
        ranked = (
            select(
                ChatMessage.id.label("message_id"),
                func.row_number()
                .over(
                    partition_by=ChatMessage.conversation_id,
                    order_by=(ChatMessage.created_at.desc(), ChatMessage.id.desc()),
                )
                .label("rank"),
            )
            .where(ChatMessage.conversation_id.in_(membership))
            .subquery()
        )
        latest_result = await self.session.execute(
            select(ChatMessage)
            .join(ranked, ChatMessage.id == ranked.c.message_id)
            .where(ranked.c.rank == 1)
        )
        latest = {message.conversation_id: message for message in latest_result.scalars()}
        if not latest:
            return []

        others_result = await self.session.execute(
            select(ConversationParticipant.conversation_id, User)
            .join(User, User.id == ConversationParticipant.user_id)
            .where(
                ConversationParticipant.conversation_id.in_(list(latest)),
                ConversationParticipant.user_id != user_id,
            )
            .order_by(ConversationParticipant.conversation_id, ConversationParticipant.position)
        )
        summaries = [
            ThreadSummary(chat_id=conversation_id, last_message=latest[conversation_id], user=user)
            for conversation_id, user in others_result.all()
        ]
        summaries.sort(
            key=lambda summary: (as_utc(summary.last_message.created_at), summary.last_message.id),
            reverse=True,
        )
        return summaries

    async def partner_ids_with_messages(self, user_id: int) -> set[int]:
        """Return users sharing at least one non-empty conversation with ``user_id``."""
        mine = aliased(ConversationParticipant)
        membership = select(mine.conversation_id).where(mine.user_id == user_id)
        has_messages = (
            select(ChatMessage.id)
            .where(ChatMessage.conversation_id == ConversationParticipant.conversation_id)
            .exists()
        )
        result = await self.session.execute(
            select(ConversationParticipant.user_id)
            .where(
                ConversationParticipant.conversation_id.in_(membership),
                ConversationParticipant.user_id != user_id,
                has_messages,
            )
            .distinct()
        )
        return set(result.scalars())
