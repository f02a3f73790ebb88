"""Read-side chat queries backing the inbox views."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from storefront_chat.models import Conversation, User
from storefront_chat.repositories.chat_repo import ChatRepository, ThreadSummary
from storefront_chat.repositories.user_repo import UserRepository
from storefront_chat.services.errors import InvalidParticipantsError, UserNotFoundError


class ChatThreadService:
    """Inbox queries for a single user."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.chats = ChatRepository(session)
        self.users = UserRepository(session)

    async def get_threads(self, user_id: int) -> list[ThreadSummary]:
        """Return every non-empty conversation of ``user_id``, newest message first."""
        return await self.chats.thread_summaries(user_id)

    async def get_or_create_thread(
        self, user_id: int, other_user_id: int
    ) -> tuple[Conversation, User, bool]:
        """Return the conversation between two users, creating it on first contact.

        Returns:
            The conversation, the other participant and whether it was created.

        Raises:
            InvalidParticipantsError: If both identifiers are the same user.
            UserNotFoundError: If ``other_user_id`` does not exist.
        """
        if user_id == other_user_id:
            raise InvalidParticipantsError("Cannot open a conversation with yourself")

        partner = await self.users.get_by_id(other_user_id)
        if partner is None:
            raise UserNotFoundError(other_user_id)

        conversation, created = await self.chats.get_or_create_conversation(
            [user_id, other_user_id]
        )
        if created:
            await self.session.commit()
        return conversation, partner, created

    async def get_new_users(self, user_id: int) -> list[User]:
        """Return users the caller has not exchanged any message with yet."""
        partners = await self.chats.partner_ids_with_messages(user_id)
        return await self.users.list_excluding(partners | {user_id})
