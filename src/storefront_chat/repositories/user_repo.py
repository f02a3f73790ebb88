"""Read-only helpers for storefront accounts."""
from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_chat.models import User

__all__ = ["UserRepository"]


class UserRepository:
    """Thin wrapper around database access for user accounts."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, user_id: int) -> User | None:
        """Return a user by identifier."""
        return await self.session.get(User, user_id)

    async def list_excluding(self, user_ids: Iterable[int]) -> list[User]:
        """Return every user whose identifier is not in ``user_ids``."""
        excluded = list(user_ids)
        stmt = select(User).order_by(User.id)
        if excluded:
            stmt = stmt.where(User.id.not_in(excluded))
        result = await self.session.execute(stmt)
        return list(result.scalars())
