# src/storefront_chat/models/chat.py
"""Models describing conversations between storefront users."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront_chat.db.session import Base
from storefront_chat.db.time import utcnow


def participant_key(participant_ids: Iterable[int]) -> str:
    """Return the canonical lookup key for a set of participant identifiers."""
    return ",".join(str(user_id) for user_id in sorted(set(participant_ids)))


class Conversation(Base):
    """Chat thread between a fixed set of participants.

    The participant set is written once at creation. ``participant_key`` is
    indexed for exact-set lookups but not unique: two racing creators can
    produce duplicate conversations for the same set.
    """

    __tablename__ = "conversation"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    participant_key: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    participants: Mapped[list[ConversationParticipant]] = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ConversationParticipant.position",
    )

    @property
    def participant_ids(self) -> list[int]:
        """Return participant identifiers in insertion order."""
        return [participant.user_id for participant in self.participants]


class ConversationParticipant(Base):
    """Membership row linking a user to a conversation."""

    __tablename__ = "conversation_participant"

    conversation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("conversation.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id"),
        primary_key=True,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    conversation: Mapped[Conversation] = relationship("Conversation", back_populates="participants")


class ChatMessage(Base):
    """Single message appended to a conversation log.

    Appending is one INSERT, so concurrent senders never overwrite each other.
    """

    __tablename__ = "chat_message"
    __table_args__ = (
        Index("ix_chat_message_conversation_created", "conversation_id", "created_at", "id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("conversation.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[int] = mapped_column(Integer, ForeignKey("user_account.id"), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    # Reserved; nothing transitions these yet.
    delivered: Mapped[bool] = mapped_column(default=False, nullable=False)
    read: Mapped[bool] = mapped_column(default=False, nullable=False)
