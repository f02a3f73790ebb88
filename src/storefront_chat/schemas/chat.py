"""Chat-related Pydantic schemas shared by the HTTP and realtime surfaces."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront_chat.db.time import as_utc
from storefront_chat.models import ChatMessage, Conversation, User
from storefront_chat.repositories.chat_repo import ThreadSummary


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys for the storefront client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Return the JSON-ready payload with wire aliases applied."""
        return self.model_dump(by_alias=True, mode="json")


class PublicProfile(CamelModel):
    """Public fields of a user; credentials are never exposed."""

    id: int
    first_name: str
    last_name: str

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_user(cls, user: User) -> PublicProfile:
        return cls.model_validate(user)


class MessagePayload(CamelModel):
    """Single chat message as delivered to clients."""

    id: int
    chat_id: int = Field(..., description="Conversation the message belongs to")
    sender_id: int
    message: str = Field(..., description="Message body")
    timestamp: datetime = Field(..., description="Server-assigned append time (UTC)")
    delivered: bool = False
    read: bool = False

    @classmethod
    def from_message(cls, message: ChatMessage) -> MessagePayload:
        return cls(
            id=message.id,
            chat_id=message.conversation_id,
            sender_id=message.sender_id,
            message=message.body,
            timestamp=as_utc(message.created_at),
            delivered=message.delivered,
            read=message.read,
        )


class ThreadSummaryResponse(CamelModel):
    """Inbox entry: latest message of a conversation and the other participant."""

    id: int = Field(..., description="Conversation identifier")
    last_message: MessagePayload
    user: PublicProfile

    @classmethod
    def from_summary(cls, summary: ThreadSummary) -> ThreadSummaryResponse:
        return cls(
            id=summary.chat_id,
            last_message=MessagePayload.from_message(summary.last_message),
            user=PublicProfile.from_user(summary.user),
        )


class ConversationResponse(CamelModel):
    """Conversation handle returned by the fetch-or-create endpoint."""

    id: int
    user: PublicProfile = Field(..., description="The other participant")
    created: bool = Field(False, description="True if this request created the conversation")

    @classmethod
    def from_conversation(
        cls, conversation: Conversation, partner: User, created: bool = False
    ) -> ConversationResponse:
        return cls(id=conversation.id, user=PublicProfile.from_user(partner), created=created)
