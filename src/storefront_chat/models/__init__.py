# src/storefront_chat/models/__init__.py
"""SQLAlchemy models for the Storefront Chat service."""

from .chat import ChatMessage, Conversation, ConversationParticipant, participant_key
from .user import User

__all__ = [
    "ChatMessage", "Conversation", "ConversationParticipant",
    "participant_key",
    "User",
]
