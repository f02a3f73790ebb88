"""Exceptions raised by the chat store and the realtime session layer."""

from __future__ import annotations


class ChatError(RuntimeError):
    """Base exception for chat failures."""


class NotFoundError(ChatError):
    """Raised when a referenced conversation or user does not exist."""


class ConversationNotFoundError(NotFoundError):
    """Raised when a conversation identifier does not resolve."""

    def __init__(self, conversation_id: int) -> None:
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class UserNotFoundError(NotFoundError):
    """Raised when a user identifier does not resolve."""

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class PersistenceError(ChatError):
    """Raised when the underlying storage operation fails."""


class ChatValidationError(ChatError):
    """Raised when a realtime frame is malformed."""


class AlreadyJoinedError(ChatError):
    """Raised when a connection joins while already bound to a conversation."""

    def __init__(self, connection_id: str, conversation_id: int) -> None:
        super().__init__(
            f"Connection {connection_id} already joined conversation {conversation_id}"
        )
        self.connection_id = connection_id
        self.conversation_id = conversation_id


class InvalidParticipantsError(ChatError):
    """Raised when a conversation would not have two distinct participants."""
