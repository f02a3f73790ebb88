"""
Pydantic schemas for API request/response models.

These schemas define the structure of chat data for serialization and validation.
"""

from .chat import (
    ConversationResponse,
    MessagePayload,
    PublicProfile,
    ThreadSummaryResponse,
)
from .chat_events import InboundEvent, ServerEvent, parse_event, server_frame

__all__ = [
    "ConversationResponse", "MessagePayload", "PublicProfile", "ThreadSummaryResponse",
    "InboundEvent", "ServerEvent", "parse_event", "server_frame",
]
