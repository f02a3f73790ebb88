"""Realtime wire events exchanged over the chat WebSocket.

Every frame is a JSON object ``{"event": <name>, "data": {...}}``. Inbound
frames are validated into a closed union discriminated on ``event``; the
session manager dispatches over that union exhaustively.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import Field, TypeAdapter, ValidationError

from storefront_chat.schemas.chat import CamelModel
from storefront_chat.services.errors import ChatValidationError


class ServerEvent(str, Enum):
    """Event names emitted by the server."""

    CHAT_HISTORY = "chat history"
    NEW_MESSAGE = "new message"
    USER_ONLINE = "user online"
    TYPING = "typing"
    CONNECTION_ERROR = "connection error"


# --- Inbound payloads ---------------------------------------------------------


class JoinData(CamelModel):
    user_id: int
    chat_id: int


class SendMessageData(CamelModel):
    chat_id: int
    sender_id: int
    message: str


class TypingData(CamelModel):
    chat_id: int
    user_id: int
    is_typing: bool


class PresenceData(CamelModel):
    chat_id: int
    user_id: int
    online: bool


class JoinEvent(CamelModel):
    """Bind the connection to a conversation and receive its history."""

    event: Literal["join"]
    data: JoinData


class SendMessageEvent(CamelModel):
    """Persist a message and broadcast it to the conversation."""

    event: Literal["send message"]
    data: SendMessageData


class TypingEvent(CamelModel):
    """Relay a typing indicator to the other members of a conversation."""

    event: Literal["typing"]
    data: TypingData


class PresenceOverrideEvent(CamelModel):
    """Relay a client-declared presence change to a conversation."""

    event: Literal["user online"]
    data: PresenceData


InboundEvent = Annotated[
    JoinEvent | SendMessageEvent | TypingEvent | PresenceOverrideEvent,
    Field(discriminator="event"),
]

_inbound_adapter: TypeAdapter[InboundEvent] = TypeAdapter(InboundEvent)


def parse_event(frame: Any) -> InboundEvent:
    """Validate a decoded JSON frame into an inbound event.

    Raises:
        ChatValidationError: If the frame is not a known, well-formed event.
    """
    try:
        return _inbound_adapter.validate_python(frame)
    except ValidationError as exc:
        raise ChatValidationError(f"Invalid event frame: {exc.error_count()} error(s)") from exc


# --- Outbound payloads --------------------------------------------------------


class PresencePayload(CamelModel):
    user_id: int
    online: bool


class TypingPayload(CamelModel):
    user_id: int
    is_typing: bool


class ConnectionErrorPayload(CamelModel):
    message: str
    error: str | None = None


def server_frame(event: ServerEvent, data: Any) -> dict[str, Any]:
    """Build an outbound frame, serializing schema payloads with wire aliases."""
    if isinstance(data, CamelModel):
        data = data.to_wire()
    elif isinstance(data, list):
        data = [item.to_wire() if isinstance(item, CamelModel) else item for item in data]
    return {"event": event.value, "data": data}
