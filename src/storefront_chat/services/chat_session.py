"""Realtime chat session handling.

The session manager owns the per-connection protocol: joining a
conversation, relaying messages, typing indicators and presence changes, and
cleaning up when a connection goes away. It sits on top of the presence
registry, the broadcast hub and the chat repository.

Each inbound event is handled as its own task. Handlers may suspend while the
database works but never in the middle of updating presence or group state,
so those updates are atomic per event without locks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import assert_never

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_chat.models import ChatMessage
from storefront_chat.repositories.chat_repo import ChatRepository
from storefront_chat.schemas.chat import MessagePayload
from storefront_chat.schemas.chat_events import (
    ConnectionErrorPayload,
    InboundEvent,
    JoinEvent,
    PresenceOverrideEvent,
    PresencePayload,
    SendMessageEvent,
    ServerEvent,
    TypingEvent,
    TypingPayload,
    server_frame,
)
from storefront_chat.services.broadcast import BroadcastHub, Connection
from storefront_chat.services.errors import (
    AlreadyJoinedError,
    ChatError,
    ConversationNotFoundError,
    PersistenceError,
)
from storefront_chat.services.presence import PresenceRegistry

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


class ConnectionState(Enum):
    """Lifecycle of a single realtime connection."""

    CONNECTED = "connected"
    JOINED = "joined"
    CLOSED = "closed"


@dataclass
class ConnectionSession:
    """Protocol state tracked for one connection."""

    connection_id: str
    state: ConnectionState = ConnectionState.CONNECTED
    user_id: int | None = None
    conversation_id: int | None = None


class ChatSessionManager:
    """Handles realtime chat events for every live connection."""

    def __init__(
        self,
        presence: PresenceRegistry,
        hub: BroadcastHub,
        session_factory: SessionFactory,
    ) -> None:
        """Initialize the manager.

        Args:
            presence: Registry of online users, owned by the application.
            hub: Connection registry used for all outbound frames.
            session_factory: Callable returning a fresh ``AsyncSession``.
        """
        self.presence = presence
        self.hub = hub
        self._session_factory = session_factory
        self._sessions: dict[str, ConnectionSession] = {}

    # --- Connection lifecycle -------------------------------------------------

    def connect(self, connection: Connection) -> ConnectionSession:
        """Register a freshly accepted connection."""
        self.hub.register(connection)
        session = ConnectionSession(connection_id=connection.connection_id)
        self._sessions[connection.connection_id] = session
        logger.debug(
            "Connection %s opened (%d live)", connection.connection_id, self.hub.connection_count()
        )
        return session

    def get_session(self, connection_id: str) -> ConnectionSession | None:
        return self._sessions.get(connection_id)

    async def on_disconnect(self, connection_id: str) -> int | None:
        """Tear down a connection and announce the user offline if they were online.

        The offline notice goes to every remaining connection, not only the
        conversation the user had joined. Calling this twice is harmless.

        Returns:
            The user that went offline, if the connection held a presence entry.
        """
        session = self._sessions.pop(connection_id, None)
        if session is not None:
            session.state = ConnectionState.CLOSED
        self.hub.unregister(connection_id)

        user_id = self.presence.leave(connection_id)
        if user_id is None:
            return None

        logger.info("User %s disconnected (connection %s)", user_id, connection_id)
        await self.hub.emit_all(
            server_frame(ServerEvent.USER_ONLINE, PresencePayload(user_id=user_id, online=False))
        )
        return user_id

    def shutdown(self) -> None:
        """Drop every session, subscription and presence entry."""
        for session in self._sessions.values():
            session.state = ConnectionState.CLOSED
        self._sessions.clear()
        self.hub.clear()
        self.presence.clear()

    # --- Event handling -------------------------------------------------------

    async def dispatch(self, connection_id: str, event: InboundEvent) -> None:
        """Route an inbound event to its handler."""
        if isinstance(event, JoinEvent):
            await self.on_join(connection_id, event.data.user_id, event.data.chat_id)
        elif isinstance(event, SendMessageEvent):
            await self.on_send_message(
                connection_id, event.data.chat_id, event.data.sender_id, event.data.message
            )
        elif isinstance(event, TypingEvent):
            await self.on_typing(
                connection_id, event.data.chat_id, event.data.user_id, event.data.is_typing
            )
        elif isinstance(event, PresenceOverrideEvent):
            await self.on_presence_override(
                connection_id, event.data.chat_id, event.data.user_id, event.data.online
            )
        else:
            assert_never(event)

    async def on_join(self, connection_id: str, user_id: int, chat_id: int) -> list[ChatMessage]:
        """Bind a connection to a conversation.

        On success the user is marked online, the connection joins the
        conversation's broadcast group, the other members hear that the user
        is online, and the joining connection receives the full history
        followed by the online status of every other participant.

        Raises:
            AlreadyJoinedError: If the connection is already bound to a conversation.
            ConversationNotFoundError: If ``chat_id`` does not exist.
        """
        session = self._require_session(connection_id)
        if session.state is ConnectionState.JOINED:
            raise AlreadyJoinedError(connection_id, session.conversation_id or chat_id)

        async with self._session_factory() as db:
            repo = ChatRepository(db)
            conversation = await repo.get_conversation(chat_id)
            if conversation is None:
                raise ConversationNotFoundError(chat_id)
            participant_ids = conversation.participant_ids
            history = await repo.list_messages(chat_id)

        if not self.hub.is_registered(connection_id):
            raise ChatError(f"Connection {connection_id} dropped while joining")
        self.presence.join(user_id, connection_id)
        self.hub.subscribe(chat_id, connection_id)
        session.state = ConnectionState.JOINED
        session.user_id = user_id
        session.conversation_id = chat_id
        logger.info("User %s joined conversation %s via %s", user_id, chat_id, connection_id)

        await self.hub.emit_to_group(
            chat_id,
            server_frame(ServerEvent.USER_ONLINE, PresencePayload(user_id=user_id, online=True)),
            exclude=connection_id,
        )
        await self.hub.send(
            connection_id,
            server_frame(
                ServerEvent.CHAT_HISTORY,
                [MessagePayload.from_message(message) for message in history],
            ),
        )
        for participant_id in participant_ids:
            if participant_id == user_id:
                continue
            status = PresencePayload(
                user_id=participant_id,
                online=self.presence.is_online(participant_id),
            )
            await self.hub.send(connection_id, server_frame(ServerEvent.USER_ONLINE, status))
        return history

    async def on_send_message(
        self, connection_id: str, chat_id: int, sender_id: int, body: str
    ) -> ChatMessage:
        """Persist a message and broadcast it to the whole conversation group.

        The sender's own connections in the group receive it as well.

        Raises:
            ConversationNotFoundError: If ``chat_id`` does not exist; nothing is
                persisted or broadcast.
            PersistenceError: If the message could not be stored.
        """
        async with self._session_factory() as db:
            repo = ChatRepository(db)
            message = await repo.append_message(chat_id, sender_id, body)
            try:
                await db.commit()
            except SQLAlchemyError as exc:
                raise PersistenceError(
                    f"Failed to commit message to conversation {chat_id}"
                ) from exc

        logger.debug(
            "Message %s from user %s stored in conversation %s (connection %s)",
            message.id,
            sender_id,
            chat_id,
            connection_id,
        )
        await self.hub.emit_to_group(
            chat_id,
            server_frame(ServerEvent.NEW_MESSAGE, MessagePayload.from_message(message)),
        )
        return message

    async def on_typing(
        self, connection_id: str, chat_id: int, user_id: int, is_typing: bool
    ) -> int:
        """Relay a typing indicator to the other members of a conversation."""
        return await self.hub.emit_to_group(
            chat_id,
            server_frame(ServerEvent.TYPING, TypingPayload(user_id=user_id, is_typing=is_typing)),
            exclude=connection_id,
        )

    async def on_presence_override(
        self, connection_id: str, chat_id: int, user_id: int, online: bool
    ) -> int:
        """Relay a client-declared presence change to the other members of a conversation.

        The presence registry is not touched; this is a pure relay.
        """
        return await self.hub.emit_to_group(
            chat_id,
            server_frame(ServerEvent.USER_ONLINE, PresencePayload(user_id=user_id, online=online)),
            exclude=connection_id,
        )

    async def emit_connection_error(self, connection_id: str, message: str, error: str | None) -> None:
        """Tell a single connection that one of its frames could not be handled."""
        await self.hub.send(
            connection_id,
            server_frame(
                ServerEvent.CONNECTION_ERROR,
                ConnectionErrorPayload(message=message, error=error),
            ),
        )

    def _require_session(self, connection_id: str) -> ConnectionSession:
        session = self._sessions.get(connection_id)
        if session is None or session.state is ConnectionState.CLOSED:
            raise ChatError(f"Connection {connection_id} is not open")
        return session
