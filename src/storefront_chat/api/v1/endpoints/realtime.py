# src/storefront_chat/api/v1/endpoints/realtime.py
"""WebSocket endpoint carrying the realtime chat protocol."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from storefront_chat.api.v1.dependencies import ChatSessionsDep
from storefront_chat.schemas.chat_events import parse_event
from storefront_chat.services.broadcast import WebSocketConnection
from storefront_chat.services.errors import (
    AlreadyJoinedError,
    ChatError,
    ChatValidationError,
    NotFoundError,
    PersistenceError,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

CONNECTION_ERROR_MESSAGE = "Socket connection error"


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket, sessions: ChatSessionsDep) -> None:
    """Serve one client connection until it closes.

    Frames are handled one at a time in arrival order. Handler failures of any
    kind are logged and never close the socket; only binary, undecodable or
    invalid frames are reported back to the client, as ``connection error``.
    """
    await websocket.accept()
    connection = WebSocketConnection(websocket)
    sessions.connect(connection)
    connection_id = connection.connection_id

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
            raw = message.get("text")
            if raw is None:
                logger.warning("Connection %s sent a binary frame", connection_id)
                await sessions.emit_connection_error(
                    connection_id, CONNECTION_ERROR_MESSAGE, "Binary frames are not supported"
                )
                continue

            try:
                event = parse_event(json.loads(raw))
            except (ValueError, ChatValidationError) as exc:
                logger.warning("Connection %s sent a malformed frame: %s", connection_id, exc)
                await sessions.emit_connection_error(
                    connection_id, CONNECTION_ERROR_MESSAGE, str(exc)
                )
                continue

            try:
                await sessions.dispatch(connection_id, event)
            except (NotFoundError, AlreadyJoinedError) as exc:
                logger.info("Ignored %r from connection %s: %s", event.event, connection_id, exc)
            except PersistenceError:
                logger.error(
                    "Storage failure handling %r from connection %s",
                    event.event,
                    connection_id,
                    exc_info=True,
                )
            except ChatError as exc:
                logger.warning(
                    "Chat error handling %r from connection %s: %s", event.event, connection_id, exc
                )
            except Exception:
                logger.exception(
                    "Unexpected error handling %r from connection %s", event.event, connection_id
                )
    except WebSocketDisconnect:
        logger.debug("Connection %s closed by client", connection_id)
    finally:
        await sessions.on_disconnect(connection_id)
