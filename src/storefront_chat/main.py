# src/storefront_chat/main.py
"""Main entry point for the Storefront Chat application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from storefront_chat.api.v1 import chats_router, realtime_router
from storefront_chat.core.logging import configure_logging
from storefront_chat.core.settings import settings
from storefront_chat.db.session import SessionLocal
from storefront_chat.services.broadcast import BroadcastHub
from storefront_chat.services.chat_session import ChatSessionManager
from storefront_chat.services.presence import PresenceRegistry

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Storefront Chat API",
    description="Realtime buyer/seller messaging for the storefront",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(chats_router, prefix="/api/v1")
app.include_router(realtime_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()
    app.state.chat_sessions = ChatSessionManager(
        presence=PresenceRegistry(),
        hub=BroadcastHub(),
        session_factory=SessionLocal,
    )
    logger.info("%s %s started", settings.app_name, settings.app_version)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    sessions: ChatSessionManager | None = getattr(app.state, "chat_sessions", None)
    if sessions:
        sessions.shutdown()
    app.state.chat_sessions = None


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Realtime buyer/seller messaging for the storefront",
        "docs": "/docs",
        "websocket": "/api/v1/ws",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("storefront_chat.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
