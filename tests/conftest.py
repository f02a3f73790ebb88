# tests/conftest.py
from __future__ import annotations

import os
import tempfile
from collections.abc import Callable, Iterator
from datetime import datetime
from itertools import count
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

_TEST_DB_PATH = Path(tempfile.mkdtemp(prefix="storefront-chat-")) / "chat.db"

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_PATH}"
os.environ["USE_TEST_DATABASE"] = "false"

from storefront_chat.core.security import create_access_token  # noqa: E402
from storefront_chat.db.session import Base, SessionLocal  # noqa: E402
from storefront_chat.db.time import utcnow  # noqa: E402
from storefront_chat.main import app as fastapi_app  # noqa: E402
from storefront_chat.models import (  # noqa: E402
    ChatMessage,
    Conversation,
    ConversationParticipant,
    User,
    participant_key,
)
from storefront_chat.services.broadcast import BroadcastHub  # noqa: E402
from storefront_chat.services.chat_session import ChatSessionManager  # noqa: E402
from storefront_chat.services.presence import PresenceRegistry  # noqa: E402

_EMAIL_COUNTER = count(1)


class FakeConnection:
    """In-memory connection that records every frame sent to it."""

    def __init__(self, connection_id: str, *, broken: bool = False) -> None:
        self.connection_id = connection_id
        self.frames: list[dict[str, Any]] = []
        self.broken = broken

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.broken:
            raise RuntimeError("Cannot call 'send' once a close message has been sent.")
        self.frames.append(data)

    def events(self, name: str) -> list[Any]:
        """Return the payloads of every frame named ``name``, in order."""
        return [frame["data"] for frame in self.frames if frame["event"] == name]

    def names(self) -> list[str]:
        return [frame["event"] for frame in self.frames]


@pytest.fixture(scope="session")
def engine() -> Iterator[Engine]:
    """Synchronous engine over the same SQLite file the app uses, for seeding."""
    engine = create_engine(f"sqlite:///{_TEST_DB_PATH}")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SeedSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = SeedSession()
    try:
        yield session
    finally:
        session.close()
        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory persisting users."""

    def _make_user(first_name: str = "Test", last_name: str = "User") -> User:
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=f"user{next(_EMAIL_COUNTER)}@example.com",
            password_hash="opaque-hash",
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def buyer(make_user: Callable[..., User]) -> User:
    """Create the primary test user."""
    return make_user("Bea", "Buyer")


@pytest.fixture()
def seller(make_user: Callable[..., User]) -> User:
    """Create the secondary test user."""
    return make_user("Sam", "Seller")


@pytest.fixture()
def make_conversation(db_session: Session) -> Callable[..., Conversation]:
    """Return a factory persisting conversations between the given users."""

    def _make_conversation(*users: User) -> Conversation:
        ids = [user.id for user in users]
        conversation = Conversation(
            participant_key=participant_key(ids),
            participants=[
                ConversationParticipant(user_id=user_id, position=position)
                for position, user_id in enumerate(ids)
            ],
        )
        db_session.add(conversation)
        db_session.commit()
        return conversation

    return _make_conversation


@pytest.fixture()
def add_message(db_session: Session) -> Callable[..., ChatMessage]:
    """Return a factory appending messages with an optional fixed timestamp."""

    def _add_message(
        conversation: Conversation,
        sender: User,
        body: str,
        created_at: datetime | None = None,
    ) -> ChatMessage:
        message = ChatMessage(
            conversation_id=conversation.id,
            sender_id=sender.id,
            body=body,
            created_at=created_at or utcnow(),
        )
        db_session.add(message)
        db_session.commit()
        return message

    return _add_message


@pytest.fixture()
def conversation(
    make_conversation: Callable[..., Conversation], buyer: User, seller: User
) -> Conversation:
    """Create an empty conversation between the buyer and the seller."""
    return make_conversation(buyer, seller)


@pytest.fixture()
def presence() -> PresenceRegistry:
    return PresenceRegistry()


@pytest.fixture()
def hub() -> BroadcastHub:
    return BroadcastHub()


@pytest.fixture()
def manager(db_session: Session, presence: PresenceRegistry, hub: BroadcastHub) -> ChatSessionManager:
    """Session manager wired to the test database."""
    return ChatSessionManager(presence=presence, hub=hub, session_factory=SessionLocal)


@pytest.fixture()
def connect(manager: ChatSessionManager) -> Callable[..., FakeConnection]:
    """Return a helper opening fake connections on the manager."""

    def _connect(connection_id: str, *, broken: bool = False) -> FakeConnection:
        connection = FakeConnection(connection_id, broken=broken)
        manager.connect(connection)
        return connection

    return _connect


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(app: FastAPI, db_session: Session) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def auth_headers(user: User) -> dict[str, str]:
    """Return authorization headers for ``user``."""
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}
