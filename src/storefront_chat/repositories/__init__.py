"""Data access layer for the Storefront Chat service."""

from .chat_repo import ChatRepository, ThreadSummary
from .user_repo import UserRepository

__all__ = ["ChatRepository", "ThreadSummary", "UserRepository"]
