# src/storefront_chat/init_db.py
"""Create every table directly from the ORM metadata (development shortcut)."""
import asyncio

from storefront_chat.db.session import create_tables, engine


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    await create_tables()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())
    print("Database initialized.")
