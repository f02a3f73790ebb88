# src/storefront_chat/scripts/issue_token.py
"""Mint a bearer token for an existing user (local development helper)."""

from __future__ import annotations

import argparse
import asyncio
import sys

from storefront_chat.core.security import create_access_token
from storefront_chat.db.session import SessionLocal, engine
from storefront_chat.repositories.user_repo import UserRepository


async def _user_exists(user_id: int) -> bool:
    async with SessionLocal() as db:
        return await UserRepository(db).get_by_id(user_id) is not None


def main() -> None:
    parser = argparse.ArgumentParser(description="Issue a chat API bearer token")
    parser.add_argument("user_id", type=int, help="Identifier of the user to authenticate as")
    parser.add_argument(
        "--skip-check",
        action="store_true",
        help="Do not verify that the user exists before issuing the token.",
    )
    args = parser.parse_args()

    if not args.skip_check:
        async def _check() -> bool:
            try:
                return await _user_exists(args.user_id)
            finally:
                await engine.dispose()

        if not asyncio.run(_check()):
            print(f"[issue_token] ERROR: user {args.user_id} not found", file=sys.stderr)
            sys.exit(1)

    print(create_access_token(args.user_id))


if __name__ == "__main__":
    main()
