"""Create (or promote) an administrator account for the job endpoints."""

from __future__ import annotations

import argparse
import asyncio

from agreeproof.core.config import get_settings
from agreeproof.db.session import dispose_all_engines, get_sessionmaker
from agreeproof.services import user_service


async def _ensure_admin(email: str, password: str, name: str) -> None:
    sessionmaker = get_sessionmaker(get_settings().database_url)
    async with sessionmaker() as session:
        user = await user_service.get_user_by_email(session, email)
        if user is not None:
            if user.is_admin:
                print(f"User {user.email} is already an administrator")
            else:
                user.is_admin = True
                await session.commit()
                print(f"Promoted {user.email} to administrator")
            return

        user = await user_service.create_user(
            session, name=name, email=email, password=password, is_admin=True
        )
        print(f"Created administrator {user.email}")


async def run(email: str, password: str, name: str) -> None:
    try:
        await _ensure_admin(email, password, name)
    finally:
        await dispose_all_engines()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create an AgreeProof admin user")
    parser.add_argument("--email", required=True, help="Admin email address")
    parser.add_argument("--password", required=True, help="Initial password")
    parser.add_argument("--name", default="AgreeProof Admin", help="Display name")
    args = parser.parse_args()
    asyncio.run(run(args.email, args.password, args.name))


if __name__ == "__main__":
    main()
