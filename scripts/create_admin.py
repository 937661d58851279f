"""Create (or promote) an administrator account.

Registration through the API always creates regular users, so the first
admin has to be bootstrapped from the command line.

Usage:
  python scripts/create_admin.py --email admin@example.com --password '...' --name Admin
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from order_management.app.core.database import DatabaseManager
from order_management.app.core.password_security import SecurityUtils
from order_management.app.core.settings import get_settings
from order_management.app.models.user import Role, User
from order_management.app.repository.user_repository import UserRepository


async def create_admin(email: str, password: str, name: str, phone: Optional[str] = None) -> User:
    settings = get_settings()
    manager = DatabaseManager(settings.DATABASE_URL)
    try:
        await manager.create_tables()
        async with manager.async_session_maker() as session:
            repository = UserRepository(session)
            user = await repository.query_email(email)
            if user is not None:
                return await repository.update(
                    user,
                    {
                        "role": Role.ADMIN.value,
                        "blocked": False,
                        "password_hash": SecurityUtils.hash_password(password),
                    },
                )
            return await repository.create(
                User(
                    name=name,
                    email=email.lower(),
                    password_hash=SecurityUtils.hash_password(password),
                    phone=phone,
                    role=Role.ADMIN.value,
                )
            )
    finally:
        await manager.close()


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--name", default="Administrator")
    ap.add_argument("--phone", default=None)
    args = ap.parse_args()

    user = asyncio.run(create_admin(args.email, args.password, args.name, args.phone))

    print("Admin ready:")
    print(f"  id={user.id} email={user.email} role={user.role}")


if __name__ == "__main__":
    main()
