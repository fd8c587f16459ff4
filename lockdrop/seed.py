"""
Admin seed script.

Creates the admin user, or resets its password if it already exists.
Credentials default to ADMIN_USERNAME and ADMIN_PASSWORD from the environment.

Usage:
    python -m lockdrop.seed [--username admin] [--password secret]
"""

import argparse
import asyncio
import os
import sys

from . import database as db
from .security import PasswordHasher


async def seed_admin(username: str, password: str, rounds: int = 12) -> dict:
    await db.init_db()
    password_hash = PasswordHasher(rounds).hash(password)
    return await db.upsert_admin(username, password_hash)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create or update the lockdrop admin user")
    parser.add_argument("--username", default=os.getenv("ADMIN_USERNAME"))
    parser.add_argument("--password", default=os.getenv("ADMIN_PASSWORD"))
    args = parser.parse_args(argv)

    username = (args.username or "").strip()
    password = (args.password or "").strip()
    if not username or not password:
        print("Error: admin username and password are required (ADMIN_USERNAME / ADMIN_PASSWORD)", file=sys.stderr)
        return 1

    rounds = int(os.getenv("BCRYPT_ROUNDS", "12"))
    admin = asyncio.run(seed_admin(username, password, rounds))
    print(f"Admin user \"{admin['username']}\" created/updated successfully.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
