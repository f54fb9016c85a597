"""
Database initialization script
Creates the progress tables and the admin account row
Use --hash-password <password> to print a value for ADMIN_PASSWORD_HASH
"""
import asyncio
import sys

from diagnosis.config import get_settings
from diagnosis.database import AsyncSessionLocal, drop_db, init_db
from diagnosis.services import auth_service


async def create_database(reset: bool = False):
    """Create tables, optionally dropping existing ones first"""
    settings = get_settings()

    if reset:
        await drop_db()
        print(f"Dropped existing tables in {settings.DATABASE_URL}")

    await init_db()
    print("Created users and user_progress tables")

    async with AsyncSessionLocal() as db:
        await auth_service.ensure_admin_user(db)
    print(f"Admin account: {settings.ADMIN_EMAIL}")

    if not settings.ADMIN_PASSWORD_HASH:
        print("ADMIN_PASSWORD_HASH is not set, admin login stays disabled")


def hash_password(password: str) -> str:
    """Bcrypt hash to paste into ADMIN_PASSWORD_HASH"""
    return auth_service.get_password_hash(password)


def main():
    args = sys.argv[1:]
    if "--hash-password" in args:
        index = args.index("--hash-password")
        if index + 1 >= len(args):
            sys.exit("Usage: create_database.py --hash-password <password>")
        print(hash_password(args[index + 1]))
        return

    print("=" * 60)
    print("Mentor Diagnosis Database Creation")
    print("=" * 60)

    asyncio.run(create_database(reset="--reset" in args))

    print("\n" + "=" * 60)
    print("Database created successfully!")
    print("=" * 60)


if __name__ == "__main__":
    main()
