"""
Tests for the create_database.py script.
"""
import asyncio

import pytest
from sqlalchemy import select

import create_database as script
from diagnosis.database import AsyncSessionLocal, drop_db
from diagnosis.models.user import User
from diagnosis.services import auth_service
from conftest import ADMIN_EMAIL


class TestHashPassword:
    def test_prints_verifiable_hash(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["create_database.py", "--hash-password", "s3cret"])
        script.main()
        printed = capsys.readouterr().out.strip()
        assert printed.startswith("$2")
        assert auth_service.verify_password("s3cret", printed)
        assert not auth_service.verify_password("other", printed)

    def test_hash_does_not_touch_database(self, monkeypatch, capsys):
        async def fail(*args, **kwargs):
            raise AssertionError("database should not be created")

        monkeypatch.setattr(script, "create_database", fail)
        monkeypatch.setattr("sys.argv", ["create_database.py", "--hash-password", "s3cret"])
        script.main()
        assert "Database created" not in capsys.readouterr().out

    def test_missing_password(self, monkeypatch):
        monkeypatch.setattr("sys.argv", ["create_database.py", "--hash-password"])
        with pytest.raises(SystemExit):
            script.main()


class TestCreateDatabase:
    def test_creates_tables_and_admin(self, monkeypatch, capsys):
        asyncio.run(drop_db())
        monkeypatch.setattr("sys.argv", ["create_database.py"])
        script.main()
        assert "Database created successfully!" in capsys.readouterr().out

        async def admin_row():
            async with AsyncSessionLocal() as db:
                result = await db.execute(select(User).where(User.email == ADMIN_EMAIL))
                return result.scalar_one_or_none()

        admin = asyncio.run(admin_row())
        assert admin is not None
        assert admin.id == auth_service.ADMIN_USER_ID
