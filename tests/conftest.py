"""
Shared pytest fixtures.
Settings are read at import time, so the environment is prepared before any
diagnosis module is imported. Each API test gets a fresh SQLite file schema.
"""
import asyncio
import os
import sys
import tempfile

_tests_dir = os.path.dirname(__file__)
if _tests_dir not in sys.path:
    sys.path.insert(0, _tests_dir)

from passlib.context import CryptContext

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass"

_db_dir = tempfile.mkdtemp(prefix="diagnosis-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ADMIN_EMAIL"] = ADMIN_EMAIL
os.environ["ADMIN_PASSWORD_HASH"] = CryptContext(schemes=["bcrypt"]).hash(ADMIN_PASSWORD)
os.environ["LOG_LEVEL"] = "WARNING"
# never reach real external services
os.environ.pop("HUBSPOT_PRIVATE_TOKEN", None)
os.environ.pop("COMPLETION_WEBHOOK_URL", None)


import pytest
from fastapi.testclient import TestClient

from diagnosis.database import drop_db, init_db
from diagnosis.main import app
from diagnosis.schemas.user import CurrentUser
from diagnosis.services import auth_service, notification_service


def bearer(user: CurrentUser) -> dict:
    return {"Authorization": f"Bearer {auth_service.create_user_token(user)}"}


@pytest.fixture
def client():
    asyncio.run(drop_db())
    asyncio.run(init_db())
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def member():
    return CurrentUser(user_id="user-0000000000000001", email="ana@example.com", name="Ana Lima")


@pytest.fixture
def member_headers(member):
    return bearer(member)


@pytest.fixture
def admin_headers(client):
    response = client.post("/auth/admin-login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def notifications(monkeypatch):
    """Completion notices recorded instead of sent"""
    sent = []

    async def record(email, name=None, transport=None):
        sent.append(email)
        return True

    monkeypatch.setattr(notification_service, "notify_completion", record)
    return sent
