"""
Tests for progress_service.py.
Concurrent writers on one account, retries on stale rows, and store failures
surfacing as 503 without partial writes.
"""
import asyncio

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from diagnosis.database import AsyncSessionLocal, drop_db, init_db
from diagnosis.services import progress_service
from diagnosis.services.module_schema import MODULES
from factories import make_full_form, make_mentor


@pytest.fixture
def store(monkeypatch):
    asyncio.run(drop_db())
    asyncio.run(init_db())
    monkeypatch.setattr(progress_service.settings, "SAVE_RETRY_ATTEMPTS", 10)


async def _save_in_own_session(user, form_update):
    async with AsyncSessionLocal() as db:
        return await progress_service.save_progress(db, user, form_update)


async def _step_in_own_session(user, module, step):
    async with AsyncSessionLocal() as db:
        return await progress_service.save_module_step(db, user, module, step)


async def _load(user):
    async with AsyncSessionLocal() as db:
        return await progress_service.load_progress(db, user)


def _failing_commit(error):
    async def commit(self):
        raise error
    return commit


class TestConcurrentWriters:
    def test_only_one_writer_notifies(self, store, member):
        async def scenario():
            return await asyncio.gather(*[_save_in_own_session(member, make_full_form()) for _ in range(5)])

        results = asyncio.run(scenario())
        assert [r.notify for r in results].count(True) == 1
        assert all(r.status == "completed" for r in results)
        assert all(r.progress_percentage == 100 for r in results)

    def test_writes_to_different_modules_are_all_kept(self, store, member):
        async def scenario():
            await asyncio.gather(*[
                _step_in_own_session(member, module, index + 1) for index, module in enumerate(MODULES)
            ])
            return await _load(member)

        progress = asyncio.run(scenario())
        assert progress["moduleSteps"] == {module: index + 1 for index, module in enumerate(MODULES)}


class TestStoreFailures:
    def test_commit_error_returns_503(self, client, member_headers, monkeypatch):
        error = OperationalError("COMMIT", {}, Exception("disk I/O error"))
        monkeypatch.setattr(AsyncSession, "commit", _failing_commit(error))
        response = client.post(
            "/api/user/save-progress", json={"formData": {"mentor": make_mentor()}}, headers=member_headers
        )
        assert response.status_code == 503
        assert response.json()["detail"] == "Erro ao salvar dados"

        monkeypatch.undo()
        progress = client.get("/api/user/progress", headers=member_headers).json()["progress"]
        assert progress["formData"] == {m: {} for m in MODULES}
        assert progress["progressPercentage"] == 0

    def test_retries_exhausted_returns_503(self, client, member_headers, monkeypatch):
        attempts = []

        async def stale_commit(self):
            attempts.append(1)
            raise StaleDataError("UPDATE matched 0 rows")

        monkeypatch.setattr(progress_service.settings, "SAVE_RETRY_ATTEMPTS", 3)
        monkeypatch.setattr(AsyncSession, "commit", stale_commit)
        response = client.put("/api/user/modules/mentor/step", json={"step": 2}, headers=member_headers)
        assert response.status_code == 503
        assert response.json()["detail"] == "Too many concurrent updates, try again"
        assert len(attempts) == 3

        monkeypatch.undo()
        progress = client.get("/api/user/progress", headers=member_headers).json()["progress"]
        assert progress["moduleSteps"] == {}

    def test_delete_commit_error_returns_503(self, client, member, member_headers, admin_headers, monkeypatch):
        response = client.post(
            "/api/user/save-progress", json={"formData": {"mentor": make_mentor()}}, headers=member_headers
        )
        assert response.status_code == 200
        progress_id = f"prog-{member.user_id}"

        error = OperationalError("COMMIT", {}, Exception("database is locked"))
        monkeypatch.setattr(AsyncSession, "commit", _failing_commit(error))
        response = client.delete(f"/api/admin/users/{progress_id}", headers=admin_headers)
        assert response.status_code == 503

        monkeypatch.undo()
        response = client.get(f"/api/admin/users/{progress_id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["user"]["formData"]["mentor"] == make_mentor()
