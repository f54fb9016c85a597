import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from diagnosis.models.user import User
from diagnosis.models.progress import UserProgress
from diagnosis.schemas.user import CurrentUser
from diagnosis.services import module_gate
from diagnosis.services.bookkeeping import (
    ModuleState,
    dump_module_state,
    empty_form_data,
    hoist_bookkeeping,
    load_module_state,
    split_record,
)
from diagnosis.services.completion import STATUS_IN_PROGRESS, detect_transition
from diagnosis.services.module_schema import MODULES
from diagnosis.services.progress_engine import ProgressReport, compute_report, raise_high_water
from diagnosis.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

Mutation = Callable[[Dict[str, dict], Dict[str, ModuleState]], None]


class ProgressStoreError(RuntimeError):
    """The progress store could not be read or written; safe to retry."""


@dataclass
class SaveResult:
    report: ProgressReport
    progress_percentage: int
    status: str
    notify: bool
    email: str
    name: Optional[str]
    last_updated: datetime


def _check_module(module: str) -> None:
    if module not in MODULES:
        raise ValueError(f"Unknown module: {module}")


async def _fetch_row(db: AsyncSession, user_id: str) -> Optional[UserProgress]:
    result = await db.execute(
        select(UserProgress)
        .where(UserProgress.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _new_row(user: CurrentUser) -> UserProgress:
    return UserProgress(
        id=f"prog-{user.user_id}",
        user_id=user.user_id,
        email=user.email,
        name=user.name,
        form_data=empty_form_data(),
        module_state={},
        progress_percentage=0,
        status=STATUS_IN_PROGRESS,
        last_updated=datetime.utcnow(),
    )


def _row_state(row: UserProgress) -> Tuple[Dict[str, dict], Dict[str, ModuleState]]:
    return hoist_bookkeeping(row.form_data, load_module_state(row.module_state))


async def _mutate(db: AsyncSession, user: CurrentUser, mutation: Mutation) -> SaveResult:
    """
    Read-modify-write of one account's progress.

    The versioned UPDATE only commits when nobody else wrote the row since it
    was read, so a completion transition (and its notification) is decided by
    exactly one writer. Losers re-read and try again.
    """
    for attempt in range(1, settings.SAVE_RETRY_ATTEMPTS + 1):
        try:
            row = await _fetch_row(db, user.user_id)
            if row is None:
                row = _new_row(user)
                db.add(row)

            form_data, states = _row_state(row)
            mutation(form_data, states)

            report = compute_report(form_data, states)
            states = raise_high_water(states, report)
            transition = detect_transition(
                row.status,
                report.aggregate,
                already_notified=row.completion_notified_at is not None,
                renotify=settings.RENOTIFY_ON_RECOMPLETION,
            )

            now = datetime.utcnow()
            row.form_data = form_data
            row.module_state = dump_module_state(states)
            row.progress_percentage = max(report.aggregate, row.progress_percentage or 0)
            row.status = transition.status
            row.last_updated = now
            if user.name:
                row.name = user.name
            if transition.notify:
                row.completion_notified_at = now

            await db.commit()
        except (StaleDataError, IntegrityError):
            await db.rollback()
            logger.warning("Concurrent update for %s (attempt %d)", user.email, attempt)
            continue
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Failed to save progress for %s: %s", user.email, e)
            raise ProgressStoreError("Erro ao salvar dados") from e

        if transition.notify:
            logger.info("Account %s reached 100%%, completion notice queued", user.email)
        logger.info(
            "Saved progress for %s: %d%% (%s)", user.email, report.aggregate, transition.status
        )
        return SaveResult(
            report=report,
            progress_percentage=row.progress_percentage,
            status=row.status,
            notify=transition.notify,
            email=row.email,
            name=row.name,
            last_updated=now,
        )

    raise ProgressStoreError("Too many concurrent updates, try again")


def _payload(row: Optional[UserProgress]) -> Dict[str, Any]:
    if row is None:
        form_data, states = empty_form_data(), load_module_state(None)
        stored, status, last_updated = 0, STATUS_IN_PROGRESS, None
    else:
        form_data, states = _row_state(row)
        stored, status, last_updated = row.progress_percentage or 0, row.status or STATUS_IN_PROGRESS, row.last_updated

    report = compute_report(form_data, states)
    return {
        "formData": form_data,
        "moduleSteps": {m: states[m].step for m in MODULES if states[m].step is not None},
        "completedModules": [m for m in MODULES if states[m].completed],
        "progressPercentage": max(report.aggregate, stored),
        "modules": {m: report.modules[m].to_dict() for m in MODULES},
        "unlocked": report.unlocked(),
        "status": status,
        "lastUpdated": last_updated,
    }


async def load_progress(db: AsyncSession, user: CurrentUser) -> Dict[str, Any]:
    """Answers, steps, percentages and unlock state for the caller"""
    try:
        row = await _fetch_row(db, user.user_id)
    except SQLAlchemyError as e:
        logger.error("Failed to load progress for %s: %s", user.email, e)
        raise ProgressStoreError("Erro ao buscar dados") from e
    return _payload(row)


async def save_progress(
    db: AsyncSession,
    user: CurrentUser,
    form_update: Dict[str, Any],
    module_steps: Optional[Dict[str, int]] = None,
) -> SaveResult:
    """Replace the given module records (last write wins per record) and recompute"""
    for module in list(form_update) + list(module_steps or {}):
        _check_module(module)

    def mutation(form_data, states):
        for module, record in form_update.items():
            answers, completed, step = split_record(record)
            form_data[module] = answers
            if completed:
                states[module].completed = True
            if step is not None:
                states[module].step = step
        for module, step in (module_steps or {}).items():
            states[module].step = step

    return await _mutate(db, user, mutation)


async def submit_module(db: AsyncSession, user: CurrentUser, module: str, data: Dict[str, Any]) -> SaveResult:
    return await save_progress(db, user, {module: data})


async def mark_module_completed(db: AsyncSession, user: CurrentUser, module: str) -> SaveResult:
    """Set a module's explicit completion flag"""
    _check_module(module)

    def mutation(form_data, states):
        states[module].completed = True

    return await _mutate(db, user, mutation)


async def save_module_step(db: AsyncSession, user: CurrentUser, module: str, step: int) -> SaveResult:
    _check_module(module)

    def mutation(form_data, states):
        states[module].step = step

    return await _mutate(db, user, mutation)


async def get_module_view(db: AsyncSession, user: CurrentUser, module: str) -> Dict[str, Any]:
    """Activate a module; locked modules are rejected"""
    _check_module(module)
    payload = await load_progress(db, user)
    percentages = {m: payload["modules"][m]["percentage"] for m in MODULES}
    module_gate.ensure_unlocked(module, percentages)
    return {
        "module": module,
        "data": payload["formData"][module],
        "percentage": percentages[module],
        "step": payload["moduleSteps"].get(module),
    }


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

async def list_submissions(db: AsyncSession) -> List[Dict[str, Any]]:
    """All member submissions, most recently active first"""
    result = await db.execute(
        select(UserProgress, User.created_at)
        .outerjoin(User, User.id == UserProgress.user_id)
        .where(UserProgress.email != settings.ADMIN_EMAIL)
        .order_by(func.coalesce(UserProgress.last_updated, User.created_at).desc())
    )

    submissions = []
    for row, created_at in result.all():
        form_data, states = _row_state(row)
        report = compute_report(form_data, states)
        submissions.append({
            "id": row.id,
            "user_id": row.user_id,
            "email": row.email,
            "name": row.name,
            "progressPercentage": max(report.aggregate, row.progress_percentage or 0),
            "lastUpdated": row.last_updated or created_at or datetime.utcnow(),
            "status": row.status or STATUS_IN_PROGRESS,
            "legacyScore": report.legacy_score,
            "modules": {m: report.modules[m].to_dict() for m in MODULES},
        })
    return submissions


async def get_submission(db: AsyncSession, progress_id: str) -> Dict[str, Any]:
    result = await db.execute(
        select(UserProgress, User.created_at)
        .outerjoin(User, User.id == UserProgress.user_id)
        .where(UserProgress.id == progress_id)
    )
    found = result.first()
    if not found:
        raise ValueError(f"Progress {progress_id} not found")

    row, created_at = found
    form_data, states = _row_state(row)
    report = compute_report(form_data, states)
    return {
        "id": row.id,
        "userId": row.user_id,
        "email": row.email,
        "name": row.name,
        "createdAt": created_at or row.last_updated,
        "progressPercentage": max(report.aggregate, row.progress_percentage or 0),
        "legacyScore": report.legacy_score,
        "modules": {m: report.modules[m].to_dict() for m in MODULES},
        "formData": form_data,
        "lastUpdated": row.last_updated,
        "status": row.status or STATUS_IN_PROGRESS,
    }


async def reset_high_water(db: AsyncSession, progress_id: str) -> Dict[str, Any]:
    """Drop stored high-water marks back to what the answers support today"""
    result = await db.execute(select(UserProgress).where(UserProgress.id == progress_id))
    row = result.scalar_one_or_none()
    if not row:
        raise ValueError(f"Progress {progress_id} not found")

    form_data, states = _row_state(row)
    for state in states.values():
        state.high_water = 0
    report = compute_report(form_data, states)
    row.module_state = dump_module_state(raise_high_water(states, report))
    row.progress_percentage = report.aggregate
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise ProgressStoreError("Erro ao salvar dados") from e

    logger.info("Reset high-water marks for %s to %d%%", row.email, report.aggregate)
    return await get_submission(db, progress_id)


async def delete_submission(db: AsyncSession, progress_id: str) -> None:
    result = await db.execute(select(UserProgress).where(UserProgress.id == progress_id))
    row = result.scalar_one_or_none()
    if not row:
        raise ValueError(f"Progress {progress_id} not found")

    user_id = row.user_id
    try:
        await db.delete(row)
        await db.execute(delete(User).where(User.id == user_id))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to delete submission %s: %s", progress_id, e)
        raise ProgressStoreError("Erro ao excluir usuário") from e
    logger.info("Deleted submission %s (user %s)", progress_id, user_id)
