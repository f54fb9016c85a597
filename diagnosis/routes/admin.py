import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from diagnosis.database import get_db
from diagnosis.dependencies import require_admin
from diagnosis.schemas.progress import AdminUserDetailResponse, AdminUserList
from diagnosis.schemas.user import CurrentUser
from diagnosis.services import progress_service, report_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/users", response_model=AdminUserList)
async def list_users(
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All member submissions, most recently active first"""
    users = await progress_service.list_submissions(db)
    return AdminUserList(users=users, total=len(users))


@router.get("/export.csv")
async def export_csv(
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    users = await progress_service.list_submissions(db)
    return Response(
        content=report_service.export_csv(users),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="submissions.csv"'},
    )


@router.get("/users/{progress_id}", response_model=AdminUserDetailResponse)
async def get_user(
    progress_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        detail = await progress_service.get_submission(db, progress_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return AdminUserDetailResponse(user=detail)


@router.get("/users/{progress_id}/download", response_class=PlainTextResponse)
async def download_report(
    progress_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Plain-text report of one submission"""
    try:
        detail = await progress_service.get_submission(db, progress_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    filename = report_service.report_filename(detail["name"])
    logger.info("Report downloaded for %s", detail["email"])
    return PlainTextResponse(
        report_service.render_user_report(detail),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/users/{progress_id}/reset-high-water", response_model=AdminUserDetailResponse)
async def reset_high_water(
    progress_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        detail = await progress_service.reset_high_water(db, progress_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except progress_service.ProgressStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return AdminUserDetailResponse(user=detail)


@router.delete("/users/{progress_id}")
async def delete_user(
    progress_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        await progress_service.delete_submission(db, progress_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except progress_service.ProgressStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return {"success": True, "message": "Usuário excluído com sucesso"}
