import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from diagnosis.database import get_db
from diagnosis.dependencies import get_current_user
from diagnosis.schemas.progress import (
    ModuleView,
    ProgressResponse,
    SaveProgressRequest,
    SaveResponse,
    StepUpdate,
    SubmitModuleRequest,
)
from diagnosis.schemas.user import CurrentUser
from diagnosis.services import notification_service, progress_service
from diagnosis.services.module_gate import ModuleLockedError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["progress"])


def _save_response(
    result: progress_service.SaveResult,
    background_tasks: BackgroundTasks,
    message: str,
) -> SaveResponse:
    if result.notify:
        background_tasks.add_task(notification_service.notify_completion, result.email, result.name)
    return SaveResponse(
        message=message,
        progressPercentage=result.progress_percentage,
        status=result.status,
        modules={name: m.to_dict() for name, m in result.report.modules.items()},
        timestamp=result.last_updated,
    )


@router.get("/progress", response_model=ProgressResponse)
async def get_progress(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        payload = await progress_service.load_progress(db, user)
    except progress_service.ProgressStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return ProgressResponse(progress=payload)


@router.post("/save-progress", response_model=SaveResponse)
async def save_progress(
    payload: SaveProgressRequest,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Replace the submitted module records; bookkeeping keys inside them are accepted"""
    try:
        result = await progress_service.save_progress(db, user, payload.formData, payload.moduleSteps)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except progress_service.ProgressStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return _save_response(result, background_tasks, "Progresso salvo com sucesso")


@router.post("/submit-module", response_model=SaveResponse)
async def submit_module(
    payload: SubmitModuleRequest,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        result = await progress_service.submit_module(db, user, payload.module, payload.data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except progress_service.ProgressStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return _save_response(result, background_tasks, f"Módulo {payload.module} enviado com sucesso")


@router.post("/modules/{module}/complete", response_model=SaveResponse)
async def complete_module(
    module: str,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Explicit completion; calling it again changes nothing"""
    try:
        result = await progress_service.mark_module_completed(db, user, module)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except progress_service.ProgressStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return _save_response(result, background_tasks, f"Módulo {module} concluído")


@router.put("/modules/{module}/step", response_model=SaveResponse)
async def save_step(
    module: str,
    payload: StepUpdate,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        result = await progress_service.save_module_step(db, user, module, payload.step)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except progress_service.ProgressStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return _save_response(result, background_tasks, "Etapa salva")


@router.get("/modules/{module}", response_model=ModuleView)
async def open_module(
    module: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        view = await progress_service.get_module_view(db, user, module)
    except ModuleLockedError as e:
        logger.info("%s tried to open locked module %s", user.email, module)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except progress_service.ProgressStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return ModuleView(**view)
