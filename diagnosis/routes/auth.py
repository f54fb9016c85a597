import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from diagnosis.database import get_db
from diagnosis.schemas.user import AdminLogin, CurrentUser, MemberVerify, Token, UserResponse
from diagnosis.services import auth_service, crm_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(user: CurrentUser) -> Token:
    return Token(
        token=auth_service.create_user_token(user),
        user=UserResponse(userId=user.user_id, email=user.email, name=user.name, role=user.role),
    )


@router.post("/verify-member", response_model=Token)
async def verify_member(payload: MemberVerify, db: AsyncSession = Depends(get_db)):
    """Member login: the email must belong to a CRM contact with a won deal"""
    try:
        member = await crm_service.verify_member(payload.email)
    except crm_service.MemberVerificationError as e:
        logger.warning("Member verification failed for %s: %s", payload.email, e)
        raise HTTPException(status_code=e.status_code, detail=e.public_message)

    user = await auth_service.upsert_member(db, member.email, member.name)
    return _token_response(
        CurrentUser(user_id=user.id, email=user.email, name=user.name, role=user.role)
    )


@router.post("/admin-login", response_model=Token)
async def admin_login(payload: AdminLogin, db: AsyncSession = Depends(get_db)):
    admin = auth_service.authenticate_admin(payload.email, payload.password)
    if not admin:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciais inválidas",
            headers={"WWW-Authenticate": "Bearer"},
        )

    await auth_service.ensure_admin_user(db)
    logger.info("Admin login: %s", admin.email)
    return _token_response(admin)
