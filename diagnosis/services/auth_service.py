import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from diagnosis.models.user import User
from diagnosis.models.progress import UserProgress
from diagnosis.schemas.user import CurrentUser
from diagnosis.services.bookkeeping import empty_form_data
from diagnosis.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ADMIN_USER_ID = "admin-001"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def create_user_token(user: CurrentUser) -> str:
    return create_access_token(
        data={"sub": user.user_id, "email": user.email, "name": user.name, "role": user.role}
    )


def decode_token(token: str) -> Optional[CurrentUser]:
    """Caller identity from a bearer token, None when invalid or expired"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    user_id = payload.get("sub")
    email = payload.get("email")
    if not user_id or not email:
        return None
    return CurrentUser(
        user_id=user_id,
        email=email,
        name=payload.get("name"),
        role=payload.get("role") or "member",
    )


def authenticate_admin(email: str, password: str) -> Optional[CurrentUser]:
    """Check the configured admin credentials"""
    if not settings.ADMIN_PASSWORD_HASH:
        logger.warning("Admin login attempted but ADMIN_PASSWORD_HASH is not configured")
        return None
    if email.strip().lower() != settings.ADMIN_EMAIL.lower():
        return None
    if not verify_password(password, settings.ADMIN_PASSWORD_HASH):
        return None
    return CurrentUser(user_id=ADMIN_USER_ID, email=settings.ADMIN_EMAIL, name="Admin", role="admin")


async def upsert_member(db: AsyncSession, email: str, name: str) -> User:
    """Create or refresh a member user and make sure a progress row exists"""
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user:
        user = User(id=f"user-{uuid.uuid4().hex[:16]}", email=email, name=name, role="member")
        db.add(user)
        logger.info("Created member %s (%s)", email, user.id)
    else:
        user.name = name

    progress_result = await db.execute(select(UserProgress).where(UserProgress.user_id == user.id))
    if not progress_result.scalar_one_or_none():
        db.add(UserProgress(
            id=f"prog-{user.id}",
            user_id=user.id,
            email=email,
            name=name,
            form_data=empty_form_data(),
            module_state={},
            progress_percentage=0,
            status="in_progress",
        ))

    await db.commit()
    await db.refresh(user)
    return user


async def ensure_admin_user(db: AsyncSession) -> None:
    result = await db.execute(select(User).where(User.id == ADMIN_USER_ID))
    if not result.scalar_one_or_none():
        db.add(User(id=ADMIN_USER_ID, email=settings.ADMIN_EMAIL, name="Admin", role="admin"))
        await db.commit()
