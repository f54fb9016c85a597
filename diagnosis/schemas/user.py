from pydantic import BaseModel, field_validator
from typing import Optional


class MemberVerify(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("Invalid email")
        return value


class AdminLogin(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    userId: str
    email: str
    name: Optional[str] = None
    role: str


class Token(BaseModel):
    success: bool = True
    token: str
    token_type: str = "bearer"
    user: UserResponse


class CurrentUser(BaseModel):
    """Caller identity carried in the bearer token"""
    user_id: str
    email: str
    name: Optional[str] = None
    role: str = "member"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
