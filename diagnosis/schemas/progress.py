import math

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Any, Dict, Optional

from diagnosis.services.module_schema import MODULES


def _check_modules(value: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(value) - set(MODULES))
    if unknown:
        raise ValueError(f"Unknown modules: {', '.join(unknown)}")
    return value


def _check_finite(value: Any) -> Any:
    """Answers must survive a round trip through JSON, so no NaN or infinity"""
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError("Numbers must be finite")
    if isinstance(value, dict):
        for item in value.values():
            _check_finite(item)
    elif isinstance(value, list):
        for item in value:
            _check_finite(item)
    return value


class SaveProgressRequest(BaseModel):
    formData: Dict[str, Dict[str, Any]]
    moduleSteps: Optional[Dict[str, int]] = None

    @field_validator("formData")
    @classmethod
    def known_modules(cls, value):
        return _check_finite(_check_modules(value))

    @field_validator("moduleSteps")
    @classmethod
    def valid_steps(cls, value):
        if value is None:
            return value
        _check_modules(value)
        if any(step < 0 for step in value.values()):
            raise ValueError("Steps must be non-negative")
        return value


class SubmitModuleRequest(BaseModel):
    module: str
    data: Dict[str, Any]

    @field_validator("module")
    @classmethod
    def known_module(cls, value):
        if value not in MODULES:
            raise ValueError(f"Unknown module: {value}")
        return value

    @field_validator("data")
    @classmethod
    def finite_numbers(cls, value):
        return _check_finite(value)


class StepUpdate(BaseModel):
    step: int = Field(ge=0)


class ModuleProgressOut(BaseModel):
    percentage: int
    displayed: int
    completed: bool
    step: Optional[int] = None
    source: str
    unlocked: bool


class ProgressPayload(BaseModel):
    formData: Dict[str, Dict[str, Any]]
    moduleSteps: Dict[str, int]
    completedModules: list[str]
    progressPercentage: int
    modules: Dict[str, ModuleProgressOut]
    unlocked: Dict[str, bool]
    status: str
    lastUpdated: Optional[datetime] = None


class ProgressResponse(BaseModel):
    success: bool = True
    progress: ProgressPayload


class SaveResponse(BaseModel):
    success: bool = True
    message: str
    progressPercentage: int
    status: str
    modules: Dict[str, ModuleProgressOut]
    timestamp: datetime


class ModuleView(BaseModel):
    success: bool = True
    module: str
    data: Dict[str, Any]
    percentage: int
    step: Optional[int] = None


class AdminUserSummary(BaseModel):
    id: str
    user_id: str
    email: str
    name: Optional[str] = None
    progressPercentage: int
    lastUpdated: datetime
    status: str


class AdminUserList(BaseModel):
    success: bool = True
    users: list[AdminUserSummary]
    total: int


class AdminUserDetail(BaseModel):
    id: str
    userId: str
    email: str
    name: Optional[str] = None
    createdAt: Optional[datetime] = None
    progressPercentage: int
    legacyScore: int
    modules: Dict[str, ModuleProgressOut]
    formData: Dict[str, Dict[str, Any]]
    lastUpdated: Optional[datetime] = None
    status: str


class AdminUserDetailResponse(BaseModel):
    success: bool = True
    user: AdminUserDetail
