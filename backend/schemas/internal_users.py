from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, field_validator

from schemas.internal_roles import PageMeta


class InternalUserRead(BaseModel):
    id: int
    uuid: UUID
    email: EmailStr
    name: str
    role: Optional[str] = None
    internal_role_id: Optional[int] = None
    active: bool
    email_verified: bool
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class InternalUserList(BaseModel):
    data: List[InternalUserRead]
    meta: PageMeta


class InternalUserCreate(BaseModel):
    email: EmailStr
    name: str
    role: str  # role name, matched upper-cased
    password: str
    active: bool = True

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = (v or "").strip()
        if len(v) < 2:
            raise ValueError("name must have at least 2 characters")
        return v

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if len(v or "") < 8:
            raise ValueError("password must have at least 8 characters")
        return v


class InternalUserUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None
    active: Optional[bool] = None
    email: Optional[EmailStr] = None


class AdminResetPassword(BaseModel):
    password: str

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if len(v or "") < 8:
            raise ValueError("password must have at least 8 characters")
        return v
