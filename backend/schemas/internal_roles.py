from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator


class InternalPermissionRead(BaseModel):
    id: int
    slug: str
    module: str
    description: Optional[str] = None


class InternalRolePermissionRead(BaseModel):
    permission: InternalPermissionRead


class InternalRoleRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    permissions: List[InternalRolePermissionRead] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class InternalRoleListRow(InternalRoleRead):
    users_count: int = 0


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class InternalRoleList(BaseModel):
    data: List[InternalRoleListRow]
    meta: PageMeta


class InternalRoleCreate(BaseModel):
    name: str
    description: Optional[str] = None
    permissions: Optional[List[int]] = None  # permission ids

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = (v or "").strip()
        if len(v) < 2:
            raise ValueError("name must have at least 2 characters")
        return v


class InternalRoleUpdate(BaseModel):
    description: Optional[str] = None
    # Replaces the whole permission set when present
    permissions: Optional[List[int]] = None
