# Pydantic schemas for tenant user requests/responses.
# fastapi-users provides the base UserRead, UserCreate, UserUpdate schemas;
# we only add the tenant link and a display name.
# Registration is public, so tenant_id is read-only here; a superuser attaches
# users to a tenant through /internal/tenants/{tenant_id}/users/{user_id}.

from typing import Optional
from uuid import UUID

from fastapi_users import schemas


class UserRead(schemas.BaseUser[UUID]):
    tenant_id: Optional[int] = None
    name: Optional[str] = None


class UserCreate(schemas.BaseUserCreate):
    name: Optional[str] = None


class UserUpdate(schemas.BaseUserUpdate):
    name: Optional[str] = None
