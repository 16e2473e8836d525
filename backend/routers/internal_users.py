import math
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi_users.password import PasswordHelper
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_superuser
from db.database import (
    get_async_session,
    InternalRole as InternalRoleModel,
    InternalUser as InternalUserModel,
)
from db.users import User
from schemas.internal_users import (
    AdminResetPassword,
    InternalUserCreate,
    InternalUserList,
    InternalUserRead,
    InternalUserUpdate,
)

router = APIRouter()
password_helper = PasswordHelper()


async def _role_by_name(db: AsyncSession, name: str) -> InternalRoleModel:
    res = await db.execute(select(InternalRoleModel).where(InternalRoleModel.name == name.strip().upper()))
    role = res.scalar_one_or_none()
    if not role:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid role")
    return role


async def _email_taken(db: AsyncSession, email: str) -> bool:
    res = await db.execute(
        select(InternalUserModel.id).where(func.lower(InternalUserModel.email) == email.lower())
    )
    return res.scalar_one_or_none() is not None


async def _get_or_404(db: AsyncSession, user_id: int) -> InternalUserModel:
    res = await db.execute(select(InternalUserModel).where(InternalUserModel.id == user_id))
    m = res.scalar_one_or_none()
    if not m:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return m


@router.get("/", response_model=InternalUserList)
async def list_internal_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[str] = None,
    active: Optional[bool] = None,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    where = []
    if search and search.strip():
        qq = f"%{search.strip().lower()}%"
        where.append(or_(func.lower(InternalUserModel.name).like(qq), func.lower(InternalUserModel.email).like(qq)))
    if role:
        where.append(InternalUserModel.role == role.strip().upper())
    if active is not None:
        where.append(InternalUserModel.active.is_(active))

    total = (await db.execute(select(func.count(InternalUserModel.id)).where(*where))).scalar() or 0
    res = await db.execute(
        select(InternalUserModel)
        .where(*where)
        .order_by(InternalUserModel.created_at.desc(), InternalUserModel.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return InternalUserList(
        data=[InternalUserRead(**u.to_schema) for u in res.scalars().all()],
        meta={
            "total": int(total),
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if total else 0,
        },
    )


@router.get("/{user_id}", response_model=InternalUserRead)
async def get_internal_user(
    user_id: int,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    m = await _get_or_404(db, user_id)
    return InternalUserRead(**m.to_schema)


@router.post("/", response_model=InternalUserRead, status_code=status.HTTP_201_CREATED)
async def create_internal_user(
    payload: InternalUserCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    if await _email_taken(db, payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")

    role = await _role_by_name(db, payload.role)

    m = InternalUserModel(
        email=payload.email,
        name=payload.name,
        role=role.name,
        internal_role_id=role.id,
        password_hash=password_helper.hash(payload.password),
        active=payload.active,
        email_verified=True,
    )
    db.add(m)
    await db.commit()
    await db.refresh(m)
    return InternalUserRead(**m.to_schema)


@router.put("/{user_id}", response_model=InternalUserRead)
async def update_internal_user(
    user_id: int,
    payload: InternalUserUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    m = await _get_or_404(db, user_id)

    data = payload.model_dump(exclude_unset=True)
    if data.get("email") and data["email"].lower() != m.email.lower():
        if await _email_taken(db, data["email"]):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")
        m.email = data["email"]
    if data.get("role"):
        role = await _role_by_name(db, data["role"])
        m.internal_role_id = role.id
        m.role = role.name
    if data.get("name"):
        m.name = data["name"].strip()
    if data.get("active") is not None:
        m.active = bool(data["active"])

    await db.commit()
    await db.refresh(m)
    return InternalUserRead(**m.to_schema)


@router.delete("/{user_id}", response_model=Dict)
async def delete_internal_user(
    user_id: int,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    await _get_or_404(db, user_id)
    await db.execute(delete(InternalUserModel).where(InternalUserModel.id == user_id))
    await db.commit()
    return {"success": True}


@router.post("/{user_id}/reset-password", response_model=Dict)
async def reset_internal_user_password(
    user_id: int,
    payload: AdminResetPassword,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    m = await _get_or_404(db, user_id)
    m.password_hash = password_helper.hash(payload.password)
    await db.commit()
    return {"success": True}
