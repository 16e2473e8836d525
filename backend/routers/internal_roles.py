import logging
import math
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.auth import current_active_superuser
from db.database import (
    get_async_session,
    InternalPermission as InternalPermissionModel,
    InternalRole as InternalRoleModel,
    InternalRolePermission as InternalRolePermissionModel,
    InternalUser as InternalUserModel,
)
from db.users import User
from schemas.internal_roles import (
    InternalPermissionRead,
    InternalRoleCreate,
    InternalRoleList,
    InternalRoleListRow,
    InternalRoleRead,
    InternalRoleUpdate,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _role_load_options():
    return (
        selectinload(InternalRoleModel.permissions).selectinload(InternalRolePermissionModel.permission),
    )


async def _load_role(db: AsyncSession, role_id: int) -> Optional[InternalRoleModel]:
    res = await db.execute(
        select(InternalRoleModel)
        .where(InternalRoleModel.id == role_id)
        .options(*_role_load_options())
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def _role_name_taken(db: AsyncSession, name: str) -> bool:
    res = await db.execute(select(InternalRoleModel.id).where(InternalRoleModel.name == name))
    return res.scalar_one_or_none() is not None


async def _ensure_permissions_exist(db: AsyncSession, permission_ids: List[int]) -> List[int]:
    """De-duplicates the ids (keeping order) and rejects unknown ones."""
    wanted = list(dict.fromkeys(int(p) for p in permission_ids))
    if not wanted:
        return []
    res = await db.execute(select(InternalPermissionModel.id).where(InternalPermissionModel.id.in_(wanted)))
    found = set(res.scalars().all())
    missing = [p for p in wanted if p not in found]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown permission ids: {missing}",
        )
    return wanted


async def _replace_role_permissions(db: AsyncSession, role_id: int, permission_ids: List[int]) -> None:
    await db.execute(delete(InternalRolePermissionModel).where(InternalRolePermissionModel.role_id == role_id))
    if permission_ids:
        await db.execute(
            insert(InternalRolePermissionModel),
            [{"role_id": role_id, "permission_id": pid} for pid in permission_ids],
        )


@router.get("/roles", response_model=InternalRoleList)
async def list_roles(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    where = []
    if search and search.strip():
        where.append(func.lower(InternalRoleModel.name).like(f"%{search.strip().lower()}%"))

    total = (await db.execute(select(func.count(InternalRoleModel.id)).where(*where))).scalar() or 0

    res = await db.execute(
        select(InternalRoleModel)
        .where(*where)
        .options(*_role_load_options())
        .order_by(InternalRoleModel.name.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    roles = res.scalars().all()

    counts: Dict[int, int] = {}
    if roles:
        cres = await db.execute(
            select(InternalUserModel.internal_role_id, func.count(InternalUserModel.id))
            .where(InternalUserModel.internal_role_id.in_([r.id for r in roles]))
            .group_by(InternalUserModel.internal_role_id)
        )
        counts = {role_id: int(n) for role_id, n in cres.all()}

    return InternalRoleList(
        data=[InternalRoleListRow(**r.to_schema, users_count=counts.get(r.id, 0)) for r in roles],
        meta={
            "total": int(total),
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if total else 0,
        },
    )


@router.get("/roles/permissions", response_model=List[InternalPermissionRead])
async def list_permissions(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    res = await db.execute(
        select(InternalPermissionModel).order_by(
            InternalPermissionModel.module.asc(),
            InternalPermissionModel.slug.asc(),
        )
    )
    return [InternalPermissionRead(**p.to_schema) for p in res.scalars().all()]


@router.get("/roles/{role_id}", response_model=InternalRoleRead)
async def get_role(
    role_id: int,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    role = await _load_role(db, role_id)
    if not role:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return InternalRoleRead(**role.to_schema)


@router.post("/roles", response_model=InternalRoleRead, status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: InternalRoleCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    name = payload.name.upper()
    if await _role_name_taken(db, name):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Role name already exists")

    permission_ids = await _ensure_permissions_exist(db, payload.permissions or [])

    try:
        role = InternalRoleModel(name=name, description=payload.description)
        db.add(role)
        await db.flush()
        role_id = role.id
        await _replace_role_permissions(db, role_id, permission_ids)
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent create of the same name.
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Role name already exists")

    role = await _load_role(db, role_id)
    return InternalRoleRead(**role.to_schema)


@router.put("/roles/{role_id}", response_model=InternalRoleRead)
async def update_role(
    role_id: int,
    payload: InternalRoleUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    """
    Update description and/or permissions.

    A `permissions` list replaces the whole set in one transaction
    (delete all, insert submitted). Concurrent updates: last writer wins.
    """
    role = await _load_role(db, role_id)
    if not role:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")

    permission_ids = None
    if payload.permissions is not None:
        permission_ids = await _ensure_permissions_exist(db, payload.permissions)

    try:
        if payload.description is not None:
            role.description = payload.description
        role.updated_at = func.now()
        if permission_ids is not None:
            await _replace_role_permissions(db, role_id, permission_ids)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception("update_role failed (role=%s)", role_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to update role: {e}")

    if permission_ids is not None:
        logger.info("Role %s permissions replaced (%d permissions)", role_id, len(permission_ids))

    role = await _load_role(db, role_id)
    return InternalRoleRead(**role.to_schema)


@router.delete("/roles/{role_id}", response_model=Dict)
async def delete_role(
    role_id: int,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    res = await db.execute(select(InternalRoleModel.id).where(InternalRoleModel.id == role_id))
    if res.scalar_one_or_none() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")

    users_count = (
        await db.execute(
            select(func.count(InternalUserModel.id)).where(InternalUserModel.internal_role_id == role_id)
        )
    ).scalar() or 0
    if users_count > 0:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Cannot delete role assigned to users")

    await db.execute(delete(InternalRolePermissionModel).where(InternalRolePermissionModel.role_id == role_id))
    await db.execute(delete(InternalRoleModel).where(InternalRoleModel.id == role_id))
    await db.commit()
    return {"success": True}
