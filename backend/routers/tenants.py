import uuid
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_superuser
from db.database import get_async_session, Tenant as TenantModel
from db.users import User

router = APIRouter()


class TenantCreate(BaseModel):
    nome: str


class TenantUpdate(BaseModel):
    nome: Optional[str] = None
    ativo: Optional[bool] = None


@router.get("/", response_model=List[Dict])
async def list_tenants(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    res = await db.execute(select(TenantModel).order_by(func.lower(TenantModel.nome).asc()))
    return [t.to_schema for t in res.scalars().all()]


@router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    payload: TenantCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    nome = (payload.nome or "").strip()
    if not nome:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="nome is required")
    t = TenantModel(nome=nome, ativo=True)
    db.add(t)
    await db.commit()
    await db.refresh(t)
    return t.to_schema


@router.patch("/{tenant_id}", response_model=Dict)
async def update_tenant(
    tenant_id: int,
    payload: TenantUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    res = await db.execute(select(TenantModel).where(TenantModel.id == tenant_id))
    t = res.scalar_one_or_none()
    if not t:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")

    data = payload.model_dump(exclude_unset=True)
    if data.get("nome"):
        t.nome = data["nome"].strip()
    if data.get("ativo") is not None:
        t.ativo = bool(data["ativo"])

    await db.commit()
    await db.refresh(t)
    return t.to_schema


@router.put("/{tenant_id}/users/{user_id}", response_model=Dict)
async def attach_user_to_tenant(
    tenant_id: int,
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    """Make a registered user a member of the tenant (replaces any previous tenant)."""
    tres = await db.execute(select(TenantModel.id).where(TenantModel.id == tenant_id))
    if tres.scalar_one_or_none() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")

    ures = await db.execute(select(User).where(User.id == user_id))
    member = ures.scalar_one_or_none()
    if not member:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    member.tenant_id = tenant_id
    await db.commit()
    await db.refresh(member)
    return member.to_schema
