from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.tenant import get_current_tenant
from db.database import (
    get_async_session,
    Family as FamilyModel,
    Product as ProductModel,
    ProductVariation as ProductVariationModel,
    Subfamily as SubfamilyModel,
    Tenant,
)
from schemas.catalog import (
    FamilyCreate,
    ProductCreate,
    ProductUpdate,
    ProductVariationCreate,
    SubfamilyCreate,
)

router = APIRouter()


async def _get_product(db: AsyncSession, tenant_id: int, product_id: int) -> ProductModel:
    res = await db.execute(
        select(ProductModel).where(ProductModel.id == product_id, ProductModel.tenant_id == tenant_id)
    )
    p = res.scalar_one_or_none()
    if not p:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return p


async def _check_subfamily(db: AsyncSession, tenant_id: int, subfamilia_id: Optional[int]) -> None:
    if subfamilia_id is None:
        return
    res = await db.execute(
        select(SubfamilyModel.id).where(SubfamilyModel.id == subfamilia_id, SubfamilyModel.tenant_id == tenant_id)
    )
    if res.scalar_one_or_none() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subfamily not found")


@router.get("/families", response_model=List[Dict])
async def list_families(
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(
        select(FamilyModel).where(FamilyModel.tenant_id == tenant.id).order_by(func.lower(FamilyModel.nome).asc())
    )
    return [f.to_schema for f in res.scalars().all()]


@router.post("/families", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_family(
    payload: FamilyCreate,
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    existing = await db.execute(
        select(FamilyModel.id).where(
            FamilyModel.tenant_id == tenant.id,
            func.lower(FamilyModel.nome) == payload.nome.lower(),
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Family already exists")

    m = FamilyModel(tenant_id=tenant.id, nome=payload.nome)
    db.add(m)
    await db.commit()
    await db.refresh(m)
    return m.to_schema


@router.get("/subfamilies", response_model=List[Dict])
async def list_subfamilies(
    familia_id: Optional[int] = None,
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(SubfamilyModel).where(SubfamilyModel.tenant_id == tenant.id)
    if familia_id:
        stmt = stmt.where(SubfamilyModel.familia_id == familia_id)
    res = await db.execute(stmt.order_by(func.lower(SubfamilyModel.nome).asc()))
    return [s.to_schema for s in res.scalars().all()]


@router.post("/subfamilies", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_subfamily(
    payload: SubfamilyCreate,
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    fres = await db.execute(
        select(FamilyModel.id).where(FamilyModel.id == payload.familia_id, FamilyModel.tenant_id == tenant.id)
    )
    if fres.scalar_one_or_none() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Family not found")

    m = SubfamilyModel(tenant_id=tenant.id, familia_id=payload.familia_id, nome=payload.nome)
    db.add(m)
    await db.commit()
    await db.refresh(m)
    return m.to_schema


@router.get("/products", response_model=List[Dict])
async def list_products(
    q: Optional[str] = None,
    subfamilia_id: Optional[int] = None,
    include_inactive: bool = False,
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(ProductModel).where(ProductModel.tenant_id == tenant.id)
    if not include_inactive:
        stmt = stmt.where(ProductModel.ativo.is_(True))
    if subfamilia_id:
        stmt = stmt.where(ProductModel.subfamilia_id == subfamilia_id)
    if q:
        stmt = stmt.where(func.lower(ProductModel.nome).like(f"%{q.strip().lower()}%"))
    res = await db.execute(stmt.order_by(func.lower(ProductModel.nome).asc()))
    return [p.to_schema for p in res.scalars().all()]


@router.post("/products", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    await _check_subfamily(db, tenant.id, payload.subfamilia_id)

    m = ProductModel(
        tenant_id=tenant.id,
        nome=payload.nome,
        unidade_medida=payload.unidade_medida,
        subfamilia_id=payload.subfamilia_id,
        ativo=True,
    )
    db.add(m)
    await db.commit()
    await db.refresh(m)
    return m.to_schema


@router.patch("/products/{product_id}", response_model=Dict)
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    m = await _get_product(db, tenant.id, product_id)

    data = payload.model_dump(exclude_unset=True)
    if "subfamilia_id" in data:
        await _check_subfamily(db, tenant.id, data["subfamilia_id"])
        m.subfamilia_id = data["subfamilia_id"]
    if data.get("nome") is not None:
        m.nome = data["nome"]
    if data.get("unidade_medida") is not None:
        m.unidade_medida = data["unidade_medida"]
    if data.get("ativo") is not None:
        m.ativo = bool(data["ativo"])

    await db.commit()
    await db.refresh(m)
    return m.to_schema


@router.get("/products/{product_id}/variations", response_model=List[Dict])
async def list_product_variations(
    product_id: int,
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    await _get_product(db, tenant.id, product_id)
    res = await db.execute(
        select(ProductVariationModel)
        .where(ProductVariationModel.produto_id == product_id, ProductVariationModel.tenant_id == tenant.id)
        .order_by(ProductVariationModel.id.asc())
    )
    return [v.to_schema for v in res.scalars().all()]


@router.post("/products/{product_id}/variations", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_product_variation(
    product_id: int,
    payload: ProductVariationCreate,
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    p = await _get_product(db, tenant.id, product_id)
    m = ProductVariationModel(
        tenant_id=tenant.id,
        produto_id=p.id,
        nome=payload.nome,
        unidade_medida=payload.unidade_medida or p.unidade_medida,
        fator_conversao=payload.fator_conversao,
        ativo=True,
    )
    db.add(m)
    await db.commit()
    await db.refresh(m)
    return m.to_schema
