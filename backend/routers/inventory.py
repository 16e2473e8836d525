import logging
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.auth import current_active_user
from core.tenant import get_current_tenant
from db.database import (
    get_async_session,
    CalculatorList as CalculatorListModel,
    InventoryItem as InventoryItemModel,
    InventorySession as InventorySessionModel,
    Location as LocationModel,
    Product as ProductModel,
    ProductVariation as ProductVariationModel,
    Subfamily as SubfamilyModel,
    Tenant,
    TheoreticalStock as TheoreticalStockModel,
)
from db.inventory.session import SESSION_CLOSED, SESSION_OPEN
from db.users import User
from schemas.inventory import (
    CalculatorListCreate,
    InventoryItemAdd,
    InventoryItemOut,
    InventoryItemUpdate,
    InventorySessionCreate,
    InventorySessionDetail,
    InventorySessionFilters,
    InventorySessionOut,
    InventorySessionStatus,
    LocationCreate,
    TheoreticalStockOut,
)

router = APIRouter()
logger = logging.getLogger(__name__)

StockKey = Tuple[int, int]


def _now() -> datetime:
    # Columns are naive DateTime holding UTC.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _item_out(it: InventoryItemModel) -> InventoryItemOut:
    return InventoryItemOut(
        id=it.id,
        sessao_id=it.sessao_id,
        produto_id=it.produto_id,
        produto_nome=it.produto.nome if it.produto else None,
        variacao_id=it.variacao_id,
        variacao_nome=it.variacao.nome if it.variacao else None,
        localizacao_id=it.localizacao_id,
        localizacao_nome=it.localizacao.nome if it.localizacao else None,
        quantidade_contada=float(it.quantidade_contada or 0),
        unidade_medida=it.unidade_medida,
        observacoes=it.observacoes,
        contado_por=it.contado_por,
    )


def _item_load_options():
    return (
        selectinload(InventoryItemModel.produto),
        selectinload(InventoryItemModel.variacao),
        selectinload(InventoryItemModel.localizacao),
    )


async def _load_item(db: AsyncSession, tenant_id: int, item_id: int) -> Optional[InventoryItemModel]:
    res = await db.execute(
        select(InventoryItemModel)
        .where(InventoryItemModel.id == item_id, InventoryItemModel.tenant_id == tenant_id)
        .options(*_item_load_options())
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def _resolve_session_products(
    db: AsyncSession,
    tenant_id: int,
    tipo: str,
    filtros: Optional[InventorySessionFilters],
) -> List[ProductModel]:
    """
    Products a new session starts with, one zero-count item each.

    - Total: every active product.
    - Personalizado: active products narrowed by family and/or subfamily.
    - Calculadora: the products of a saved calculator list.
    Personalizado without filters and Calculadora without a list give an empty session.
    """
    stmt = select(ProductModel).where(ProductModel.tenant_id == tenant_id)

    if tipo == "Total":
        stmt = stmt.where(ProductModel.ativo.is_(True))
    elif tipo == "Personalizado":
        if filtros is None:
            return []
        stmt = stmt.where(ProductModel.ativo.is_(True))
        if filtros.familia_id:
            stmt = stmt.join(SubfamilyModel, ProductModel.subfamilia_id == SubfamilyModel.id).where(
                SubfamilyModel.familia_id == filtros.familia_id
            )
        if filtros.subfamilia_id:
            stmt = stmt.where(ProductModel.subfamilia_id == filtros.subfamilia_id)
    elif tipo == "Calculadora":
        if filtros is None or not filtros.lista_calculadora_id:
            return []
        lres = await db.execute(
            select(CalculatorListModel).where(
                CalculatorListModel.id == filtros.lista_calculadora_id,
                CalculatorListModel.tenant_id == tenant_id,
            )
        )
        lista = lres.scalar_one_or_none()
        product_ids = lista.product_ids if lista else []
        if not product_ids:
            return []
        stmt = stmt.where(ProductModel.id.in_(product_ids))
    else:
        return []

    res = await db.execute(stmt.order_by(ProductModel.id.asc()))
    return list(res.scalars().all())


async def _default_location_id(db: AsyncSession, tenant_id: int, requested_id: Optional[int]) -> Optional[int]:
    if requested_id:
        res = await db.execute(
            select(LocationModel.id).where(LocationModel.id == requested_id, LocationModel.tenant_id == tenant_id)
        )
        loc_id = res.scalar_one_or_none()
        if loc_id is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")
        return loc_id

    res = await db.execute(
        select(LocationModel.id)
        .where(LocationModel.tenant_id == tenant_id, LocationModel.ativo.is_(True))
        .order_by(LocationModel.id.asc())
        .limit(1)
    )
    return res.scalar_one_or_none()


async def _next_session_number(db: AsyncSession, tenant_id: int) -> int:
    res = await db.execute(
        select(func.max(InventorySessionModel.numero)).where(InventorySessionModel.tenant_id == tenant_id)
    )
    return int(res.scalar() or 0) + 1


def _sum_counts_by_stock_key(items: List[InventoryItemModel]) -> Dict[StockKey, Decimal]:
    """Same product counted in several locations adds up; variation-less counts share variation 0."""
    totals: Dict[StockKey, Decimal] = defaultdict(Decimal)
    for it in items:
        totals[it.stock_key] += Decimal(str(it.quantidade_contada or 0))
    return dict(totals)


def _insert_for(db: AsyncSession, table):
    # Production runs on PostgreSQL; the sqlite branch serves the test database.
    # Both dialects expose the same on_conflict_do_update API.
    if db.bind is not None and db.bind.dialect.name == "sqlite":
        return sqlite_insert(table)
    return pg_insert(table)


async def _upsert_theoretical_stock(
    *,
    db: AsyncSession,
    tenant_id: int,
    produto_id: int,
    variacao_id: int,
    quantidade: Decimal,
    at: datetime,
) -> None:
    stock_tbl = TheoreticalStockModel.__table__
    upsert = (
        _insert_for(db, stock_tbl)
        .values(
            tenant_id=tenant_id,
            produto_id=produto_id,
            variacao_id=variacao_id,
            quantidade_atual=quantidade,
            # Stock valuation is not computed yet; new rows start at zero value.
            valor_total=Decimal("0"),
            data_ultima_atualizacao=at,
        )
        .on_conflict_do_update(
            index_elements=[stock_tbl.c.tenant_id, stock_tbl.c.produto_id, stock_tbl.c.variacao_id],
            set_={"quantidade_atual": quantidade, "data_ultima_atualizacao": at},
        )
    )
    await db.execute(upsert)


# --------------------------------------------------------------------------
# Locations
# --------------------------------------------------------------------------


@router.get("/locations", response_model=List[Dict])
async def list_locations(
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(
        select(LocationModel)
        .where(LocationModel.tenant_id == tenant.id, LocationModel.ativo.is_(True))
        .order_by(LocationModel.id.asc())
    )
    return [loc.to_schema for loc in res.scalars().all()]


@router.post("/locations", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_location(
    payload: LocationCreate,
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    loc = LocationModel(tenant_id=tenant.id, nome=payload.nome, descricao=payload.descricao, ativo=True)
    db.add(loc)
    await db.commit()
    await db.refresh(loc)
    return loc.to_schema


# --------------------------------------------------------------------------
# Calculator lists
# --------------------------------------------------------------------------


@router.get("/calculator-lists", response_model=List[Dict])
async def list_calculator_lists(
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(
        select(CalculatorListModel)
        .where(CalculatorListModel.tenant_id == tenant.id)
        .order_by(CalculatorListModel.created_at.desc(), CalculatorListModel.id.desc())
    )
    return [cl.to_schema for cl in res.scalars().all()]


@router.post("/calculator-lists", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def save_calculator_list(
    payload: CalculatorListCreate,
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    cl = CalculatorListModel(
        tenant_id=tenant.id,
        nome=payload.nome,
        itens=[it.model_dump() for it in payload.itens],
        criado_por=user.id,
    )
    db.add(cl)
    await db.commit()
    await db.refresh(cl)
    return cl.to_schema


# --------------------------------------------------------------------------
# Sessions
# --------------------------------------------------------------------------


@router.get("/sessions", response_model=List[InventorySessionOut])
async def list_sessions(
    session_status: InventorySessionStatus = Query(default=SESSION_OPEN, alias="status"),
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(
        select(InventorySessionModel)
        .where(InventorySessionModel.tenant_id == tenant.id, InventorySessionModel.status == session_status)
        .order_by(InventorySessionModel.created_at.desc(), InventorySessionModel.id.desc())
    )
    return [InventorySessionOut(**s.to_schema) for s in res.scalars().all()]


@router.post("/sessions", response_model=InventorySessionOut, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: InventorySessionCreate,
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Open a counting session.

    Resolves the product set from `tipo`/`filtros`, takes the next per-tenant
    number and creates one zero-quantity item per product at the default location.
    """
    tenant_id = tenant.id
    filtros = payload.filtros
    try:
        produtos = await _resolve_session_products(db, tenant_id, payload.tipo, filtros)
        location_id = await _default_location_id(db, tenant_id, filtros.localizacao_id if filtros else None)
        numero = await _next_session_number(db, tenant_id)

        sessao = InventorySessionModel(
            tenant_id=tenant_id,
            numero=numero,
            nome=payload.nome or f"Inventário #{numero}",
            tipo=payload.tipo,
            status=SESSION_OPEN,
            filtros_usados=filtros.model_dump(exclude_none=True) if filtros else None,
            criado_por=user.id,
        )
        db.add(sessao)
        await db.flush()

        if produtos:
            await db.execute(
                insert(InventoryItemModel),
                [
                    {
                        "tenant_id": tenant_id,
                        "sessao_id": sessao.id,
                        "produto_id": p.id,
                        "quantidade_contada": Decimal("0"),
                        "unidade_medida": p.unidade_medida,
                        "localizacao_id": location_id,
                    }
                    for p in produtos
                ],
            )

        await db.commit()
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        logger.exception("create_session failed (tenant=%s tipo=%s)", tenant_id, payload.tipo)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to create session: {e}")

    await db.refresh(sessao)
    logger.info("Inventory session #%s opened for tenant %s with %d items", numero, tenant_id, len(produtos))
    return InventorySessionOut(**sessao.to_schema)


@router.get("/sessions/{session_id}", response_model=InventorySessionDetail)
async def get_session(
    session_id: int,
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(
        select(InventorySessionModel)
        .where(InventorySessionModel.id == session_id, InventorySessionModel.tenant_id == tenant.id)
        .options(
            selectinload(InventorySessionModel.itens).selectinload(InventoryItemModel.produto),
            selectinload(InventorySessionModel.itens).selectinload(InventoryItemModel.variacao),
            selectinload(InventorySessionModel.itens).selectinload(InventoryItemModel.localizacao),
        )
    )
    sessao = res.scalar_one_or_none()
    if not sessao:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")

    itens = sorted(
        sessao.itens,
        key=lambda it: ((it.produto.nome if it.produto else "").lower(), it.id),
    )
    return InventorySessionDetail(**sessao.to_schema, itens=[_item_out(it) for it in itens])


@router.post("/sessions/{session_id}/items", response_model=InventoryItemOut, status_code=status.HTTP_201_CREATED)
async def add_item(
    session_id: int,
    payload: InventoryItemAdd,
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Count a product that was not part of the session's initial product set."""
    sres = await db.execute(
        select(InventorySessionModel.id).where(
            InventorySessionModel.id == session_id,
            InventorySessionModel.tenant_id == tenant.id,
        )
    )
    if sres.scalar_one_or_none() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")

    pres = await db.execute(
        select(ProductModel).where(ProductModel.id == payload.produto_id, ProductModel.tenant_id == tenant.id)
    )
    produto = pres.scalar_one_or_none()
    if not produto:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    it = InventoryItemModel(
        tenant_id=tenant.id,
        sessao_id=session_id,
        produto_id=produto.id,
        quantidade_contada=Decimal("0"),
        unidade_medida=produto.unidade_medida,
        contado_por=user.id,
    )
    db.add(it)
    await db.commit()

    loaded = await _load_item(db, tenant.id, it.id)
    return _item_out(loaded)


@router.put("/items/{item_id}", response_model=InventoryItemOut)
async def update_item(
    item_id: int,
    payload: InventoryItemUpdate,
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    it = await _load_item(db, tenant.id, item_id)
    if not it:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")

    if payload.localizacao_id is not None:
        lres = await db.execute(
            select(LocationModel.id).where(
                LocationModel.id == payload.localizacao_id,
                LocationModel.tenant_id == tenant.id,
            )
        )
        if lres.scalar_one_or_none() is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")
    if payload.variacao_id is not None:
        vres = await db.execute(
            select(ProductVariationModel.id).where(
                ProductVariationModel.id == payload.variacao_id,
                ProductVariationModel.tenant_id == tenant.id,
                ProductVariationModel.produto_id == it.produto_id,
            )
        )
        if vres.scalar_one_or_none() is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Variation not found")

    it.quantidade_contada = payload.quantidade
    if payload.localizacao_id is not None:
        it.localizacao_id = payload.localizacao_id
    if payload.variacao_id is not None:
        it.variacao_id = payload.variacao_id
    if payload.observacoes is not None:
        it.observacoes = payload.observacoes
    it.contado_por = user.id
    it.updated_at = _now()

    await db.commit()

    loaded = await _load_item(db, tenant.id, item_id)
    return _item_out(loaded)


@router.delete("/items/{item_id}", response_model=Dict)
async def delete_item(
    item_id: int,
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(
        delete(InventoryItemModel).where(
            InventoryItemModel.id == item_id,
            InventoryItemModel.tenant_id == tenant.id,
        )
    )
    if not res.rowcount:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    await db.commit()
    return {"success": True}


@router.post("/sessions/{session_id}/close", response_model=Dict)
async def close_session(
    session_id: int,
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Close an open session and write its counts to the theoretical stock.

    - Counts are summed per (product, variation or 0) across locations.
    - Each sum replaces `quantidade_atual` of the matching stock row (created if missing).
    - Stock writes and the status flip share one transaction: on any failure
      nothing is written and the session stays open.
    """
    tenant_id = tenant.id
    res = await db.execute(
        select(InventorySessionModel)
        .where(InventorySessionModel.id == session_id, InventorySessionModel.tenant_id == tenant_id)
        .options(selectinload(InventorySessionModel.itens))
    )
    sessao = res.scalar_one_or_none()
    if not sessao or not sessao.is_open:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Session not found or already closed")

    totals = _sum_counts_by_stock_key(sessao.itens)
    closed_at = _now()

    try:
        for (produto_id, variacao_id), quantidade in totals.items():
            await _upsert_theoretical_stock(
                db=db,
                tenant_id=tenant_id,
                produto_id=produto_id,
                variacao_id=variacao_id,
                quantidade=quantidade,
                at=closed_at,
            )

        # Conditional on status so two racing closes cannot both flip it.
        flipped = await db.execute(
            update(InventorySessionModel)
            .where(InventorySessionModel.id == session_id, InventorySessionModel.status == SESSION_OPEN)
            .values(status=SESSION_CLOSED, fechado_por=user.id, data_fim=closed_at)
        )
        if not flipped.rowcount:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Session not found or already closed")

        await db.commit()
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.exception("close_session failed (tenant=%s session=%s)", tenant_id, session_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to close session: {e}")

    logger.info(
        "Inventory session %s closed for tenant %s: %d stock rows updated",
        session_id,
        tenant_id,
        len(totals),
    )
    return {
        "message": "Inventory closed and stock updated",
        "session_id": session_id,
        "stock_rows": len(totals),
    }


# --------------------------------------------------------------------------
# Theoretical stock
# --------------------------------------------------------------------------


@router.get("/stock", response_model=List[TheoreticalStockOut])
async def list_theoretical_stock(
    produto_id: Optional[int] = None,
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = (
        select(TheoreticalStockModel, ProductModel.nome)
        .join(ProductModel, TheoreticalStockModel.produto_id == ProductModel.id)
        .where(TheoreticalStockModel.tenant_id == tenant.id)
    )
    if produto_id:
        stmt = stmt.where(TheoreticalStockModel.produto_id == produto_id)
    res = await db.execute(
        stmt.order_by(func.lower(ProductModel.nome).asc(), TheoreticalStockModel.variacao_id.asc())
    )
    return [
        TheoreticalStockOut(
            produto_id=st.produto_id,
            produto_nome=nome,
            variacao_id=st.variacao_id,
            quantidade_atual=float(st.quantidade_atual or 0),
            valor_total=float(st.valor_total or 0),
            data_ultima_atualizacao=st.data_ultima_atualizacao,
        )
        for st, nome in res.all()
    ]
