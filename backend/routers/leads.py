import logging
import math
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_superuser
from db.database import get_async_session, Lead as LeadModel
from db.users import User
from schemas.leads import LeadCreate, LeadStatusUpdate

# Public landing-page capture
router = APIRouter()
# Sales team back-office
internal_router = APIRouter()

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_lead(
    payload: LeadCreate,
    request: Request,
    db: AsyncSession = Depends(get_async_session),
):
    """Capture a lead; the same e-mail updates the existing lead instead of duplicating it."""
    ip_address = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent")

    res = await db.execute(
        select(LeadModel).where(func.lower(LeadModel.email) == payload.email.lower()).order_by(LeadModel.id.asc())
    )
    lead = res.scalars().first()

    if lead:
        lead.name = payload.name
        lead.business_type = payload.business_type
        lead.source_page = payload.source_page
        lead.source_cta = payload.source_cta
        lead.utm_source = payload.utm_source
        lead.utm_medium = payload.utm_medium
        lead.utm_campaign = payload.utm_campaign
        lead.ip_address = ip_address
        lead.user_agent = user_agent
        lead.updated_at = _now()
    else:
        lead = LeadModel(
            name=payload.name,
            email=payload.email,
            business_type=payload.business_type,
            source_page=payload.source_page or "landing",
            source_cta=payload.source_cta,
            utm_source=payload.utm_source,
            utm_medium=payload.utm_medium,
            utm_campaign=payload.utm_campaign,
            ip_address=ip_address,
            user_agent=user_agent,
            status="new",
            status_history=[],
        )
        db.add(lead)

    await db.commit()
    await db.refresh(lead)
    return lead.to_schema


@internal_router.get("/", response_model=Dict)
async def list_leads(
    lead_status: Optional[str] = Query(default=None, alias="status"),
    source: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100, alias="pageSize"),
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    where = []
    if lead_status:
        where.append(LeadModel.status == lead_status)
    if source:
        where.append(LeadModel.source_page == source)
    if search and search.strip():
        qq = f"%{search.strip().lower()}%"
        where.append(or_(func.lower(LeadModel.name).like(qq), func.lower(LeadModel.email).like(qq)))

    total = (await db.execute(select(func.count(LeadModel.id)).where(*where))).scalar() or 0
    res = await db.execute(
        select(LeadModel)
        .where(*where)
        .order_by(LeadModel.created_at.desc(), LeadModel.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return {
        "leads": [lead.to_schema for lead in res.scalars().all()],
        "pagination": {
            "page": page,
            "pageSize": page_size,
            "total": int(total),
            "totalPages": math.ceil(total / page_size) if total else 0,
        },
    }


@internal_router.get("/{lead_id}", response_model=Dict)
async def get_lead(
    lead_id: int,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    res = await db.execute(select(LeadModel).where(LeadModel.id == lead_id))
    lead = res.scalar_one_or_none()
    if not lead:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
    return lead.to_schema


@internal_router.patch("/{lead_id}/status", response_model=Dict)
async def update_lead_status(
    lead_id: int,
    payload: LeadStatusUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    res = await db.execute(select(LeadModel).where(LeadModel.id == lead_id))
    lead = res.scalar_one_or_none()
    if not lead:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")

    now = _now()
    # Reassign (not append in place) so the JSON column is flagged dirty.
    lead.status_history = list(lead.status_history or []) + [
        {
            "from": lead.status,
            "to": payload.status,
            "changed_by": str(user.id),
            "changed_at": now.isoformat(),
            "notes": payload.notes,
        }
    ]
    lead.status = payload.status
    if payload.notes is not None:
        lead.notes = payload.notes
    lead.updated_at = now

    await db.commit()
    await db.refresh(lead)
    logger.info("Lead %s moved to %s by %s", lead_id, payload.status, user.id)
    return lead.to_schema
