from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from db.database import get_async_session, Tenant as TenantModel
from db.users import User


async def get_current_tenant(
    x_tenant_id: Optional[int] = Header(default=None),
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
) -> TenantModel:
    """
    Resolve the tenant a request works on.

    - `X-Tenant-Id` header wins; without it the user's own tenant is used.
    - Only superusers may act on a tenant other than their own.
    """
    tenant_id = x_tenant_id if x_tenant_id is not None else user.tenant_id
    if tenant_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="X-Tenant-Id header is required")

    if not user.is_superuser and user.tenant_id != tenant_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed for this tenant")

    res = await db.execute(select(TenantModel).where(TenantModel.id == tenant_id))
    tenant = res.scalar_one_or_none()
    if not tenant or not tenant.ativo:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
    return tenant
