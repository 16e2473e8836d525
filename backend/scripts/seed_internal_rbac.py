"""
Seed internal permissions, roles and the first internal admin.

Run locally:
  python backend/scripts/seed_internal_rbac.py

Idempotent: permissions are upserted by slug, roles by name, and each role's
permission set is replaced so it always matches ROLE_PERMISSIONS.
"""

from __future__ import annotations

import asyncio
import os
import sys
from dataclasses import dataclass
from pathlib import Path

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from fastapi_users.password import PasswordHelper  # noqa: E402
from sqlalchemy import delete, insert, select  # noqa: E402

from db.database import (  # noqa: E402
    async_session_maker,
    create_db_and_tables,
    InternalPermission,
    InternalRole,
    InternalRolePermission,
    InternalUser,
)


@dataclass(frozen=True)
class SeedPermission:
    slug: str
    module: str
    description: str


PERMISSIONS: list[SeedPermission] = [
    SeedPermission("users.list", "users", "List internal users"),
    SeedPermission("users.manage", "users", "Create, update, delete users"),
    SeedPermission("tenants.list", "tenants", "List all tenants"),
    SeedPermission("tenants.view", "tenants", "View tenant details"),
    SeedPermission("tenants.manage", "tenants", "Manage tenants (suspend, etc)"),
    SeedPermission("billing.view", "billing", "View billing info"),
    SeedPermission("billing.manage", "billing", "Manage subscriptions"),
    SeedPermission("leads.list", "leads", "List leads"),
    SeedPermission("leads.manage", "leads", "Manage leads"),
    SeedPermission("system.metrics", "system", "View system metrics"),
]

# "*" means every permission
ROLE_PERMISSIONS: dict[str, list[str]] = {
    "ADMIN": ["*"],
    "SALES_SUPPORT": [
        "tenants.list",
        "tenants.view",
        "tenants.manage",
        "billing.view",
        "billing.manage",
        "system.metrics",
    ],
    "SALES": ["leads.list", "leads.manage"],
}


async def main() -> None:
    await create_db_and_tables()
    password_helper = PasswordHelper()

    async with async_session_maker() as db:
        # 1) Permissions
        by_slug: dict[str, int] = {}
        for p in PERMISSIONS:
            res = await db.execute(select(InternalPermission).where(InternalPermission.slug == p.slug))
            perm = res.scalar_one_or_none()
            if perm:
                perm.module = p.module
                perm.description = p.description
            else:
                perm = InternalPermission(slug=p.slug, module=p.module, description=p.description)
                db.add(perm)
            await db.flush()
            by_slug[p.slug] = perm.id
        print(f"Synced {len(PERMISSIONS)} permissions")

        # 2) Roles + permission sets
        role_ids: dict[str, int] = {}
        for role_name, slugs in ROLE_PERMISSIONS.items():
            res = await db.execute(select(InternalRole).where(InternalRole.name == role_name))
            role = res.scalar_one_or_none()
            if not role:
                role = InternalRole(name=role_name, description=f"Role for {role_name}")
                db.add(role)
                await db.flush()
            role_ids[role_name] = role.id

            perm_ids = list(by_slug.values()) if "*" in slugs else [by_slug[s] for s in slugs if s in by_slug]
            await db.execute(delete(InternalRolePermission).where(InternalRolePermission.role_id == role.id))
            if perm_ids:
                await db.execute(
                    insert(InternalRolePermission),
                    [{"role_id": role.id, "permission_id": pid} for pid in perm_ids],
                )
            print(f"Role {role_name}: {len(perm_ids)} permissions")

        # 3) First admin
        email = os.getenv("INTERNAL_ADMIN_EMAIL", "admin@rcm.pt")
        password = os.getenv("INTERNAL_ADMIN_PASSWORD", "admin1234")
        res = await db.execute(select(InternalUser).where(InternalUser.email == email))
        if res.scalar_one_or_none() is None:
            db.add(
                InternalUser(
                    email=email,
                    name="Admin",
                    role="ADMIN",
                    internal_role_id=role_ids["ADMIN"],
                    password_hash=password_helper.hash(password),
                    active=True,
                    email_verified=True,
                )
            )
            print(f"Created internal admin {email}")

        await db.commit()


if __name__ == "__main__":
    asyncio.run(main())
