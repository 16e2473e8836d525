import asyncio
import sys
from pathlib import Path

"""
Seed a demo restaurant: tenant, its owner login, locations and a small catalog.

This script can be run from either:
- backend/: `python scripts/seed_demo_tenant.py`
- repo root: `python backend/scripts/seed_demo_tenant.py`
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import select  # noqa: E402

from db.database import (  # noqa: E402
    async_session_maker,
    create_db_and_tables,
    Family,
    Location,
    Product,
    Subfamily,
    Tenant,
)
from db.users import User  # noqa: E402

from fastapi_users.password import PasswordHelper  # noqa: E402


password_helper = PasswordHelper()

DEMO_TENANT = "Restaurante Demo"
DEMO_EMAIL = "owner@demo.restaurant"
DEMO_PASSWORD = "demo12345"

LOCATIONS = ["Armazém", "Cozinha", "Bar"]

# family -> subfamily -> [(product, unit)]
CATALOG = {
    "Bebidas": {
        "Cervejas": [("Cerveja Sagres 33cl", "un"), ("Cerveja Super Bock 33cl", "un")],
        "Vinhos": [("Vinho Tinto Douro", "garrafa"), ("Vinho Verde", "garrafa")],
    },
    "Mercearia": {
        "Óleos": [("Azeite Virgem Extra", "L")],
        "Farinhas": [("Farinha T65", "kg")],
    },
    "Frescos": {
        "Legumes": [("Tomate", "kg"), ("Cebola", "kg")],
    },
}


async def get_or_create_tenant(session, nome: str) -> Tenant:
    res = await session.execute(select(Tenant).where(Tenant.nome == nome))
    tenant = res.scalar_one_or_none()
    if tenant:
        return tenant
    tenant = Tenant(nome=nome, ativo=True)
    session.add(tenant)
    await session.flush()
    return tenant


async def get_or_create_owner(session, tenant: Tenant) -> User:
    res = await session.execute(select(User).where(User.email == DEMO_EMAIL))
    user = res.scalar_one_or_none()
    if user:
        return user
    user = User(
        email=DEMO_EMAIL,
        hashed_password=password_helper.hash(DEMO_PASSWORD),
        is_active=True,
        is_superuser=False,
        is_verified=True,
        tenant_id=tenant.id,
        name="Demo Owner",
    )
    session.add(user)
    await session.flush()
    return user


async def seed() -> None:
    await create_db_and_tables()

    async with async_session_maker() as session:
        tenant = await get_or_create_tenant(session, DEMO_TENANT)
        await get_or_create_owner(session, tenant)

        res = await session.execute(select(Location.nome).where(Location.tenant_id == tenant.id))
        existing_locations = set(res.scalars().all())
        for nome in LOCATIONS:
            if nome not in existing_locations:
                session.add(Location(tenant_id=tenant.id, nome=nome, ativo=True))

        res = await session.execute(select(Product.nome).where(Product.tenant_id == tenant.id))
        existing_products = set(res.scalars().all())

        for family_name, subfamilies in CATALOG.items():
            fres = await session.execute(
                select(Family).where(Family.tenant_id == tenant.id, Family.nome == family_name)
            )
            family = fres.scalar_one_or_none()
            if not family:
                family = Family(tenant_id=tenant.id, nome=family_name)
                session.add(family)
                await session.flush()

            for sub_name, products in subfamilies.items():
                sres = await session.execute(
                    select(Subfamily).where(Subfamily.familia_id == family.id, Subfamily.nome == sub_name)
                )
                sub = sres.scalar_one_or_none()
                if not sub:
                    sub = Subfamily(tenant_id=tenant.id, familia_id=family.id, nome=sub_name)
                    session.add(sub)
                    await session.flush()

                for nome, unidade in products:
                    if nome in existing_products:
                        continue
                    session.add(
                        Product(
                            tenant_id=tenant.id,
                            subfamilia_id=sub.id,
                            nome=nome,
                            unidade_medida=unidade,
                            ativo=True,
                        )
                    )

        await session.commit()
        print(f"Demo tenant {tenant.id} ready ({DEMO_EMAIL} / {DEMO_PASSWORD})")


if __name__ == "__main__":
    asyncio.run(seed())
