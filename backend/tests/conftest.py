"""
Pytest fixtures for the API test suite.

Provides:
- An in-memory SQLite database (aiosqlite) shared by the app and the test through StaticPool
- An httpx AsyncClient wired to the FastAPI app
- Users/tenants and a small restaurant catalog
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi import HTTPException, status  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.auth import current_active_superuser, current_active_user  # noqa: E402
from db.database import (  # noqa: E402
    Base,
    Family,
    InternalPermission,
    Location,
    Product,
    Subfamily,
    Tenant,
    User,
    get_async_session,
)
from main import app  # noqa: E402


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def tenant(db):
    t = Tenant(nome="Tasca do Zé", ativo=True)
    db.add(t)
    await db.commit()
    return t


@pytest.fixture
async def other_tenant(db):
    t = Tenant(nome="Marisqueira Atlântico", ativo=True)
    db.add(t)
    await db.commit()
    return t


@pytest.fixture
async def staff_user(db, tenant):
    u = User(
        email="gerente@tasca.pt",
        hashed_password="not-used",
        is_active=True,
        is_superuser=False,
        is_verified=True,
        tenant_id=tenant.id,
        name="Gerente",
    )
    db.add(u)
    await db.commit()
    return u


@pytest.fixture
async def admin_user(db):
    u = User(
        email="admin@rcm.pt",
        hashed_password="not-used",
        is_active=True,
        is_superuser=True,
        is_verified=True,
        tenant_id=None,
        name="Admin",
    )
    db.add(u)
    await db.commit()
    return u


@pytest.fixture
async def client(session_maker):
    async def _get_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = _get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def act_as():
    """Replace fastapi-users authentication with a fixed user."""

    def _act_as(user: User) -> User:
        def _superuser():
            if not user.is_superuser:
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
            return user

        app.dependency_overrides[current_active_user] = lambda: user
        app.dependency_overrides[current_active_superuser] = _superuser
        return user

    return _act_as


@pytest.fixture
def staff_client(client, act_as, staff_user):
    act_as(staff_user)
    return client


@pytest.fixture
def admin_client(client, act_as, admin_user):
    act_as(admin_user)
    return client


@pytest.fixture
async def catalog(db, tenant):
    """
    Two families, three subfamilies, four products (one inactive) and two locations.

    Locations are created warehouse first so it is the tenant's default location.
    """
    bebidas = Family(tenant_id=tenant.id, nome="Bebidas")
    mercearia = Family(tenant_id=tenant.id, nome="Mercearia")
    db.add_all([bebidas, mercearia])
    await db.flush()

    cervejas = Subfamily(tenant_id=tenant.id, familia_id=bebidas.id, nome="Cervejas")
    vinhos = Subfamily(tenant_id=tenant.id, familia_id=bebidas.id, nome="Vinhos")
    oleos = Subfamily(tenant_id=tenant.id, familia_id=mercearia.id, nome="Óleos")
    db.add_all([cervejas, vinhos, oleos])
    await db.flush()

    cerveja = Product(tenant_id=tenant.id, subfamilia_id=cervejas.id, nome="Cerveja 33cl", unidade_medida="un")
    vinho = Product(tenant_id=tenant.id, subfamilia_id=vinhos.id, nome="Vinho Tinto", unidade_medida="garrafa")
    azeite = Product(tenant_id=tenant.id, subfamilia_id=oleos.id, nome="Azeite", unidade_medida="L")
    descontinuado = Product(
        tenant_id=tenant.id,
        subfamilia_id=cervejas.id,
        nome="Cerveja Descontinuada",
        unidade_medida="un",
        ativo=False,
    )
    db.add_all([cerveja, vinho, azeite, descontinuado])

    armazem = Location(tenant_id=tenant.id, nome="Armazém", ativo=True)
    db.add(armazem)
    await db.flush()
    bar = Location(tenant_id=tenant.id, nome="Bar", ativo=True)
    db.add(bar)

    await db.commit()
    return SimpleNamespace(
        bebidas=bebidas,
        mercearia=mercearia,
        cervejas=cervejas,
        vinhos=vinhos,
        oleos=oleos,
        cerveja=cerveja,
        vinho=vinho,
        azeite=azeite,
        descontinuado=descontinuado,
        armazem=armazem,
        bar=bar,
    )


@pytest.fixture
async def permissions(db):
    perms = [
        InternalPermission(slug="users.list", module="users", description="List internal users"),
        InternalPermission(slug="users.manage", module="users", description="Create, update, delete users"),
        InternalPermission(slug="leads.list", module="leads", description="List leads"),
        InternalPermission(slug="leads.manage", module="leads", description="Manage leads"),
        InternalPermission(slug="billing.view", module="billing", description="View billing info"),
    ]
    db.add_all(perms)
    await db.commit()
    return perms
