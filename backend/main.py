import logging

from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from core.auth import fastapi_users, auth_backend
from core.config import settings
from db.database import create_db_and_tables
from routers.catalog import router as catalog_router
from routers.internal_roles import router as internal_roles_router
from routers.internal_users import router as internal_users_router
from routers.inventory import router as inventory_router
from routers.leads import router as leads_router, internal_router as internal_leads_router
from routers.tenants import router as tenants_router
from schemas.users import UserRead, UserCreate, UserUpdate

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_db_and_tables()
    yield


app = FastAPI(
    title="Restaurant Cost Management API",
    description="Inventory counting, catalog and internal back-office API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Authentication routes (fastapi-users)
app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"],)
app.include_router(fastapi_users.get_register_router(UserRead, UserCreate), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_reset_password_router(), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_verify_router(UserRead), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_users_router(UserRead, UserUpdate), prefix="/users", tags=["users"])

# Tenant-facing routes (scoped by X-Tenant-Id)
app.include_router(catalog_router, prefix="/catalog", tags=["catalog"])
app.include_router(inventory_router, prefix="/inventory", tags=["inventory"])

# Public lead capture
app.include_router(leads_router, prefix="/leads", tags=["leads"])

# Internal back-office routes (superusers only)
app.include_router(internal_roles_router, prefix="/internal-roles", tags=["internal-roles"])
app.include_router(internal_users_router, prefix="/internal-users", tags=["internal-users"])
app.include_router(internal_leads_router, prefix="/internal/leads", tags=["internal-leads"])
app.include_router(tenants_router, prefix="/internal/tenants", tags=["internal-tenants"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
