"""
Certify Link: FastAPI application.

This is the entry point for the application.
All routers are registered here, under API_PREFIX.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from certify_link.api.asaci import router as asaci_router
from certify_link.api.audit import router as audit_router
from certify_link.api.auth import router as auth_router
from certify_link.api.certify_link import router as certify_link_router
from certify_link.api.errors import register_exception_handlers
from certify_link.api.health import router as health_router
from certify_link.api.roles import router as roles_router
from certify_link.api.users import router as users_router
from certify_link.config import Settings, get_settings
from certify_link.logging_config import configure_logging
from certify_link.models.base import SessionLocal
from certify_link.services.asaci_client import get_shared_asaci_client
from certify_link.services.role_service import RoleService

settings = get_settings()
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def cors_options(config: Settings) -> dict:
    """
    CORSMiddleware origin options.

    Explicit CORS_ORIGINS win. Without them every origin is allowed
    outside production and none in production.
    """
    if config.CORS_ORIGINS:
        return {"allow_origins": config.CORS_ORIGINS}
    if config.ENVIRONMENT != "production":
        return {"allow_origin_regex": ".*"}
    return {"allow_origins": []}


def seed_default_data() -> None:
    """Create the default roles and the bootstrap admin, if configured."""
    db = SessionLocal()
    try:
        service = RoleService(db)
        service.seed_default_roles()
        service.ensure_admin_user()
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting %s %s (%s)",
        settings.APP_NAME,
        settings.APP_VERSION,
        settings.ENVIRONMENT,
    )
    if settings.SEED_DEFAULT_DATA:
        seed_default_data()
    yield
    if get_shared_asaci_client.cache_info().currsize:
        get_shared_asaci_client().close()
    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Issues ASACI insurance certificates from ORASS policy data",
    lifespan=lifespan,
    docs_url="/docs" if settings.ENABLE_SWAGGER else None,
    redoc_url="/redoc" if settings.ENABLE_SWAGGER else None,
    openapi_url="/openapi.json" if settings.ENABLE_SWAGGER else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    **cors_options(settings),
)

register_exception_handlers(app)

# Register routers
for router in (
    health_router,
    auth_router,
    users_router,
    roles_router,
    asaci_router,
    certify_link_router,
    audit_router,
):
    app.include_router(router, prefix=settings.API_PREFIX)
