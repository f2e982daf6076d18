import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from edupro.api.v1.attendance.router import router as attendance_router
from edupro.api.v1.auth.router import router as auth_router
from edupro.api.v1.health.router import router as health_router
from edupro.api.v1.homework.router import router as homework_router
from edupro.api.v1.polls.router import router as polls_router
from edupro.api.v1.tenants.router import router as tenants_router
from edupro.api.v1.users.router import router as users_router
from edupro.core.config import settings
from edupro.core.logging_config import configure_logging
from edupro.db.session import init_models

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_tables:
        await init_models()
        logger.info("Database tables ensured")
    logger.info("EduPro backend started")
    yield
    logger.info("EduPro backend stopped")


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="EduPro Backend", lifespan=lifespan)

    # CORS: the admin web console and the mobile app call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(health_router)
    app.include_router(tenants_router)
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(attendance_router)
    app.include_router(polls_router)
    app.include_router(homework_router)

    return app


app = create_app()
