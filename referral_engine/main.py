from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from referral_engine.api.routes.health import router as health_router
from referral_engine.api.routes.internal_admin import router as internal_admin_router
from referral_engine.api.routes.internal_events import router as internal_events_router
from referral_engine.api.routes.internal_referrals import router as internal_referrals_router
from referral_engine.api.routes.internal_users import router as internal_users_router
from referral_engine.core.config import get_settings
from referral_engine.core.logging import configure_logging
from referral_engine.db.session import dispose_engine

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    logger.info("referral_engine_api_started", app_env=get_settings().app_env)
    yield
    await dispose_engine()
    logger.info("referral_engine_api_stopped")


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, component="api")

    app = FastAPI(
        title="Referral Engine API",
        version="0.1.0",
        docs_url="/docs" if settings.app_env != "prod" else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.include_router(health_router)
    app.include_router(internal_events_router)
    app.include_router(internal_admin_router)
    app.include_router(internal_users_router)
    app.include_router(internal_referrals_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "referral_engine.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
