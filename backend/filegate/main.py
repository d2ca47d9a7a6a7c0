import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from filegate.api.routers import files as files_router
from filegate.api.routers import health as health_router
from filegate.core.config import get_settings
from filegate.core.logging import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("Serving files from bucket %s (env=%s)", settings.s3_bucket, settings.env)
    yield


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(
        debug=settings.debug,
        title="Filegate API",
        lifespan=lifespan,
    )

    app.include_router(health_router.router)
    app.include_router(files_router.router)

    return app


app = create_app()
