"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from passgate import __version__
from passgate.api.errors import register_exception_handlers
from passgate.api.middleware import RequestContextMiddleware
from passgate.api.router import api_router
from passgate.config import settings
from passgate.database import close_db, init_db
from passgate.logging import setup_logging

setup_logging()

logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking
if settings.sentry_dsn:
    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    if settings.database_create_tables:
        await init_db()
        logger.info("Database tables ensured")
    yield
    await close_db()


app = FastAPI(
    title="Passgate API",
    description="User accounts with bearer-token auth, email verification and password reset",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug_enabled else None,
    redoc_url="/api/redoc" if settings.debug_enabled else None,
    openapi_url="/api/openapi.json" if settings.debug_enabled else None,
)

register_exception_handlers(app)

# Request ID and request logging
app.add_middleware(RequestContextMiddleware)  # type: ignore[arg-type]

app.include_router(api_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    from passgate.logging import get_uvicorn_log_config

    uvicorn.run(
        "passgate.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_config=get_uvicorn_log_config(),
    )
