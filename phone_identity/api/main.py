"""
phone-identity ASGI application.

Wires the /v1 router and the domain error handlers onto one FastAPI app.
The lifespan refuses to start without a JWT signing key, then opens the
PostgreSQL pool and applies pending migrations before the first request.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from phone_identity.adapters.repository.postgres import run_migrations
from phone_identity.api.errors import register_exception_handlers
from phone_identity.api.v1 import router as v1_router
from phone_identity.config.settings import get_settings
from phone_identity.domain.tokens import TokenIssuer

logger = logging.getLogger(__name__)

tags_metadata = [
    {
        "name": "v1",
        "description": "SMS code registration, phone + password login, token refresh and password reset",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # Raises RuntimeError when JWT_SECRET_KEY is unset
    TokenIssuer.from_settings(settings)

    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
    )
    logger.info(
        "Opened code and account pool (min=%d, max=%d)",
        settings.pool_min_size,
        settings.pool_max_size,
    )

    run_migrations(pool)
    app.state.pool = pool
    logger.info("phone-identity ready, codes expire after %ds", settings.code_ttl_seconds)

    yield

    pool.close()
    logger.info("phone-identity stopped, pool closed")


app = FastAPI(
    title="phone-identity",
    description="Phone number verification, registration, login and password reset",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

register_exception_handlers(app)
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """Report healthy once the code and account tables are reachable."""
    with request.app.state.pool.connection() as conn:
        conn.execute("SELECT 1")
    return {"status": "healthy"}
