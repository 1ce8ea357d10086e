"""
Shared fixtures for integration tests.

Requires PostgreSQL to be running at DATABASE_URL. Every test in this
directory is skipped when the database cannot be reached.
"""

from collections.abc import Generator

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from phone_identity.adapters.repository.postgres import run_migrations
from phone_identity.config.settings import get_settings


@pytest.fixture(scope="session")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool and apply migrations once per session."""
    settings = get_settings()
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=1,
        max_size=10,
        open=True,
    )
    try:
        pool.wait(timeout=5)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")

    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture(autouse=True)
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Clean every table before each test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM one_time_codes")
        conn.execute("DELETE FROM login_history")
        conn.execute("DELETE FROM customer_profiles")
        conn.execute("DELETE FROM accounts")
        conn.commit()
    yield
