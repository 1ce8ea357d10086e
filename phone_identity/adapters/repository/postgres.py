"""
PostgreSQL repository adapter - Implements OneTimeCodeStore protocol.

This module provides the PostgreSQL implementation of the domain's
one-time code store using psycopg3 with raw SQL.

Concurrency Design:
------------------
1. **Single active code**: A partial unique index on (subject, purpose)
   WHERE is_used = FALSE backs the delete-then-create issuance. If two
   issuances interleave, the later INSERT takes over the existing unused
   row via ON CONFLICT instead of failing, so the late code supersedes.

2. **Attempt counting**: increment_attempts is a single
   UPDATE ... SET attempts = attempts + 1 ... WHERE attempts < limit
   RETURNING statement, so simultaneous wrong submissions are each
   counted and none is counted past the limit.

3. **Single use**: mark_used only matches rows WHERE is_used = FALSE
   AND attempts < limit; rowcount tells the caller whether it won.
"""

import logging
from datetime import datetime
from pathlib import Path

from psycopg_pool import ConnectionPool

from phone_identity.domain.ports import CodePurpose, OneTimeCode

logger = logging.getLogger(__name__)

_COLUMNS = "id, subject, purpose, code_hash, expires_at, attempts, is_used, created_at, updated_at"


def _to_code(row: tuple) -> OneTimeCode:
    return OneTimeCode(
        id=row[0],
        subject=row[1],
        purpose=CodePurpose(row[2]),
        code_hash=row[3],
        expires_at=row[4],
        attempts=row[5],
        is_used=row[6],
        created_at=row[7],
        updated_at=row[8],
    )


class PostgresOneTimeCodeStore:
    """
    Implements OneTimeCodeStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def delete_active(self, subject: str, purpose: CodePurpose) -> int:
        sql = "DELETE FROM one_time_codes WHERE subject = %s AND purpose = %s"

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (subject, purpose.value))
            conn.commit()
            return cursor.rowcount

    def create(
        self,
        subject: str,
        purpose: CodePurpose,
        code_hash: str,
        expires_at: datetime,
        now: datetime,
    ) -> OneTimeCode:
        sql = f"""
            INSERT INTO one_time_codes
                (subject, purpose, code_hash, expires_at, attempts, is_used, created_at, updated_at)
            VALUES (%s, %s, %s, %s, 0, FALSE, %s, %s)
            ON CONFLICT (subject, purpose) WHERE is_used = FALSE DO UPDATE
            SET code_hash = EXCLUDED.code_hash,
                expires_at = EXCLUDED.expires_at,
                attempts = 0,
                created_at = EXCLUDED.created_at,
                updated_at = EXCLUDED.updated_at
            RETURNING {_COLUMNS}
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (subject, purpose.value, code_hash, expires_at, now, now))
            row = cursor.fetchone()
            conn.commit()
            return _to_code(row)

    def find_latest_unused(self, subject: str, purpose: CodePurpose) -> OneTimeCode | None:
        return self._find_latest(subject, purpose, is_used=False)

    def find_latest_used(self, subject: str, purpose: CodePurpose) -> OneTimeCode | None:
        return self._find_latest(subject, purpose, is_used=True)

    def increment_attempts(self, code_id: int, now: datetime, max_attempts: int) -> int | None:
        sql = """
            UPDATE one_time_codes
            SET attempts = attempts + 1, updated_at = %s
            WHERE id = %s AND is_used = FALSE AND attempts < %s
            RETURNING attempts
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (now, code_id, max_attempts))
            row = cursor.fetchone()
            conn.commit()
            return row[0] if row is not None else None

    def mark_used(self, code_id: int, now: datetime, max_attempts: int) -> bool:
        sql = """
            UPDATE one_time_codes
            SET is_used = TRUE, updated_at = %s
            WHERE id = %s AND is_used = FALSE AND attempts < %s
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (now, code_id, max_attempts))
            conn.commit()
            return cursor.rowcount == 1

    def _find_latest(
        self, subject: str, purpose: CodePurpose, is_used: bool
    ) -> OneTimeCode | None:
        sql = f"""
            SELECT {_COLUMNS}
            FROM one_time_codes
            WHERE subject = %s AND purpose = %s AND is_used = %s
            ORDER BY created_at DESC, id DESC
            LIMIT 1
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (subject, purpose.value, is_used))
            row = cursor.fetchone()
            return _to_code(row) if row is not None else None


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: phone_identity/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
