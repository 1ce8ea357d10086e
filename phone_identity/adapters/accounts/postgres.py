"""
PostgreSQL account directory adapter - Implements AccountDirectory protocol.

Owns everything the identity core treats as a black box: password
hashing (bcrypt), the lockout policy and the login history.

Lockout policy:
- Each failed login increments failed_login_attempts
- Reaching max_failures sets locked_until = NOW() + lock_duration
- A successful login resets the counter and clears the lock
- An elapsed lock is cleared on the next is_locked() check
- Login history keeps the latest 50 entries per account
"""

import logging
from datetime import timedelta
from functools import lru_cache

import bcrypt
from psycopg_pool import ConnectionPool

from phone_identity.domain.exceptions import AccountNotFound
from phone_identity.domain.ports import Account

logger = logging.getLogger(__name__)

LOGIN_HISTORY_LIMIT = 50

# bcrypt ignores (4.x) or rejects (5.x) anything past 72 bytes
BCRYPT_MAX_BYTES = 72


@lru_cache
def _dummy_hash(cost: int) -> bytes:
    """Hash compared against when there is no real one, so the bcrypt cost is paid either way."""
    return bcrypt.hashpw(b"dummy_password_for_timing_safety", bcrypt.gensalt(cost))

_COLUMNS = "id, phone, full_name, role, email, phone_verified"


def _to_account(row: tuple) -> Account:
    return Account(
        id=str(row[0]),
        phone=row[1],
        full_name=row[2],
        role=row[3],
        email=row[4],
        phone_verified=row[5],
    )


class PostgresAccountDirectory:
    """
    Implements AccountDirectory protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        bcrypt_cost: int = 10,
        max_failures: int = 5,
        lock_duration: timedelta = timedelta(minutes=10),
    ) -> None:
        self._pool = pool
        self._bcrypt_cost = bcrypt_cost
        self._max_failures = max_failures
        self._lock_duration = lock_duration

    def create_unverified_account(self, phone: str, full_name: str) -> str | None:
        """
        Create an unverified account, or refresh the name of one.

        Uses INSERT ... ON CONFLICT DO UPDATE WHERE so that an account
        without a password can restart registration while a completed one cannot.

        Returns:
            Account id, or None if the phone belongs to a completed account
        """
        sql = f"""
            INSERT INTO accounts (phone, full_name)
            VALUES (%s, %s)
            ON CONFLICT (phone) DO UPDATE
            SET full_name = EXCLUDED.full_name,
                updated_at = NOW()
            WHERE accounts.password_hash IS NULL
            RETURNING {_COLUMNS}
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (phone, full_name))
            row = cursor.fetchone()
            conn.commit()
            return str(row[0]) if row is not None else None

    def mark_phone_verified_and_create_profile(self, phone: str) -> None:
        verify_sql = """
            UPDATE accounts
            SET phone_verified = TRUE, updated_at = NOW()
            WHERE phone = %s
            RETURNING id
        """
        profile_sql = """
            INSERT INTO customer_profiles (account_id)
            VALUES (%s)
            ON CONFLICT (account_id) DO NOTHING
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(verify_sql, (phone,))
            row = cursor.fetchone()
            if row is None:
                conn.rollback()
                raise AccountNotFound()
            cursor.execute(profile_sql, (row[0],))
            conn.commit()

    def set_password(self, phone: str, password: str, email: str | None = None) -> Account:
        sql = f"""
            UPDATE accounts
            SET password_hash = %s,
                email = COALESCE(%s, email),
                updated_at = NOW()
            WHERE phone = %s
            RETURNING {_COLUMNS}
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (self._hash_password(password), email, phone))
            row = cursor.fetchone()
            conn.commit()

        if row is None:
            raise AccountNotFound()
        return _to_account(row)

    def update_password(self, phone: str, password: str) -> None:
        sql = """
            UPDATE accounts
            SET password_hash = %s, updated_at = NOW()
            WHERE phone = %s
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (self._hash_password(password), phone))
            conn.commit()
            updated = cursor.rowcount

        if updated != 1:
            raise AccountNotFound()
        logger.info("Password updated for account: %s", phone)

    def find_by_phone(self, phone: str) -> Account | None:
        sql = f"SELECT {_COLUMNS} FROM accounts WHERE phone = %s"

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (phone,))
            row = cursor.fetchone()
            return _to_account(row) if row is not None else None

    def validate_password(self, account: Account, password: str) -> bool:
        sql = "SELECT password_hash FROM accounts WHERE id = %s"

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (account.id,))
            row = cursor.fetchone()

        stored_hash = row[0] if row is not None and row[0] is not None else None
        encoded = password.encode()
        # Always run bcrypt so a missing hash or an oversized password costs the same time
        digest = stored_hash.encode() if stored_hash is not None else _dummy_hash(self._bcrypt_cost)
        valid = bcrypt.checkpw(encoded[:BCRYPT_MAX_BYTES], digest)
        return valid and stored_hash is not None and len(encoded) <= BCRYPT_MAX_BYTES

    def simulate_password_check(self, password: str) -> None:
        bcrypt.checkpw(password.encode()[:BCRYPT_MAX_BYTES], _dummy_hash(self._bcrypt_cost))

    def is_locked(self, account_id: str) -> bool:
        unlock_sql = """
            UPDATE accounts
            SET locked_until = NULL, failed_login_attempts = 0
            WHERE id = %s AND locked_until IS NOT NULL AND locked_until <= NOW()
        """
        check_sql = """
            SELECT locked_until IS NOT NULL AND locked_until > NOW()
            FROM accounts
            WHERE id = %s
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(unlock_sql, (account_id,))
            cursor.execute(check_sql, (account_id,))
            row = cursor.fetchone()
            conn.commit()
            return bool(row[0]) if row is not None else False

    def record_login_attempt(
        self, account_id: str, ip: str, device: str, success: bool
    ) -> None:
        history_sql = """
            INSERT INTO login_history (account_id, ip, device, success)
            VALUES (%s, %s, %s, %s)
        """
        trim_sql = """
            DELETE FROM login_history
            WHERE account_id = %s
              AND id NOT IN (
                  SELECT id FROM login_history
                  WHERE account_id = %s
                  ORDER BY created_at DESC, id DESC
                  LIMIT %s
              )
        """
        success_sql = """
            UPDATE accounts
            SET failed_login_attempts = 0, locked_until = NULL
            WHERE id = %s
        """
        failure_sql = """
            UPDATE accounts
            SET failed_login_attempts = failed_login_attempts + 1,
                locked_until = CASE
                    WHEN failed_login_attempts + 1 >= %s THEN NOW() + %s
                    ELSE locked_until
                END
            WHERE id = %s
            RETURNING locked_until
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(history_sql, (account_id, ip[:64], device[:512], success))
            cursor.execute(trim_sql, (account_id, account_id, LOGIN_HISTORY_LIMIT))
            if success:
                cursor.execute(success_sql, (account_id,))
            else:
                cursor.execute(failure_sql, (self._max_failures, self._lock_duration, account_id))
                row = cursor.fetchone()
                if row is not None and row[0] is not None:
                    logger.warning("Account %s locked until %s after failed logins", account_id, row[0])
            conn.commit()

    def _hash_password(self, password: str) -> str:
        if len(password.encode()) > BCRYPT_MAX_BYTES:
            raise ValueError(f"Password exceeds {BCRYPT_MAX_BYTES} bytes")
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self._bcrypt_cost)).decode()
