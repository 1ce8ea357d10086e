"""
In-memory one-time code store - Implements OneTimeCodeStore protocol.

Process-local and lock-guarded. Backs the domain tests, which need the
same atomic guarantees as the PostgreSQL store without a database.
"""

import itertools
import threading
from dataclasses import replace
from datetime import datetime

from phone_identity.domain.ports import CodePurpose, OneTimeCode


class InMemoryOneTimeCodeStore:
    """
    Implements OneTimeCodeStore protocol with a dict and a lock.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Every mutation happens under the lock, so concurrent increments
    are never lost or counted past the limit. A record can be consumed
    only once.
    """

    def __init__(self) -> None:
        self._records: dict[int, OneTimeCode] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def delete_active(self, subject: str, purpose: CodePurpose) -> int:
        with self._lock:
            doomed = [
                record.id
                for record in self._records.values()
                if record.subject == subject and record.purpose == purpose
            ]
            for code_id in doomed:
                del self._records[code_id]
            return len(doomed)

    def create(
        self,
        subject: str,
        purpose: CodePurpose,
        code_hash: str,
        expires_at: datetime,
        now: datetime,
    ) -> OneTimeCode:
        with self._lock:
            record = OneTimeCode(
                id=next(self._ids),
                subject=subject,
                purpose=purpose,
                code_hash=code_hash,
                expires_at=expires_at,
                attempts=0,
                is_used=False,
                created_at=now,
                updated_at=now,
            )
            self._records[record.id] = record
            return record

    def find_latest_unused(self, subject: str, purpose: CodePurpose) -> OneTimeCode | None:
        return self._find_latest(subject, purpose, is_used=False)

    def find_latest_used(self, subject: str, purpose: CodePurpose) -> OneTimeCode | None:
        return self._find_latest(subject, purpose, is_used=True)

    def increment_attempts(self, code_id: int, now: datetime, max_attempts: int) -> int | None:
        with self._lock:
            record = self._records.get(code_id)
            if record is None or record.is_used or record.attempts >= max_attempts:
                return None
            updated = replace(record, attempts=record.attempts + 1, updated_at=now)
            self._records[code_id] = updated
            return updated.attempts

    def mark_used(self, code_id: int, now: datetime, max_attempts: int) -> bool:
        with self._lock:
            record = self._records.get(code_id)
            if record is None or record.is_used or record.attempts >= max_attempts:
                return False
            self._records[code_id] = replace(record, is_used=True, updated_at=now)
            return True

    def get(self, code_id: int) -> OneTimeCode | None:
        """Return a record by id (inspection helper)."""
        with self._lock:
            return self._records.get(code_id)

    def _find_latest(
        self, subject: str, purpose: CodePurpose, is_used: bool
    ) -> OneTimeCode | None:
        with self._lock:
            matches = [
                record
                for record in self._records.values()
                if record.subject == subject
                and record.purpose == purpose
                and record.is_used == is_used
            ]
        if not matches:
            return None
        # Ids are monotonic, so they break created_at ties
        return max(matches, key=lambda record: (record.created_at, record.id))
