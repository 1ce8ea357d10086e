"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure, together with the value types that cross them.
Adapters implement these protocols.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol


class CodePurpose(str, Enum):
    """
    Discriminant separating one-time codes that share a single store.

    Codes issued for one purpose are never visible to the other:
    every store lookup is keyed by (subject, purpose).
    """

    REGISTRATION = "registration"
    PASSWORD_RESET = "password_reset"


@dataclass(frozen=True)
class OneTimeCode:
    """A persisted one-time code record. The plaintext code is never stored."""

    id: int
    subject: str
    purpose: CodePurpose
    code_hash: str
    expires_at: datetime
    attempts: int
    is_used: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Account:
    """The slice of an account record the identity core needs."""

    id: str
    phone: str
    full_name: str
    role: str = "customer"
    email: str | None = None
    phone_verified: bool = False


@dataclass(frozen=True)
class TokenPair:
    """Signed access and refresh tokens for one session."""

    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class SessionResult:
    """Returned to the caller after registration completes or login succeeds."""

    access_token: str
    refresh_token: str
    role: str


class Clock(Protocol):
    """Source of the current time (timezone-aware UTC)."""

    def now(self) -> datetime: ...


class CodeHasher(Protocol):
    """One-way hash capability for one-time codes."""

    def hash(self, plain: str) -> str: ...

    def compare(self, plain: str, digest: str) -> bool: ...


class OneTimeCodeStore(Protocol):
    """Port interface for one-time code persistence."""

    def delete_active(self, subject: str, purpose: CodePurpose) -> int:
        """
        Remove every record for (subject, purpose).

        Idempotent: deleting nothing is not an error.

        Returns:
            Number of records removed
        """
        ...

    def create(
        self,
        subject: str,
        purpose: CodePurpose,
        code_hash: str,
        expires_at: datetime,
        now: datetime,
    ) -> OneTimeCode:
        """Insert a fresh record with attempts=0 and is_used=False."""
        ...

    def find_latest_unused(self, subject: str, purpose: CodePurpose) -> OneTimeCode | None:
        """Return the most recently created unused record, if any."""
        ...

    def find_latest_used(self, subject: str, purpose: CodePurpose) -> OneTimeCode | None:
        """Return the most recently created used record, if any."""
        ...

    def increment_attempts(self, code_id: int, now: datetime, max_attempts: int) -> int | None:
        """
        Atomically add one failed attempt to an unused record below the limit.

        Returns:
            The new attempt count, or None if the record is no longer unused
            or already has max_attempts failures
        """
        ...

    def mark_used(self, code_id: int, now: datetime, max_attempts: int) -> bool:
        """
        Atomically flip an unused record below the attempt limit to used.

        Returns:
            True if this call consumed the record, False if it was already
            used, deleted or exhausted
        """
        ...


class AccountDirectory(Protocol):
    """Port interface for the account store that owns passwords and lockout."""

    def create_unverified_account(self, phone: str, full_name: str) -> str | None:
        """
        Create an account whose phone is not yet verified.

        Returns:
            The account id, or None if the phone belongs to a completed account
            (one that already has a password)
        """
        ...

    def mark_phone_verified_and_create_profile(self, phone: str) -> None: ...

    def set_password(self, phone: str, password: str, email: str | None = None) -> Account: ...

    def update_password(self, phone: str, password: str) -> None: ...

    def find_by_phone(self, phone: str) -> Account | None: ...

    def validate_password(self, account: Account, password: str) -> bool: ...

    def simulate_password_check(self, password: str) -> None:
        """Spend the same hashing cost as validate_password without an account."""
        ...

    def is_locked(self, account_id: str) -> bool: ...

    def record_login_attempt(
        self, account_id: str, ip: str, device: str, success: bool
    ) -> None: ...


class SmsSender(Protocol):
    """Port interface for SMS delivery."""

    def send_code(self, phone: str, code: str, purpose: CodePurpose) -> bool:
        """
        Send a one-time code to a phone number.

        Args:
            phone: Recipient phone number
            code: Plaintext one-time code
            purpose: Selects the message template

        Returns:
            True if the message was accepted for delivery
        """
        ...
