"""
One-time code primitives - generation, hashing, issuance and verification.

Both the registration and the password reset flows are built on the
CodeIssuer / CodeVerifier pair defined here. The two flows differ only in
the CodePurpose they pass; every invariant below applies to both.

Code Lifecycle
==============

    issue()   -> unused record (attempts=0)
    verify()  -> attempts += 1 on mismatch, is_used=True on match
    discard() -> all records for (subject, purpose) deleted by the flow

Verification order (each step short-circuits):
    1. no unused record          -> NoActiveCode
    2. now > expires_at          -> CodeExpired       (attempts untouched)
    3. attempts >= max_attempts  -> AttemptsExhausted (attempts untouched)
    4. hash mismatch             -> InvalidCode       (attempts += 1)
    5. match                     -> record marked used

Steps 4 and 5 are conditional updates that repeat the step 3 limit in the
store, so parallel submissions racing past the snapshot check can neither
add a fourth failure nor consume an exhausted code.
"""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

import bcrypt

from .exceptions import (
    AttemptsExhausted,
    CodeExpired,
    CodeVerificationError,
    DeliveryFailed,
    InvalidCode,
    NoActiveCode,
    VerificationExpired,
)
from .ports import Clock, CodeHasher, CodePurpose, OneTimeCode, OneTimeCodeStore, SmsSender

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CodePolicy:
    """Tunable one-time code policy shared by issuer and verifier."""

    length: int = 6
    ttl: timedelta = timedelta(minutes=5)
    max_attempts: int = 3
    verification_grace: timedelta = timedelta(minutes=10)

    @classmethod
    def from_settings(cls, settings) -> "CodePolicy":
        return cls(
            length=settings.code_length,
            ttl=timedelta(seconds=settings.code_ttl_seconds),
            max_attempts=settings.max_attempts,
            verification_grace=timedelta(seconds=settings.verification_grace_seconds),
        )


@dataclass(frozen=True)
class IssueResult:
    """Outcome of a successful issuance. Never carries the plaintext code."""

    subject: str
    purpose: CodePurpose
    expires_at: datetime


def generate_code(length: int = 6) -> str:
    """
    Generate a cryptographically secure numeric code.

    Each digit is drawn independently from the secrets CSPRNG.
    Returns a string to preserve leading zeros.
    """
    return "".join(secrets.choice("0123456789") for _ in range(length))


class BcryptCodeHasher:
    """CodeHasher implementation backed by salted bcrypt."""

    def __init__(self, rounds: int = 10) -> None:
        self._rounds = rounds

    def hash(self, plain: str) -> str:
        return bcrypt.hashpw(plain.encode(), bcrypt.gensalt(rounds=self._rounds)).decode()

    def compare(self, plain: str, digest: str) -> bool:
        # bcrypt.checkpw is constant-time
        return bcrypt.checkpw(plain.encode(), digest.encode())


@dataclass
class CodeIssuer:
    """
    Creates or replaces the active code for (subject, purpose) and sends it.

    Issuing always deletes prior records for the pair before inserting,
    so a second issuance supersedes the first.
    """

    store: OneTimeCodeStore
    hasher: CodeHasher
    sms_sender: SmsSender
    clock: Clock
    policy: CodePolicy = CodePolicy()
    generator: Callable[[int], str] = generate_code

    def issue(self, subject: str, purpose: CodePurpose) -> IssueResult:
        """
        Issue a new one-time code and dispatch it by SMS.

        Args:
            subject: Normalized phone number
            purpose: Flow the code belongs to

        Returns:
            IssueResult with the expiry of the new code

        Raises:
            DeliveryFailed: If the SMS transport rejected or errored.
                The stored record is left in place; the next issue replaces it.
        """
        code = self.generator(self.policy.length)
        code_hash = self.hasher.hash(code)
        now = self.clock.now()
        expires_at = now + self.policy.ttl

        self.store.delete_active(subject, purpose)
        self.store.create(subject, purpose, code_hash, expires_at, now)

        try:
            accepted = self.sms_sender.send_code(subject, code, purpose)
        except Exception as e:
            logger.warning("SMS transport error for %s (%s): %s", subject, purpose.value, e)
            raise DeliveryFailed() from e

        if not accepted:
            logger.warning("SMS transport rejected %s code for %s", purpose.value, subject)
            raise DeliveryFailed()

        logger.info("Issued %s code for %s", purpose.value, subject)
        return IssueResult(subject=subject, purpose=purpose, expires_at=expires_at)


@dataclass
class CodeVerifier:
    """Checks submitted codes and enforces the post-verification grace window."""

    store: OneTimeCodeStore
    hasher: CodeHasher
    clock: Clock
    policy: CodePolicy = CodePolicy()

    def verify(self, subject: str, purpose: CodePurpose, code: str) -> OneTimeCode:
        """
        Verify a submitted code against the latest unused record.

        Args:
            subject: Normalized phone number
            purpose: Flow the code belongs to
            code: Code as typed by the user

        Returns:
            The record, now marked used

        Raises:
            NoActiveCode: No unused record, or it was consumed concurrently
            CodeExpired: Record is past expires_at
            AttemptsExhausted: Record has max_attempts failures, including
                failures counted by concurrent submissions
            InvalidCode: Mismatch; carries the remaining attempt count
        """
        record = self.store.find_latest_unused(subject, purpose)
        if record is None:
            raise NoActiveCode()

        now = self.clock.now()

        # Expiry and exhaustion must be checked before touching attempts
        if now > record.expires_at:
            raise CodeExpired()

        if record.attempts >= self.policy.max_attempts:
            raise AttemptsExhausted()

        if not self.hasher.compare(code, record.code_hash):
            attempts = self.store.increment_attempts(record.id, now, self.policy.max_attempts)
            if attempts is None:
                raise self._lost_update(subject, purpose, record.id)
            remaining = max(self.policy.max_attempts - attempts, 0)
            logger.info(
                "Invalid %s code for %s (%d attempt(s) remaining)",
                purpose.value,
                subject,
                remaining,
            )
            raise InvalidCode(remaining_attempts=remaining)

        if not self.store.mark_used(record.id, now, self.policy.max_attempts):
            raise self._lost_update(subject, purpose, record.id)

        logger.info("Verified %s code for %s", purpose.value, subject)
        return replace(record, is_used=True, updated_at=now)

    def _lost_update(self, subject: str, purpose: CodePurpose, code_id: int) -> CodeVerificationError:
        # The record was consumed, replaced or exhausted since it was read
        current = self.store.find_latest_unused(subject, purpose)
        if current is not None and current.id == code_id and current.attempts >= self.policy.max_attempts:
            return AttemptsExhausted()
        return NoActiveCode()

    def require_recent_verification(self, subject: str, purpose: CodePurpose) -> OneTimeCode:
        """
        Ensure a successful verification happened within the grace window.

        Reads the most recent used record and compares its updated_at to
        now, so no session state is kept between the verify and finalize calls.

        Raises:
            VerificationExpired: No used record, or it is older than the window
        """
        record = self.store.find_latest_used(subject, purpose)
        if record is None:
            raise VerificationExpired()

        if self.clock.now() - record.updated_at > self.policy.verification_grace:
            raise VerificationExpired()

        return record

    def discard(self, subject: str, purpose: CodePurpose) -> None:
        """Delete all records for (subject, purpose) once the flow is done."""
        removed = self.store.delete_active(subject, purpose)
        logger.debug("Discarded %d %s record(s) for %s", removed, purpose.value, subject)
