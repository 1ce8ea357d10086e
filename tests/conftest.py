"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A frozen, advanceable clock
- Low-cost bcrypt hashing
- In-memory code store, account directory and SMS sender fakes
- Fully wired domain services
"""

from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from itertools import count

import bcrypt
import pytest

from phone_identity.adapters.repository.memory import InMemoryOneTimeCodeStore
from phone_identity.domain.codes import BcryptCodeHasher, CodeIssuer, CodePolicy, CodeVerifier
from phone_identity.domain.login import LoginService
from phone_identity.domain.password_reset import PasswordResetService
from phone_identity.domain.ports import Account, CodePurpose
from phone_identity.domain.registration import RegistrationService
from phone_identity.domain.tokens import TokenIssuer

TEST_SECRET = "test-secret-key"


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime.now(timezone.utc).replace(microsecond=0)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class CodeSequence:
    """Code generator returning predetermined codes in order."""

    def __init__(self, codes: Iterable[str]) -> None:
        self._codes = iter(codes)

    def __call__(self, length: int) -> str:
        return next(self._codes)


class RecordingSmsSender:
    """SmsSender fake that records every message."""

    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.sent: list[tuple[str, str, CodePurpose]] = []

    def send_code(self, phone: str, code: str, purpose: CodePurpose) -> bool:
        self.sent.append((phone, code, purpose))
        return self.accept

    def last_code(self) -> str:
        return self.sent[-1][1]


class FakeAccountDirectory:
    """AccountDirectory fake with plain in-memory state and bcrypt passwords."""

    def __init__(self, bcrypt_cost: int = 4) -> None:
        self.accounts: dict[str, Account] = {}
        self.passwords: dict[str, str] = {}
        self.profiles: set[str] = set()
        self.locked: set[str] = set()
        self.login_attempts: list[tuple[str, str, str, bool]] = []
        self.simulated_checks = 0
        self._ids = count(1)
        self._cost = bcrypt_cost
        self._dummy_hash = bcrypt.hashpw(b"dummy", bcrypt.gensalt(self._cost))

    def add(self, phone: str, password: str | None = None, role: str = "customer") -> Account:
        account = Account(
            id=f"acc-{next(self._ids)}",
            phone=phone,
            full_name="Test User",
            role=role,
            phone_verified=True,
        )
        self.accounts[phone] = account
        if password is not None:
            self.passwords[phone] = bcrypt.hashpw(password.encode(), bcrypt.gensalt(self._cost)).decode()
        return account

    def create_unverified_account(self, phone: str, full_name: str) -> str | None:
        existing = self.accounts.get(phone)
        if existing is not None:
            if phone in self.passwords:
                return None
            self.accounts[phone] = replace(existing, full_name=full_name)
            return existing.id
        account = Account(id=f"acc-{next(self._ids)}", phone=phone, full_name=full_name)
        self.accounts[phone] = account
        return account.id

    def mark_phone_verified_and_create_profile(self, phone: str) -> None:
        account = self.accounts[phone]
        self.accounts[phone] = replace(account, phone_verified=True)
        self.profiles.add(account.id)

    def set_password(self, phone: str, password: str, email: str | None = None) -> Account:
        self.passwords[phone] = bcrypt.hashpw(password.encode(), bcrypt.gensalt(self._cost)).decode()
        account = self.accounts[phone]
        if email is not None:
            account = replace(account, email=email)
            self.accounts[phone] = account
        return account

    def update_password(self, phone: str, password: str) -> None:
        self.passwords[phone] = bcrypt.hashpw(password.encode(), bcrypt.gensalt(self._cost)).decode()

    def find_by_phone(self, phone: str) -> Account | None:
        return self.accounts.get(phone)

    def validate_password(self, account: Account, password: str) -> bool:
        stored = self.passwords.get(account.phone)
        encoded = password.encode()
        if stored is None or len(encoded) > 72:
            self.simulate_password_check(password)
            return False
        return bcrypt.checkpw(encoded, stored.encode())

    def simulate_password_check(self, password: str) -> None:
        self.simulated_checks += 1
        bcrypt.checkpw(password.encode()[:72], self._dummy_hash)

    def is_locked(self, account_id: str) -> bool:
        return account_id in self.locked

    def record_login_attempt(self, account_id: str, ip: str, device: str, success: bool) -> None:
        self.login_attempts.append((account_id, ip, device, success))


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def hasher() -> BcryptCodeHasher:
    """Minimum bcrypt cost keeps the suite fast."""
    return BcryptCodeHasher(rounds=4)


@pytest.fixture
def policy() -> CodePolicy:
    return CodePolicy()


@pytest.fixture
def store() -> InMemoryOneTimeCodeStore:
    return InMemoryOneTimeCodeStore()


@pytest.fixture
def sms() -> RecordingSmsSender:
    return RecordingSmsSender()


@pytest.fixture
def accounts() -> FakeAccountDirectory:
    return FakeAccountDirectory()


@pytest.fixture
def production_cost_accounts() -> FakeAccountDirectory:
    """Directory hashing at the default bcrypt cost, for timing measurements."""
    return FakeAccountDirectory(bcrypt_cost=10)


@pytest.fixture
def issuer(store, hasher, sms, clock, policy) -> CodeIssuer:
    return CodeIssuer(store=store, hasher=hasher, sms_sender=sms, clock=clock, policy=policy)


@pytest.fixture
def verifier(store, hasher, clock, policy) -> CodeVerifier:
    return CodeVerifier(store=store, hasher=hasher, clock=clock, policy=policy)


@pytest.fixture
def tokens(clock) -> TokenIssuer:
    return TokenIssuer(secret_key=TEST_SECRET, clock=clock)


@pytest.fixture
def registration(accounts, issuer, verifier, tokens) -> RegistrationService:
    return RegistrationService(accounts=accounts, issuer=issuer, verifier=verifier, tokens=tokens)


@pytest.fixture
def password_reset(accounts, issuer, verifier) -> PasswordResetService:
    return PasswordResetService(accounts=accounts, issuer=issuer, verifier=verifier)


@pytest.fixture
def login_service(accounts, tokens) -> LoginService:
    return LoginService(accounts=accounts, tokens=tokens)


@pytest.fixture
def use_codes(issuer):
    """Make the issuer hand out the given codes in order."""

    def _use(*codes: str) -> None:
        issuer.generator = CodeSequence(codes)

    return _use

