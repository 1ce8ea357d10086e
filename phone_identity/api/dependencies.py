"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from datetime import timedelta

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from psycopg_pool import ConnectionPool

from phone_identity.adapters.accounts.postgres import PostgresAccountDirectory
from phone_identity.adapters.repository.postgres import PostgresOneTimeCodeStore
from phone_identity.adapters.sms.console import ConsoleSmsSender
from phone_identity.config.settings import Settings, get_settings
from phone_identity.domain.clock import SystemClock
from phone_identity.domain.codes import BcryptCodeHasher, CodeIssuer, CodePolicy, CodeVerifier
from phone_identity.domain.exceptions import InvalidAccessToken
from phone_identity.domain.login import LoginService
from phone_identity.domain.ports import Account
from phone_identity.domain.password_reset import PasswordResetService
from phone_identity.domain.registration import RegistrationService
from phone_identity.domain.tokens import TokenIssuer

# Module-level singleton - SystemClock is stateless
_clock = SystemClock()

# auto_error=False so a missing header goes through the domain 401 handler
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/v1/login", auto_error=False)


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_code_store(request: Request) -> PostgresOneTimeCodeStore:
    """Create one-time code store with connection pool from app state."""
    return PostgresOneTimeCodeStore(get_pool(request))


def get_account_directory(
    request: Request, settings: Settings = Depends(get_settings)
) -> PostgresAccountDirectory:
    """Create account directory with connection pool and lockout policy."""
    return PostgresAccountDirectory(
        get_pool(request),
        bcrypt_cost=settings.bcrypt_cost,
        max_failures=settings.login_max_failures,
        lock_duration=timedelta(minutes=settings.login_lock_minutes),
    )


def get_sms_sender(settings: Settings = Depends(get_settings)) -> ConsoleSmsSender:
    """Get console SMS sender."""
    return ConsoleSmsSender(reveal_codes=settings.reveal_codes_in_logs)


def get_code_policy(settings: Settings = Depends(get_settings)) -> CodePolicy:
    return CodePolicy.from_settings(settings)


def get_token_issuer(settings: Settings = Depends(get_settings)) -> TokenIssuer:
    return TokenIssuer.from_settings(settings, clock=_clock)


def get_code_issuer(
    store: PostgresOneTimeCodeStore = Depends(get_code_store),
    sms_sender: ConsoleSmsSender = Depends(get_sms_sender),
    policy: CodePolicy = Depends(get_code_policy),
    settings: Settings = Depends(get_settings),
) -> CodeIssuer:
    return CodeIssuer(
        store=store,
        hasher=BcryptCodeHasher(rounds=settings.bcrypt_cost),
        sms_sender=sms_sender,
        clock=_clock,
        policy=policy,
    )


def get_code_verifier(
    store: PostgresOneTimeCodeStore = Depends(get_code_store),
    policy: CodePolicy = Depends(get_code_policy),
    settings: Settings = Depends(get_settings),
) -> CodeVerifier:
    return CodeVerifier(
        store=store,
        hasher=BcryptCodeHasher(rounds=settings.bcrypt_cost),
        clock=_clock,
        policy=policy,
    )


def get_registration_service(
    accounts: PostgresAccountDirectory = Depends(get_account_directory),
    issuer: CodeIssuer = Depends(get_code_issuer),
    verifier: CodeVerifier = Depends(get_code_verifier),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> RegistrationService:
    """
    Create registration service with injected dependencies.

    Wires together the account directory, code primitives and token issuer.
    """
    return RegistrationService(accounts=accounts, issuer=issuer, verifier=verifier, tokens=tokens)


def get_password_reset_service(
    accounts: PostgresAccountDirectory = Depends(get_account_directory),
    issuer: CodeIssuer = Depends(get_code_issuer),
    verifier: CodeVerifier = Depends(get_code_verifier),
) -> PasswordResetService:
    """Create password reset service with injected dependencies."""
    return PasswordResetService(accounts=accounts, issuer=issuer, verifier=verifier)


def get_login_service(
    accounts: PostgresAccountDirectory = Depends(get_account_directory),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> LoginService:
    """Create login service with injected dependencies."""
    return LoginService(accounts=accounts, tokens=tokens)


def get_client_context(request: Request) -> tuple[str, str]:
    """
    Extract client IP and device for the login history.

    Returns:
        Tuple of (ip, device). Device is the User-Agent header.
    """
    ip = request.client.host if request.client else "unknown"
    device = request.headers.get("user-agent", "unknown")
    return ip, device


def get_current_account(
    token: str | None = Depends(oauth2_scheme),
    service: LoginService = Depends(get_login_service),
) -> Account:
    """
    Resolve the Bearer access token on the request to its account.

    Raises:
        InvalidAccessToken: No token, or it does not validate (rendered as 401)
    """
    if not token:
        raise InvalidAccessToken()
    return service.current_account(token)
