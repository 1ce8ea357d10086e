"""
Domain layer - Phone identity business logic.

This package contains the one-time code primitives, the registration,
password reset and login flows, and the token issuer. It defines its own
port interfaces for infrastructure; adapters live in phone_identity.adapters.
"""

from .codes import BcryptCodeHasher, CodeIssuer, CodePolicy, CodeVerifier, IssueResult, generate_code
from .exceptions import (
    AccountAlreadyExists,
    AccountLocked,
    AccountNotFound,
    AttemptsExhausted,
    CodeExpired,
    CodeVerificationError,
    DeliveryFailed,
    IdentityError,
    InvalidAccessToken,
    InvalidCode,
    InvalidCredentials,
    InvalidRefreshToken,
    NoActiveCode,
    VerificationExpired,
)
from .login import LoginService
from .password_reset import PasswordResetService
from .ports import (
    Account,
    AccountDirectory,
    Clock,
    CodeHasher,
    CodePurpose,
    OneTimeCode,
    OneTimeCodeStore,
    SessionResult,
    SmsSender,
    TokenPair,
)
from .registration import RegistrationService
from .tokens import TokenIssuer

__all__ = [
    "Account",
    "AccountAlreadyExists",
    "AccountDirectory",
    "AccountLocked",
    "AccountNotFound",
    "AttemptsExhausted",
    "BcryptCodeHasher",
    "Clock",
    "CodeExpired",
    "CodeHasher",
    "CodeIssuer",
    "CodePolicy",
    "CodePurpose",
    "CodeVerificationError",
    "CodeVerifier",
    "DeliveryFailed",
    "IdentityError",
    "InvalidAccessToken",
    "InvalidCode",
    "InvalidCredentials",
    "InvalidRefreshToken",
    "IssueResult",
    "LoginService",
    "NoActiveCode",
    "OneTimeCode",
    "OneTimeCodeStore",
    "PasswordResetService",
    "RegistrationService",
    "SessionResult",
    "SmsSender",
    "TokenIssuer",
    "TokenPair",
    "VerificationExpired",
    "generate_code",
]
