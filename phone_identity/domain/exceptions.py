"""
Domain exceptions - Semantic error types for phone identity flows.

Every subclass of IdentityError is an expected, user-facing outcome
(bad code, wrong password, expired window) and carries a message that is
safe to show to the caller. Anything else raised from the domain is a
service fault and must not be rendered as one of these.
"""


class IdentityError(Exception):
    """Base class for user-facing identity errors."""

    detail = "Request could not be completed"
    retryable = False

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class AccountAlreadyExists(IdentityError):
    """Phone number already belongs to a fully registered account."""

    detail = "An account with this phone number already exists"


class AccountNotFound(IdentityError):
    """No account is registered for the phone number."""

    detail = "Account not found"


class DeliveryFailed(IdentityError):
    """The SMS transport did not accept the code. Re-issue to retry."""

    detail = "Failed to send verification code. Please try again."
    retryable = True


class CodeVerificationError(IdentityError):
    """Base class for one-time code verification failures."""

    pass


class NoActiveCode(CodeVerificationError):
    """No unused code exists for this phone and purpose."""

    detail = "No active verification code. Please request a new one."


class CodeExpired(CodeVerificationError):
    """The code is past its expiry time."""

    detail = "Verification code has expired. Please request a new one."
    retryable = True


class AttemptsExhausted(CodeVerificationError):
    """Too many failed attempts against the current code."""

    detail = "Maximum verification attempts exceeded. Please request a new code."
    retryable = True


class InvalidCode(CodeVerificationError):
    """Submitted code does not match."""

    retryable = True

    def __init__(self, remaining_attempts: int) -> None:
        self.remaining_attempts = remaining_attempts
        super().__init__(
            f"Invalid verification code. {remaining_attempts} attempt(s) remaining."
        )


class VerificationExpired(IdentityError):
    """No recent successful verification; the flow must restart."""

    detail = "Phone verification expired. Please start again."


class InvalidCredentials(IdentityError):
    """Unknown phone or wrong password. Deliberately indistinguishable."""

    detail = "Invalid phone number or password"


class AccountLocked(IdentityError):
    """Login temporarily blocked by the account directory."""

    detail = "Account is temporarily locked. Please try again later."
    retryable = True


class InvalidRefreshToken(IdentityError):
    """Refresh token is malformed, expired, or not a refresh token."""

    detail = "Invalid refresh token"


class InvalidAccessToken(IdentityError):
    """Access token is missing, malformed, expired, or no longer matches an account."""

    detail = "Could not validate credentials"
