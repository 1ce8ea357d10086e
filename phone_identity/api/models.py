"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

import re

from pydantic import BaseModel, EmailStr, Field, field_validator

from phone_identity.domain.phones import normalize_phone

PHONE_PATTERN = r"^\+?[0-9]{8,15}$"

# bcrypt only reads the first 72 bytes of a password
PASSWORD_MAX_BYTES = 72


class PhoneRequest(BaseModel):
    """Base for requests identified by a phone number."""

    phone: str = Field(..., description="Phone number in international format, e.g. +963991234567")

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        normalized = normalize_phone(value)
        if not re.match(PHONE_PATTERN, normalized):
            raise ValueError("Invalid phone number")
        return normalized


class RegisterRequest(PhoneRequest):
    """Request model for registration step 1."""

    full_name: str = Field(..., min_length=2, max_length=255)


class VerifyCodeRequest(PhoneRequest):
    """Request model for submitting a one-time code."""

    code: str = Field(
        ...,
        min_length=4,
        max_length=8,
        pattern=r"^\d+$",
        description="Numeric verification code received by SMS",
    )


class NewPasswordRequest(PhoneRequest):
    """Base for requests that set a password."""

    password: str = Field(
        ...,
        min_length=8,
        max_length=PASSWORD_MAX_BYTES,
        description="Password, 8 to 72 characters and at most 72 bytes as UTF-8",
    )

    @field_validator("password")
    @classmethod
    def validate_password_bytes(cls, value: str) -> str:
        if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
            raise ValueError(f"Password must not exceed {PASSWORD_MAX_BYTES} bytes")
        return value


class CompleteRegistrationRequest(NewPasswordRequest):
    """Request model for registration step 3."""

    email: EmailStr | None = None


class LoginRequest(PhoneRequest):
    """Request model for login."""

    password: str = Field(..., min_length=1, max_length=128)


class ForgotPasswordRequest(PhoneRequest):
    """Request model for starting a password reset."""


class ResetPasswordRequest(NewPasswordRequest):
    """Request model for setting a new password."""


class RefreshRequest(BaseModel):
    """Request model for exchanging a refresh token."""

    refresh_token: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    """Generic acknowledgement."""

    message: str


class CodeSentResponse(BaseModel):
    """Response model after a code has been sent."""

    message: str
    phone: str
    expires_in_seconds: int


class VerifiedResponse(BaseModel):
    """Response model after a code has been verified."""

    message: str
    verified: bool
    next: str


class SessionResponse(BaseModel):
    """Response model carrying session tokens."""

    access_token: str
    refresh_token: str
    role: str
    message: str


class AccessTokenResponse(BaseModel):
    """Response model for a refreshed access token."""

    access_token: str


class AccountResponse(BaseModel):
    """Response model for the authenticated account."""

    id: str
    phone: str
    full_name: str
    email: str | None = None
    role: str
    phone_verified: bool


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
    remaining_attempts: int | None = None
