"""
API v1 routes.

Defines REST endpoints for phone registration, login, token refresh,
the current account and password reset. Domain errors are translated by the handlers in
phone_identity.api.errors, so routes only deal with the success path.
"""

from fastapi import APIRouter, Depends, status

from phone_identity.api.dependencies import (
    get_client_context,
    get_current_account,
    get_login_service,
    get_password_reset_service,
    get_registration_service,
)
from phone_identity.api.models import (
    AccessTokenResponse,
    AccountResponse,
    CodeSentResponse,
    CompleteRegistrationRequest,
    ErrorResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SessionResponse,
    VerifiedResponse,
    VerifyCodeRequest,
)
from phone_identity.config.settings import Settings, get_settings
from phone_identity.domain.login import LoginService
from phone_identity.domain.password_reset import PasswordResetService
from phone_identity.domain.ports import Account
from phone_identity.domain.registration import RegistrationService

router = APIRouter(tags=["v1"])

FORGOT_PASSWORD_MESSAGE = "If this phone number is registered, you will receive a code shortly."

_code_errors = {
    400: {"model": ErrorResponse, "description": "No active code, expired or invalid code"},
    429: {"model": ErrorResponse, "description": "Verification attempts exhausted"},
    422: {"description": "Validation error"},
}


@router.post(
    "/register",
    response_model=CodeSentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Phone already registered"},
        503: {"model": ErrorResponse, "description": "SMS delivery failed"},
        422: {"description": "Validation error"},
    },
    summary="Start registration",
    description="Create an unverified account and send a verification code by SMS.",
)
async def register(
    request_data: RegisterRequest,
    service: RegistrationService = Depends(get_registration_service),
    settings: Settings = Depends(get_settings),
) -> CodeSentResponse:
    """
    Register a phone number and send a verification code.

    - **phone**: Phone number in international format
    - **full_name**: Display name
    """
    service.begin_registration(request_data.phone, request_data.full_name)
    return CodeSentResponse(
        message="Verification code sent",
        phone=request_data.phone,
        expires_in_seconds=settings.code_ttl_seconds,
    )


@router.post(
    "/register/verify",
    response_model=VerifiedResponse,
    responses=_code_errors,
    summary="Verify registration code",
)
async def verify_registration(
    request_data: VerifyCodeRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> VerifiedResponse:
    service.verify_registration_code(request_data.phone, request_data.code)
    return VerifiedResponse(
        message="Phone number verified",
        verified=True,
        next="/v1/register/complete",
    )


@router.post(
    "/register/complete",
    response_model=SessionResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Verification expired"},
        422: {"description": "Validation error"},
    },
    summary="Set password and finish registration",
)
async def complete_registration(
    request_data: CompleteRegistrationRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> SessionResponse:
    """
    Finish registration within the grace window after verification.

    Returns access and refresh tokens on success.
    """
    result = service.complete_registration(
        request_data.phone, request_data.password, request_data.email
    )
    return SessionResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        role=result.role,
        message="Account created",
    )


@router.post(
    "/login",
    response_model=SessionResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid phone number or password"},
        423: {"model": ErrorResponse, "description": "Account temporarily locked"},
        422: {"description": "Validation error"},
    },
    summary="Log in with phone and password",
)
async def login(
    request_data: LoginRequest,
    client: tuple[str, str] = Depends(get_client_context),
    service: LoginService = Depends(get_login_service),
) -> SessionResponse:
    # Unknown phone and wrong password produce the same 401
    ip, device = client
    result = service.login(request_data.phone, request_data.password, ip, device)
    return SessionResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        role=result.role,
        message="Logged in",
    )


@router.post(
    "/token/refresh",
    response_model=AccessTokenResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid refresh token"}},
    summary="Exchange a refresh token for a new access token",
)
async def refresh_token(
    request_data: RefreshRequest,
    service: LoginService = Depends(get_login_service),
) -> AccessTokenResponse:
    return AccessTokenResponse(access_token=service.refresh_session(request_data.refresh_token))


@router.get(
    "/me",
    response_model=AccountResponse,
    responses={401: {"model": ErrorResponse, "description": "Missing or invalid access token"}},
    summary="Get the authenticated account",
)
async def me(account: Account = Depends(get_current_account)) -> AccountResponse:
    """Return the account the Bearer access token was issued to."""
    return AccountResponse(
        id=account.id,
        phone=account.phone,
        full_name=account.full_name,
        email=account.email,
        role=account.role,
        phone_verified=account.phone_verified,
    )


@router.post(
    "/password/forgot",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={422: {"description": "Validation error"}},
    summary="Request a password reset code",
)
async def forgot_password(
    request_data: ForgotPasswordRequest,
    service: PasswordResetService = Depends(get_password_reset_service),
) -> MessageResponse:
    """
    Send a reset code if the phone is registered.

    The response is identical for registered and unregistered numbers.
    """
    service.request_password_reset(request_data.phone)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post(
    "/password/verify",
    response_model=VerifiedResponse,
    responses=_code_errors,
    summary="Verify password reset code",
)
async def verify_reset_code(
    request_data: VerifyCodeRequest,
    service: PasswordResetService = Depends(get_password_reset_service),
) -> VerifiedResponse:
    service.verify_reset_code(request_data.phone, request_data.code)
    return VerifiedResponse(
        message="Code verified. You can now reset your password.",
        verified=True,
        next="/v1/password/reset",
    )


@router.post(
    "/password/reset",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Verification expired"},
        422: {"description": "Validation error"},
    },
    summary="Set a new password",
)
async def reset_password(
    request_data: ResetPasswordRequest,
    service: PasswordResetService = Depends(get_password_reset_service),
) -> MessageResponse:
    service.reset_password(request_data.phone, request_data.password)
    return MessageResponse(
        message="Password reset successfully. You can now log in with your new password."
    )
