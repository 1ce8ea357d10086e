"""
Exception handlers - map domain errors to HTTP responses.

User-facing IdentityError subclasses render their own safe detail with a
status chosen per type. Anything else is a service fault: it is logged
with its traceback and rendered as a generic 503 so internals never leak.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from phone_identity.domain.exceptions import (
    AccountAlreadyExists,
    AccountLocked,
    AccountNotFound,
    AttemptsExhausted,
    DeliveryFailed,
    IdentityError,
    InvalidAccessToken,
    InvalidCode,
    InvalidCredentials,
    InvalidRefreshToken,
)

logger = logging.getLogger(__name__)

# Checked in order; unlisted IdentityError subclasses fall back to 400
STATUS_BY_ERROR: list[tuple[type[IdentityError], int]] = [
    (AccountAlreadyExists, status.HTTP_409_CONFLICT),
    (AccountNotFound, status.HTTP_404_NOT_FOUND),
    (DeliveryFailed, status.HTTP_503_SERVICE_UNAVAILABLE),
    (AttemptsExhausted, status.HTTP_429_TOO_MANY_REQUESTS),
    (InvalidCredentials, status.HTTP_401_UNAUTHORIZED),
    (InvalidRefreshToken, status.HTTP_401_UNAUTHORIZED),
    (InvalidAccessToken, status.HTTP_401_UNAUTHORIZED),
    (AccountLocked, status.HTTP_423_LOCKED),
]


def status_for(error: IdentityError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def identity_error_handler(request: Request, exc: IdentityError) -> JSONResponse:
    body: dict = {"detail": exc.detail}
    headers = None
    if isinstance(exc, InvalidCode):
        body["remaining_attempts"] = exc.remaining_attempts
    if isinstance(exc, InvalidAccessToken):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=status_for(exc), content=body, headers=headers)


async def service_fault_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Service unavailable"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the domain and fallback exception handlers on an app."""
    app.add_exception_handler(IdentityError, identity_error_handler)
    app.add_exception_handler(Exception, service_fault_handler)
