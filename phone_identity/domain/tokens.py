"""
Token issuer - stateless signed session tokens.

Access and refresh tokens carry the same identity claims
({sub, phone, role}) and differ only in their "type" claim and expiry.
Nothing is persisted; there is no revocation list.
"""

from dataclasses import dataclass
from datetime import timedelta

from jose import JWTError, jwt

from .clock import SystemClock
from .exceptions import InvalidAccessToken, InvalidRefreshToken
from .ports import Clock, TokenPair

ACCESS = "access"
REFRESH = "refresh"


@dataclass
class TokenIssuer:
    """Mints and decodes HS256 session tokens with python-jose."""

    secret_key: str
    algorithm: str = "HS256"
    access_ttl: timedelta = timedelta(days=7)
    refresh_ttl: timedelta = timedelta(days=30)
    clock: Clock = SystemClock()

    def __post_init__(self) -> None:
        if not self.secret_key:
            raise RuntimeError("JWT secret key is not configured")

    @classmethod
    def from_settings(cls, settings, clock: Clock | None = None) -> "TokenIssuer":
        return cls(
            secret_key=settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            access_ttl=timedelta(minutes=settings.access_token_ttl_minutes),
            refresh_ttl=timedelta(minutes=settings.refresh_token_ttl_minutes),
            clock=clock or SystemClock(),
        )

    def issue(self, account_id: str, phone: str, role: str) -> TokenPair:
        """
        Mint an access/refresh pair for an account.

        Args:
            account_id: Account identifier, stored as the "sub" claim
            phone: Verified phone number
            role: Account role

        Returns:
            TokenPair of signed JWT strings
        """
        claims = {"sub": account_id, "phone": phone, "role": role}
        return TokenPair(
            access_token=self._sign(claims, ACCESS, self.access_ttl),
            refresh_token=self._sign(claims, REFRESH, self.refresh_ttl),
        )

    def issue_access(self, account_id: str, phone: str, role: str) -> str:
        """Mint an access token only."""
        claims = {"sub": account_id, "phone": phone, "role": role}
        return self._sign(claims, ACCESS, self.access_ttl)

    def decode(self, token: str, expected_type: str) -> dict:
        """
        Verify signature, expiry and token type.

        Raises:
            JWTError: Signature invalid, token expired or wrong type
        """
        payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        if payload.get("type") != expected_type:
            raise JWTError(f"Expected {expected_type} token")
        return payload

    def authenticate(self, access_token: str) -> dict:
        """
        Decode an access token into its claims.

        Raises:
            InvalidAccessToken: Signature invalid, token expired or not an access token
        """
        try:
            payload = self.decode(access_token, ACCESS)
        except JWTError as e:
            raise InvalidAccessToken() from e
        if not payload.get("sub") or not payload.get("phone"):
            raise InvalidAccessToken()
        return payload

    def refresh(self, refresh_token: str) -> str:
        """
        Exchange a refresh token for a new access token with the same claims.

        Raises:
            InvalidRefreshToken: Token cannot be decoded as a valid refresh token
        """
        try:
            payload = self.decode(refresh_token, REFRESH)
        except JWTError as e:
            raise InvalidRefreshToken() from e
        return self.issue_access(payload["sub"], payload["phone"], payload["role"])

    def _sign(self, claims: dict, token_type: str, ttl: timedelta) -> str:
        issued_at = self.clock.now()
        to_encode = {
            **claims,
            "type": token_type,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + ttl).timestamp()),
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)
