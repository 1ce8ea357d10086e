"""
Login domain service - credential check, lockout, session issuance and
access token resolution.

Lockout policy belongs to the account directory. This service only asks
is_locked() on every attempt and appends to the login history; it never
caches lock state and never computes thresholds itself.
"""

import logging
from dataclasses import dataclass

from .exceptions import AccountLocked, InvalidAccessToken, InvalidCredentials
from .phones import normalize_phone
from .ports import Account, AccountDirectory, SessionResult
from .tokens import TokenIssuer

logger = logging.getLogger(__name__)


@dataclass
class LoginService:
    """Domain service for phone + password login."""

    accounts: AccountDirectory
    tokens: TokenIssuer

    def login(
        self, phone: str, password: str, client_ip: str, client_device: str
    ) -> SessionResult:
        """
        Authenticate and issue session tokens.

        Args:
            phone: Phone number (will be normalized)
            password: Plaintext password
            client_ip: Recorded in the login history
            client_device: Recorded in the login history (e.g. User-Agent)

        Returns:
            SessionResult with access token, refresh token and role

        Raises:
            InvalidCredentials: Unknown phone or wrong password (same error)
            AccountLocked: Directory reports the account as locked
        """
        phone = normalize_phone(phone)

        account = self.accounts.find_by_phone(phone)
        if account is None:
            # Unknown phones pay the same hashing cost as wrong passwords
            self.accounts.simulate_password_check(password)
            raise InvalidCredentials()

        if self.accounts.is_locked(account.id):
            logger.warning("Login rejected for locked account %s", account.id)
            raise AccountLocked()

        if not self.accounts.validate_password(account, password):
            self.accounts.record_login_attempt(account.id, client_ip, client_device, False)
            raise InvalidCredentials()

        self.accounts.record_login_attempt(account.id, client_ip, client_device, True)
        pair = self.tokens.issue(account.id, account.phone, account.role)
        logger.info("Login succeeded for account %s", account.id)

        return SessionResult(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            role=account.role,
        )

    def refresh_session(self, refresh_token: str) -> str:
        """
        Exchange a refresh token for a new access token.

        Raises:
            InvalidRefreshToken: Token is invalid, expired or not a refresh token
        """
        return self.tokens.refresh(refresh_token)

    def current_account(self, access_token: str) -> Account:
        """
        Resolve the account an access token was issued to.

        The token's phone claim is looked up and its "sub" must still name
        that account, so a token outlives neither its account nor a phone
        reassignment.

        Raises:
            InvalidAccessToken: Token invalid, expired, refresh-typed or stale
        """
        claims = self.tokens.authenticate(access_token)
        account = self.accounts.find_by_phone(claims["phone"])
        if account is None or account.id != claims["sub"]:
            raise InvalidAccessToken()
        return account
