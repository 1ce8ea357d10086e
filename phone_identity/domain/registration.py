"""
Registration domain service - phone verified account creation.

Registration State Machine
==========================

States:
- Unregistered: no account, or an account without a password
- OtpPending: unverified account exists, registration code issued
- OtpVerified: registration code consumed, phone marked verified
- Completed: password set, session tokens issued, codes cleaned up

Transitions:
    Unregistered -> OtpPending   begin_registration(phone, full_name)
    OtpPending   -> OtpVerified  verify_registration_code(phone, code)
    OtpVerified  -> Completed    complete_registration(phone, password, email)

begin_registration may be called again from any non-completed state; the
new code supersedes every older one for the same phone. There is no
explicit cancel: an abandoned code simply expires.

complete_registration is only accepted within the grace window after
verification, measured from the used code record, so no session state is
held between calls.
"""

import logging
from dataclasses import dataclass

from .codes import CodeIssuer, CodeVerifier, IssueResult
from .exceptions import AccountAlreadyExists
from .phones import normalize_phone
from .ports import AccountDirectory, CodePurpose, SessionResult
from .tokens import TokenIssuer

logger = logging.getLogger(__name__)


@dataclass
class RegistrationService:
    """
    Domain service for three-step phone registration.

    Orchestrates the account directory, the one-time code primitives
    and the token issuer.
    """

    accounts: AccountDirectory
    issuer: CodeIssuer
    verifier: CodeVerifier
    tokens: TokenIssuer

    def begin_registration(self, phone: str, full_name: str) -> IssueResult:
        """
        Step 1: create an unverified account and send a registration code.

        Args:
            phone: Phone number (will be normalized)
            full_name: Display name for the new account

        Returns:
            IssueResult with the code expiry

        Raises:
            AccountAlreadyExists: Phone belongs to an account with a password
            DeliveryFailed: SMS could not be sent; safe to call again
        """
        phone = normalize_phone(phone)

        account_id = self.accounts.create_unverified_account(phone, full_name.strip())
        if account_id is None:
            raise AccountAlreadyExists()

        logger.info("Registration started for %s (account %s)", phone, account_id)
        return self.issuer.issue(phone, CodePurpose.REGISTRATION)

    def verify_registration_code(self, phone: str, code: str) -> None:
        """
        Step 2: verify the code and mark the phone as verified.

        Raises:
            CodeVerificationError: Any verifier failure, unchanged
        """
        phone = normalize_phone(phone)
        self.verifier.verify(phone, CodePurpose.REGISTRATION, code)
        self.accounts.mark_phone_verified_and_create_profile(phone)
        logger.info("Phone verified for %s", phone)

    def complete_registration(
        self, phone: str, password: str, email: str | None = None
    ) -> SessionResult:
        """
        Step 3: set the password and issue session tokens.

        Args:
            phone: Phone number (will be normalized)
            password: Plaintext password, hashed by the account directory
            email: Optional contact email

        Returns:
            SessionResult with access token, refresh token and role

        Raises:
            VerificationExpired: No verification within the grace window
        """
        phone = normalize_phone(phone)
        self.verifier.require_recent_verification(phone, CodePurpose.REGISTRATION)

        account = self.accounts.set_password(phone, password, email)
        pair = self.tokens.issue(account.id, account.phone, account.role)

        self.verifier.discard(phone, CodePurpose.REGISTRATION)
        logger.info("Registration completed for %s (account %s)", phone, account.id)

        return SessionResult(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            role=account.role,
        )
