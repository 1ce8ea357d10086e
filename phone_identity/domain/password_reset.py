"""
Password reset domain service.

States: Requested -> OtpVerified -> Reset

The request step never reveals whether a phone number is registered:
it returns the same way for known and unknown numbers, and for unknown
numbers no code is generated and no SMS is sent.
"""

import logging
from dataclasses import dataclass

from .codes import CodeIssuer, CodeVerifier
from .exceptions import DeliveryFailed
from .phones import normalize_phone
from .ports import AccountDirectory, CodePurpose

logger = logging.getLogger(__name__)


@dataclass
class PasswordResetService:
    """Domain service for the forgot-password flow."""

    accounts: AccountDirectory
    issuer: CodeIssuer
    verifier: CodeVerifier

    def request_password_reset(self, phone: str) -> None:
        """
        Send a password reset code if the phone is registered.

        Always returns None. A delivery failure is logged but not raised,
        since raising it would only be possible for registered numbers.
        """
        phone = normalize_phone(phone)

        account = self.accounts.find_by_phone(phone)
        if account is None:
            logger.info("Password reset requested for unknown phone")
            return

        try:
            self.issuer.issue(phone, CodePurpose.PASSWORD_RESET)
        except DeliveryFailed:
            logger.warning("Password reset code delivery failed for %s", phone)

    def verify_reset_code(self, phone: str, code: str) -> None:
        """
        Verify a password reset code. Does not modify the account.

        Raises:
            CodeVerificationError: Any verifier failure, unchanged
        """
        phone = normalize_phone(phone)
        self.verifier.verify(phone, CodePurpose.PASSWORD_RESET, code)

    def reset_password(self, phone: str, new_password: str) -> None:
        """
        Replace the password after a recent successful verification.

        Raises:
            VerificationExpired: No verification within the grace window
        """
        phone = normalize_phone(phone)
        self.verifier.require_recent_verification(phone, CodePurpose.PASSWORD_RESET)

        self.accounts.update_password(phone, new_password)
        self.verifier.discard(phone, CodePurpose.PASSWORD_RESET)
        logger.info("Password reset completed for %s", phone)
