"""
Console SMS sender adapter - Implements SmsSender protocol.

This module provides a console-based implementation of the domain's
SMS port, logging outgoing messages instead of contacting a gateway.
Plaintext codes are masked unless reveal_codes is enabled, which is
meant for local development only.
"""

import logging

from phone_identity.domain.ports import CodePurpose

logger = logging.getLogger(__name__)

MESSAGE_TEMPLATES = {
    CodePurpose.REGISTRATION: "Your verification code is {code}. Do not share it with anyone.",
    CodePurpose.PASSWORD_RESET: "Your password reset code is {code}. If you did not request it, ignore this message.",
}


class ConsoleSmsSender:
    """
    Implements SmsSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, reveal_codes: bool = False) -> None:
        self._reveal_codes = reveal_codes

    def send_code(self, phone: str, code: str, purpose: CodePurpose) -> bool:
        """
        Log the rendered message (simulates SMS delivery).

        Args:
            phone: Recipient phone number (normalized by domain layer)
            code: Plaintext one-time code
            purpose: Selects the message template

        Returns:
            Always True - the console accepts every message
        """
        shown = code if self._reveal_codes else "*" * len(code)
        message = MESSAGE_TEMPLATES[purpose].format(code=shown)
        logger.info("[SMS] Phone: %s Purpose: %s Message: %s", phone, purpose.value, message)
        return True
