"""
Outbound notifications.

Real e-mail/SMS delivery is not part of this service. Codes are handed to
this module, which records that a delivery was requested; the code itself is
never written to the log.
"""

import logging
from datetime import datetime

logger = logging.getLogger(__name__)


async def send_otp(email: str, code: str, expires_at: datetime) -> None:
    """Dispatch a one-time password to the user's e-mail address."""
    logger.info(
        "otp_issued",
        extra={
            "channel": "email",
            "recipient": email,
            "code_length": len(code),
            "expires_at": expires_at.isoformat(),
        },
    )
