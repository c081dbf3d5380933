# readiness_auth/adapters/outbound/notifications/reset_notifier.py

import logging
from typing import Optional

from readiness_auth.application.ports.outbound import IPasswordResetNotifier

logger = logging.getLogger(__name__)


class LoggingPasswordResetNotifier(IPasswordResetNotifier):
    """
    Default notifier: records that a reset link was issued.

    Email delivery is handled by a separate service; replace this adapter
    with one that calls it. The token itself is never written to the log.
    """

    async def send_password_reset(self, email: str, token: str, name: Optional[str] = None) -> bool:
        logger.info("Password reset link issued for %s", email)
        return True
