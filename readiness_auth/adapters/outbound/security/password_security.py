# readiness_auth/adapters/outbound/security/password_security.py

"""
Password hashing and password-history checks.

Hashing uses Argon2id through passlib. Hash and verify are CPU bound, so
the async wrappers run them in the thread pool.
"""

import logging
import secrets
import string
from datetime import datetime
from typing import List, Optional

from passlib.context import CryptContext
from starlette.concurrency import run_in_threadpool

from readiness_auth.adapters.configuration.config import Settings, settings as default_settings
from readiness_auth.domain.models.user_domain_model import (
    PasswordHistoryEntry,
    PasswordStrengthMeter,
    PasswordValidationResult,
)
from readiness_auth.domain.services.password_policy import PasswordPolicy

logger = logging.getLogger(__name__)

LOWERCASE = string.ascii_lowercase
UPPERCASE = string.ascii_uppercase
DIGITS = string.digits
SPECIAL = "!@#$%^&*"
ALPHABET = LOWERCASE + UPPERCASE + DIGITS + SPECIAL


def build_crypt_context(settings: Settings) -> CryptContext:
    return CryptContext(
        schemes=["argon2"],
        deprecated="auto",
        argon2__type="ID",
        argon2__memory_cost=settings.ARGON2_MEMORY_COST,
        argon2__time_cost=settings.ARGON2_TIME_COST,
        argon2__parallelism=settings.ARGON2_PARALLELISM,
        argon2__digest_size=32,
    )


class PasswordSecurityService:
    """
    Password hashing, verification, complexity scoring and reuse prevention.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.crypt_context = build_crypt_context(self.settings)
        self.history_limit = self.settings.PASSWORD_HISTORY_LIMIT
        self._dummy_hash: Optional[str] = None

    def hash_password_sync(self, password: str) -> str:
        return self.crypt_context.hash(password)

    def verify_password_sync(self, password: str, password_hash: Optional[str]) -> bool:
        if not password or not password_hash:
            return False
        try:
            return self.crypt_context.verify(password, password_hash)
        except (ValueError, TypeError):
            # Unknown or malformed hash
            logger.warning("Password verification failed on a malformed hash")
            return False

    async def hash_password(self, password: str) -> str:
        """Return an Argon2id hash of a plain text password (random salt per call)."""
        return await run_in_threadpool(self.hash_password_sync, password)

    async def verify_password(self, password: str, password_hash: Optional[str]) -> bool:
        """Verify a plain text password against a stored hash. Never raises on bad input."""
        return await run_in_threadpool(self.verify_password_sync, password, password_hash)

    async def verify_dummy_password(self, password: str) -> bool:
        """
        Spend one verification on a throwaway hash and return False.

        Used when the account does not exist, so that a failed login costs
        the same whether or not the email is registered.
        """
        if self._dummy_hash is None:
            self._dummy_hash = await self.hash_password(secrets.token_urlsafe(16))
        await self.verify_password(password or "x", self._dummy_hash)
        return False

    @staticmethod
    def validate_password_complexity(password: str) -> PasswordValidationResult:
        return PasswordPolicy.validate_complexity(password)

    @staticmethod
    def get_password_strength_meter(password: str) -> PasswordStrengthMeter:
        return PasswordPolicy.strength_meter(password)

    async def is_password_in_history(self, password: str, history: List[PasswordHistoryEntry]) -> bool:
        """
        Check a candidate password against every stored historical hash.

        Args:
            password: Candidate plain text password
            history: Password history, newest first

        Returns:
            True on the first matching entry, False otherwise
        """
        for entry in history[:self.history_limit]:
            if await self.verify_password(password, entry.password_hash):
                return True
        return False

    def add_password_to_history(
            self,
            password_hash: str,
            history: List[PasswordHistoryEntry],
    ) -> List[PasswordHistoryEntry]:
        return PasswordPolicy.add_to_history(password_hash, history, self.history_limit)

    def should_update_password(self, last_change: Optional[datetime]) -> bool:
        return PasswordPolicy.should_update(last_change, self.settings.PASSWORD_MAX_AGE_DAYS)

    @staticmethod
    def generate_secure_password(length: int = 16) -> str:
        """
        Generate a random password containing every character class.

        Used for federated accounts, whose stored password is never used to log in.
        """
        if length < 4:
            raise ValueError("Password length must be at least 4")

        chars = [
            secrets.choice(LOWERCASE),
            secrets.choice(UPPERCASE),
            secrets.choice(DIGITS),
            secrets.choice(SPECIAL),
        ]
        chars.extend(secrets.choice(ALPHABET) for _ in range(length - 4))
        secrets.SystemRandom().shuffle(chars)
        return "".join(chars)
