# readiness_auth/domain/services/password_policy.py

import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from readiness_auth.domain.models.user_domain_model import (
    PasswordHistoryEntry,
    PasswordStrengthMeter,
    PasswordValidationResult,
    utcnow,
)

MIN_LENGTH = 8
MAX_LENGTH = 128

LOWERCASE = re.compile(r"[a-z]")
UPPERCASE = re.compile(r"[A-Z]")
DIGIT = re.compile(r"[0-9]")
SPECIAL = re.compile(r"[^a-zA-Z0-9]")

COMMON_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"123456",
        r"password",
        r"qwerty",
        r"abc123",
        r"admin",
        r"letmein",
        r"welcome",
        r"monkey",
        r"dragon",
        r"master",
    )
]


class PasswordPolicy:
    """
    Domain rules for passwords.

    Everything here is pure and deterministic; hashing lives in the
    security adapter (PasswordSecurityService).
    """

    @staticmethod
    def has_common_pattern(password: str) -> bool:
        return any(pattern.search(password) for pattern in COMMON_PATTERNS)

    @classmethod
    def complexity_errors(cls, password: str) -> List[str]:
        """
        Return every complexity rule the password violates.

        Args:
            password: Candidate plaintext password

        Returns:
            List of human readable messages, empty when the password is acceptable
        """
        errors = []
        if len(password) < MIN_LENGTH:
            errors.append(f"Password must be at least {MIN_LENGTH} characters long")
        if len(password) > MAX_LENGTH:
            errors.append(f"Password must be no more than {MAX_LENGTH} characters long")
        if not LOWERCASE.search(password):
            errors.append("Password must contain at least one lowercase letter")
        if not UPPERCASE.search(password):
            errors.append("Password must contain at least one uppercase letter")
        if not DIGIT.search(password):
            errors.append("Password must contain at least one number")
        if not SPECIAL.search(password):
            errors.append("Password must contain at least one special character")
        if cls.has_common_pattern(password):
            errors.append("Password contains common patterns and is not secure")
        return errors

    @staticmethod
    def _strength_for(score: int) -> str:
        if score >= 6:
            return "strong"
        if score >= 4:
            return "medium"
        return "weak"

    @classmethod
    def validate_complexity(cls, password: str) -> PasswordValidationResult:
        errors = cls.complexity_errors(password)
        if errors:
            return PasswordValidationResult(is_valid=False, errors=errors, strength="weak")

        score = 0
        # Length
        score += sum(1 for threshold in (8, 12, 16) if len(password) >= threshold)
        # Character variety
        score += sum(
            1 for pattern in (LOWERCASE, UPPERCASE, DIGIT, SPECIAL) if pattern.search(password)
        )
        return PasswordValidationResult(is_valid=True, errors=[], strength=cls._strength_for(score))

    @classmethod
    def strength_meter(cls, password: str) -> PasswordStrengthMeter:
        """Score and feedback for a UI strength meter."""
        score = 0
        feedback = []

        if len(password) < MIN_LENGTH:
            feedback.append(f"Use at least {MIN_LENGTH} characters")
        elif len(password) >= 12:
            score += 2
        else:
            score += 1

        for pattern, hint in (
                (LOWERCASE, "Add lowercase letters"),
                (UPPERCASE, "Add uppercase letters"),
                (DIGIT, "Add numbers"),
                (SPECIAL, "Add special characters"),
        ):
            if pattern.search(password):
                score += 1
            else:
                feedback.append(hint)

        if cls.has_common_pattern(password):
            feedback.append("Avoid common patterns")
        else:
            score += 1

        return PasswordStrengthMeter(
            score=min(score, 8),
            feedback=feedback or ["Strong password!"],
            strength=cls._strength_for(score),
        )

    @staticmethod
    def add_to_history(
            password_hash: str,
            history: List[PasswordHistoryEntry],
            limit: int,
    ) -> List[PasswordHistoryEntry]:
        """Prepend a hash and keep only the newest `limit` entries."""
        return [PasswordHistoryEntry(password_hash=password_hash), *history][:limit]

    @staticmethod
    def should_update(last_change: Optional[datetime], max_age_days: int) -> bool:
        if last_change is None:
            return True
        if last_change.tzinfo is None:
            last_change = last_change.replace(tzinfo=timezone.utc)
        return last_change < utcnow() - timedelta(days=max_age_days)
