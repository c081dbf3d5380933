# readiness_auth/shared/utils/input_validation.py

import re
from typing import Optional, Tuple


class InputValidator:
    """
    Validation and sanitization of user input, complementing Pydantic.
    """

    MAX_NAME_LENGTH = 100
    MAX_EMAIL_LENGTH = 255

    # Letters (accented included), digits, spaces, hyphens, apostrophes and dots
    NAME_PATTERN = re.compile(r"^[A-Za-zÀ-ÖØ-öø-ÿ0-9\s\-'\.]+$")
    EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
    # Characters with no business in a name or email
    DANGEROUS_CHARS = re.compile(r'[<>";%{}\[\]]')

    @classmethod
    def validate_name(cls, name: str) -> Tuple[bool, Optional[str]]:
        """
        Validate a display name.

        Returns:
            Tuple (valid, error_message)
        """
        if not name or not name.strip():
            return False, "Name cannot be empty"

        if len(name) > cls.MAX_NAME_LENGTH:
            return False, f"Name is too long (maximum {cls.MAX_NAME_LENGTH} characters)"

        if cls.DANGEROUS_CHARS.search(name):
            return False, "Name contains characters that are not allowed"

        if not cls.NAME_PATTERN.match(name):
            return False, "Name contains invalid characters"

        return True, None

    @classmethod
    def sanitize_name(cls, name: str) -> str:
        """Collapse whitespace and trim to the maximum length."""
        return re.sub(r"\s+", " ", name.strip())[:cls.MAX_NAME_LENGTH]

    @classmethod
    def validate_email(cls, email: str) -> Tuple[bool, Optional[str]]:
        if len(email) > cls.MAX_EMAIL_LENGTH:
            return False, f"Email is too long (maximum {cls.MAX_EMAIL_LENGTH} characters)"

        if cls.DANGEROUS_CHARS.search(email) or not cls.EMAIL_PATTERN.match(email):
            return False, "Invalid email format"

        return True, None
