# readiness_auth/domain/models/user_domain_model.py

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC for naive values."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class PasswordHistoryEntry:
    """A previously used password hash."""
    password_hash: str
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, str]:
        return {
            "password_hash": self.password_hash,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PasswordHistoryEntry":
        created_at = data.get("created_at")
        return cls(
            password_hash=data["password_hash"],
            created_at=parse_datetime(created_at) if created_at else utcnow(),
        )


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class TokenPayload:
    """Claims carried by an access token."""
    user_id: str
    role: str
    session_id: str


@dataclass(frozen=True)
class RefreshTokenPayload(TokenPayload):
    """Claims carried by a refresh token."""
    token_id: str = ""


@dataclass
class RegistryEntry:
    """Server-side record proving a refresh token is still honored."""
    user_id: str
    role: str
    session_id: str
    expires_at: datetime
    created_at: datetime = field(default_factory=utcnow)
    last_used: datetime = field(default_factory=utcnow)
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at <= (now or utcnow())

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("expires_at", "created_at", "last_used"):
            data[key] = data[key].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistryEntry":
        return cls(
            user_id=str(data["user_id"]),
            role=data["role"],
            session_id=data["session_id"],
            expires_at=parse_datetime(data["expires_at"]),
            created_at=parse_datetime(data["created_at"]),
            last_used=parse_datetime(data["last_used"]),
            user_agent=data.get("user_agent"),
            ip_address=data.get("ip_address"),
        )


@dataclass(frozen=True)
class SessionInfo:
    """Displayable view of one active session."""
    session_id: str
    created_at: datetime
    last_used: datetime
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None


@dataclass(frozen=True)
class ExternalIdentity:
    """Identity asserted by an external provider (Google, Microsoft)."""
    subject: str
    email: str
    name: str = ""
    picture: str = ""
    email_verified: bool = False


@dataclass
class PasswordValidationResult:
    is_valid: bool
    errors: List[str]
    strength: str


@dataclass
class PasswordStrengthMeter:
    score: int
    feedback: List[str]
    strength: str
