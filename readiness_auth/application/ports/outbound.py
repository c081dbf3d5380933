# readiness_auth/application/ports/outbound.py

from abc import ABC, abstractmethod
from typing import List, Optional

from readiness_auth.domain.models.user_domain_model import ExternalIdentity


class IKeyValueStore(ABC):
    """Key/value store with per-key TTL and pattern-based key enumeration."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Get the value stored under key, or None."""
        pass

    @abstractmethod
    async def set(
            self,
            key: str,
            value: str,
            ttl_seconds: Optional[int] = None,
            only_if_exists: bool = False,
    ) -> bool:
        """Store a value, optionally expiring after ttl_seconds.

        With only_if_exists the write is skipped when the key is absent.
        Returns True when the value was written.
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> int:
        """Delete a key. Returns the number of keys removed."""
        pass

    @abstractmethod
    async def keys(self, pattern: str) -> List[str]:
        """List keys matching a glob-style pattern."""
        pass

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Set a new TTL on an existing key."""
        pass

    @abstractmethod
    async def get_and_delete(self, key: str) -> Optional[str]:
        """Atomically read and remove a key."""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check connectivity."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""
        pass


class IIdentityVerifier(ABC):
    """Validates ID tokens issued by an external identity provider."""

    provider: str

    @abstractmethod
    async def verify(self, credential: str) -> Optional[ExternalIdentity]:
        """Return the asserted identity, or None when the token is not valid."""
        pass


class IPasswordResetNotifier(ABC):
    """Delivers password reset links to users."""

    @abstractmethod
    async def send_password_reset(self, email: str, token: str, name: Optional[str] = None) -> bool:
        """Send the reset link. Returns False when delivery failed."""
        pass
