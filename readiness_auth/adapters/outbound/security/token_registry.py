# readiness_auth/adapters/outbound/security/token_registry.py

import json
import logging
from typing import List, Optional, Tuple

from readiness_auth.application.ports.outbound import IKeyValueStore
from readiness_auth.domain.models.user_domain_model import RegistryEntry, utcnow

logger = logging.getLogger(__name__)

KEY_PREFIX = "token:"


class TokenRegistry:
    """
    Server-side registry of live refresh tokens.

    One JSON document per refresh token, stored under ``token:<token_id>``
    with a TTL equal to the refresh lifetime. A refresh token whose entry is
    gone is no longer honored.
    """

    def __init__(self, store: IKeyValueStore):
        self.store = store

    @staticmethod
    def key_for(token_id: str) -> str:
        return f"{KEY_PREFIX}{token_id}"

    @staticmethod
    def _decode(token_id: str, raw: Optional[str]) -> Optional[RegistryEntry]:
        if raw is None:
            return None
        try:
            return RegistryEntry.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding corrupt registry entry %s", token_id)
            return None

    async def save(self, token_id: str, entry: RegistryEntry, ttl_seconds: int) -> None:
        await self.store.set(self.key_for(token_id), json.dumps(entry.to_dict()), ttl_seconds=ttl_seconds)

    async def get(self, token_id: str) -> Optional[RegistryEntry]:
        """
        Load the entry for a token id.

        Returns:
            The entry, or None when missing or unreadable (unreadable keys are removed)
        """
        key = self.key_for(token_id)
        raw = await self.store.get(key)
        entry = self._decode(token_id, raw)
        if raw is not None and entry is None:
            await self.store.delete(key)
        return entry

    async def touch(self, token_id: str, entry: RegistryEntry) -> None:
        """Persist an updated entry, keeping its remaining lifetime."""
        remaining = int((entry.expires_at - utcnow()).total_seconds())
        if remaining <= 0:
            await self.delete(token_id)
            return
        # Skip the write when the entry was revoked or consumed meanwhile
        await self.store.set(
            self.key_for(token_id), json.dumps(entry.to_dict()), ttl_seconds=remaining, only_if_exists=True
        )

    async def delete(self, token_id: str) -> None:
        await self.store.delete(self.key_for(token_id))

    async def take(self, token_id: str) -> Optional[RegistryEntry]:
        """Atomically read and remove an entry. Only one caller can win."""
        raw = await self.store.get_and_delete(self.key_for(token_id))
        return self._decode(token_id, raw)

    async def scan(self) -> List[Tuple[str, RegistryEntry]]:
        """Return every readable (token_id, entry) pair in the registry."""
        results = []
        for key in await self.store.keys(f"{KEY_PREFIX}*"):
            token_id = key[len(KEY_PREFIX):]
            entry = await self.get(token_id)
            if entry is not None:
                results.append((token_id, entry))
        return results
