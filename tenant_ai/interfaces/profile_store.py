"""
Profile Store - Persists learned preference profiles
"""

from typing import Dict, Optional

from loguru import logger

from ..schemas.assistant_schemas import PreferenceProfile
from .redis_client import RedisBackedStore


class ProfileStore(RedisBackedStore):
    """
    Loads and saves PreferenceProfile records per user

    Profiles are never expired: they decay, they are not deleted
    """

    key_prefix = "preference_profile"

    def __init__(self, redis_url: Optional[str] = None, enabled: Optional[bool] = None):
        super().__init__(redis_url=redis_url, enabled=enabled)
        self.memory_store: Dict[str, str] = {}

    async def load(self, user_id: str) -> Optional[PreferenceProfile]:
        """
        Get a user's profile

        Returns:
            PreferenceProfile, or None if the user has never interacted
        """
        await self._ensure_connected()

        raw: Optional[str] = None
        try:
            if self.redis_client:
                raw = await self.redis_client.get(self._get_key(user_id))
            else:
                raw = self.memory_store.get(user_id)
        except Exception as e:
            logger.error(f"Error loading profile for {user_id}: {e}")
            raw = self.memory_store.get(user_id)

        return PreferenceProfile.model_validate_json(raw) if raw is not None else None

    async def save(self, user_id: str, profile: PreferenceProfile):
        await self._ensure_connected()

        payload = profile.model_dump_json()
        try:
            if self.redis_client:
                await self.redis_client.set(self._get_key(user_id), payload)
            else:
                self.memory_store[user_id] = payload
            logger.debug(f"Saved profile for {user_id} ({self.backend})")
        except Exception as e:
            logger.error(f"Error saving profile: {e}")
            self.memory_store[user_id] = payload
