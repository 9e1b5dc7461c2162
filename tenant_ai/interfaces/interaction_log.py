"""
Interaction Log - Append-only record of user interactions
"""

from typing import Dict, List, Optional

from loguru import logger

from ..config import settings
from ..schemas.assistant_schemas import Interaction, InteractionAction
from .redis_client import RedisBackedStore


class InteractionLog(RedisBackedStore):
    """
    Records interactions per user, newest last

    Keeps at most `history_limit` entries per user
    """

    key_prefix = "interactions"

    def __init__(
        self,
        redis_url: Optional[str] = None,
        history_limit: int = settings.INTERACTION_HISTORY_LIMIT,
        enabled: Optional[bool] = None,
    ):
        super().__init__(redis_url=redis_url, enabled=enabled)
        self.history_limit = history_limit
        self.memory_store: Dict[str, List[Interaction]] = {}

    async def record(self, user_id: str, interaction: Interaction):
        """
        Append an interaction

        Args:
            user_id: User identifier
            interaction: Event to store
        """
        await self._ensure_connected()

        try:
            if self.redis_client:
                key = self._get_key(user_id)
                await self.redis_client.rpush(key, interaction.model_dump_json())
                await self.redis_client.ltrim(key, -self.history_limit, -1)
            else:
                self._record_in_memory(user_id, interaction)
            logger.debug(f"Recorded {interaction.action.value} for {user_id}")
        except Exception as e:
            logger.error(f"Error recording interaction: {e}")
            self._record_in_memory(user_id, interaction)

    def _record_in_memory(self, user_id: str, interaction: Interaction):
        entries = self.memory_store.setdefault(user_id, [])
        entries.append(interaction)
        if len(entries) > self.history_limit:
            del entries[: len(entries) - self.history_limit]

    async def history(
        self,
        user_id: str,
        actions: Optional[List[InteractionAction]] = None,
        limit: Optional[int] = None,
    ) -> List[Interaction]:
        """
        Get a user's interactions, oldest first

        Args:
            user_id: User identifier
            actions: Only these actions (all when None)
            limit: Only the most recent N after filtering

        Returns:
            List of Interaction
        """
        await self._ensure_connected()

        try:
            if self.redis_client:
                raw = await self.redis_client.lrange(self._get_key(user_id), 0, -1)
                entries = [Interaction.model_validate_json(item) for item in raw]
            else:
                entries = list(self.memory_store.get(user_id, []))
        except Exception as e:
            logger.error(f"Error getting interaction history: {e}")
            entries = list(self.memory_store.get(user_id, []))

        if actions:
            wanted = set(actions)
            entries = [entry for entry in entries if entry.action in wanted]
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    async def count(self, user_id: str) -> int:
        return len(await self.history(user_id))
