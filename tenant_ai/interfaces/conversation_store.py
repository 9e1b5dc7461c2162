"""
Conversation Store - Persists per-user conversation state
"""

from datetime import timedelta
from typing import Dict, Optional

from loguru import logger

from ..config import settings
from ..schemas.assistant_schemas import Conversation
from .redis_client import RedisBackedStore


class ConversationStore(RedisBackedStore):
    """
    Loads and saves Conversation records

    Uses Redis with a TTL for stale conversations
    Falls back to in-memory storage if Redis unavailable
    """

    key_prefix = "conversation"

    def __init__(
        self,
        redis_url: Optional[str] = None,
        ttl_hours: int = settings.CONVERSATION_TTL_HOURS,
        enabled: Optional[bool] = None,
    ):
        super().__init__(redis_url=redis_url, enabled=enabled)
        self.ttl = timedelta(hours=ttl_hours)

        # Fallback in-memory storage (serialized, so callers never share instances)
        self.memory_store: Dict[str, str] = {}

    async def load(self, user_id: str) -> Conversation:
        """
        Get a user's conversation, creating a fresh one on first contact

        Args:
            user_id: User identifier

        Returns:
            Conversation (never None)
        """
        await self._ensure_connected()

        raw: Optional[str] = None
        try:
            if self.redis_client:
                raw = await self.redis_client.get(self._get_key(user_id))
            else:
                raw = self.memory_store.get(user_id)
        except Exception as e:
            logger.error(f"Error loading conversation for {user_id}: {e}")
            raw = self.memory_store.get(user_id)

        if raw is None:
            logger.debug(f"New conversation for {user_id}")
            return Conversation(user_id=user_id)
        return Conversation.model_validate_json(raw)

    async def save(self, conversation: Conversation):
        """
        Persist a conversation

        Args:
            conversation: Conversation to store
        """
        await self._ensure_connected()

        payload = conversation.model_dump_json()
        try:
            if self.redis_client:
                await self.redis_client.set(
                    self._get_key(conversation.user_id),
                    payload,
                    ex=int(self.ttl.total_seconds()),
                )
                logger.debug(f"Saved conversation to Redis: user={conversation.user_id}")
            else:
                self.memory_store[conversation.user_id] = payload
                logger.debug(f"Saved conversation to memory: user={conversation.user_id}")
        except Exception as e:
            logger.error(f"Error saving conversation: {e}")
            # Fallback to memory on error
            self.memory_store[conversation.user_id] = payload

    async def delete(self, user_id: str):
        await self._ensure_connected()
        try:
            if self.redis_client:
                await self.redis_client.delete(self._get_key(user_id))
        except Exception as e:
            logger.error(f"Error deleting conversation: {e}")
        self.memory_store.pop(user_id, None)
        logger.info(f"Cleared conversation: {user_id}")
