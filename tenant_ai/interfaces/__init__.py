"""
Interfaces Module
Persistence stores and the property catalog
"""

from .catalog import HttpCatalog, InMemoryCatalog, PropertyCatalog
from .conversation_store import ConversationStore
from .interaction_log import InteractionLog
from .profile_store import ProfileStore

__all__ = [
    "PropertyCatalog",
    "InMemoryCatalog",
    "HttpCatalog",
    "ConversationStore",
    "InteractionLog",
    "ProfileStore",
]
