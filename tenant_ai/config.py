"""
Tenant AI Configuration
Loads settings from environment variables
"""

import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment"""

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Redis Configuration (conversations, profiles, interaction log)
    REDIS_ENABLED: bool = _env_bool("REDIS_ENABLED", "false")
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_PASSWORD: Optional[str] = os.getenv("REDIS_PASSWORD") or None
    CONVERSATION_TTL_HOURS: int = int(os.getenv("CONVERSATION_TTL_HOURS", "720"))
    INTERACTION_HISTORY_LIMIT: int = int(os.getenv("INTERACTION_HISTORY_LIMIT", "500"))

    # Property catalog (external search service)
    CATALOG_BASE_URL: str = os.getenv("CATALOG_BASE_URL", "http://search-service:3003/api/v1")
    CATALOG_TIMEOUT_SECONDS: float = float(os.getenv("CATALOG_TIMEOUT_SECONDS", "5"))
    SEARCH_RESULT_LIMIT: int = int(os.getenv("SEARCH_RESULT_LIMIT", "20"))
    RESULTS_PAGE_SIZE: int = int(os.getenv("RESULTS_PAGE_SIZE", "5"))

    # Recommendations
    DEFAULT_RECOMMENDATIONS: int = int(os.getenv("DEFAULT_RECOMMENDATIONS", "10"))
    RECOMMENDATION_CANDIDATE_LIMIT: int = int(os.getenv("RECOMMENDATION_CANDIDATE_LIMIT", "50"))
    IMPLICIT_WINDOW_SIZE: int = int(os.getenv("IMPLICIT_WINDOW_SIZE", "20"))

    # Conversation flows
    CONTEXT_RETENTION_HOURS: int = int(os.getenv("CONTEXT_RETENTION_HOURS", "24"))

    # Preference learning
    PREFERENCE_DECAY_FACTOR: float = float(os.getenv("PREFERENCE_DECAY_FACTOR", "0.95"))
    PREFERENCE_SCORE_CEILING: float = float(os.getenv("PREFERENCE_SCORE_CEILING", "100"))

    @property
    def redis_url(self) -> str:
        """Get Redis connection URL"""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


# Global settings instance
settings = Settings()
