"""
Algorithms Module
Ranking and preference learning
"""

from .ranking import (
    RankingEngine,
    RankingTarget,
    ScoringWeights,
    adjust_weights,
    ranking_engine,
)
from .preference_learner import (
    INTERACTION_WEIGHTS,
    apply_decay,
    learn,
    normalize,
    preferred_price_range,
    price_bucket,
    reset_profile,
    summarize,
    top_preferences,
)

__all__ = [
    "RankingEngine",
    "RankingTarget",
    "ScoringWeights",
    "adjust_weights",
    "ranking_engine",
    "INTERACTION_WEIGHTS",
    "apply_decay",
    "learn",
    "normalize",
    "preferred_price_range",
    "price_bucket",
    "reset_profile",
    "summarize",
    "top_preferences",
]
