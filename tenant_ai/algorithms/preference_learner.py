"""
Preference Learning Algorithm
Folds one interaction into a user's PreferenceProfile and returns a new profile.

Steps per interaction:
1. Decay every score by 0.95 per full week since the last update (only after > 7 days)
2. Add the action weight to the property's location, type, amenities and price bucket
   (floored at 0)
3. Update the weighted average preferred price (positive weights only)
4. Rescale each score map so its maximum does not exceed the ceiling (100)

All functions are pure: the input profile is never mutated.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from ..config import settings
from ..schemas.assistant_schemas import (
    Interaction,
    InteractionAction,
    PreferenceProfile,
    PropertyCandidate,
)
from ..utils.time_utils import as_utc, days_between, utcnow


INTERACTION_WEIGHTS: Dict[InteractionAction, float] = {
    InteractionAction.VIEW: 1.0,
    InteractionAction.SAVE: 3.0,
    InteractionAction.BOOK: 5.0,
    InteractionAction.CONTACT: 4.0,
    InteractionAction.SHARE: 2.0,
    InteractionAction.SEARCH: 1.0,
    InteractionAction.SKIP: -1.0,
    InteractionAction.UNSAVE: -2.0,
}

# (exclusive upper bound, bucket name); anything above the last bound is very_high
PRICE_BUCKETS: List[Tuple[float, str]] = [
    (30000, "very_low"),
    (50000, "low"),
    (80000, "medium_low"),
    (120000, "medium"),
    (200000, "medium_high"),
    (300000, "high"),
]
TOP_PRICE_BUCKET = "very_high"

DECAY_PERIOD_DAYS = 7
PRICE_RANGE_BAND = 0.2

CATEGORIES = {
    "location": "location_scores",
    "property_type": "property_type_scores",
    "amenity": "amenity_scores",
    "price_range": "price_range_bucket_scores",
}


def price_bucket(price: float) -> str:
    for upper, name in PRICE_BUCKETS:
        if price < upper:
            return name
    return TOP_PRICE_BUCKET


def time_slot(moment: datetime) -> str:
    """morning 6-12, afternoon 12-17, evening 17-21, night otherwise"""
    hour = moment.hour
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


# ============================================
# Decay & Normalization
# ============================================

def decay_multiplier(days: float, factor: float = settings.PREFERENCE_DECAY_FACTOR) -> float:
    """factor ** floor(days / 7)"""
    if days <= 0:
        return 1.0
    return factor ** math.floor(days / DECAY_PERIOD_DAYS)


def apply_decay(
    profile: PreferenceProfile,
    days: float,
    factor: float = settings.PREFERENCE_DECAY_FACTOR,
) -> PreferenceProfile:
    """Scale every score in every map by the decay multiplier for `days`"""
    multiplier = decay_multiplier(days, factor)
    decayed = profile.model_copy(deep=True)
    if multiplier == 1.0:
        return decayed

    for attribute in CATEGORIES.values():
        scores = getattr(decayed, attribute)
        setattr(decayed, attribute, {key: value * multiplier for key, value in scores.items()})
    return decayed


def normalize(scores: Dict[str, float], ceiling: float = settings.PREFERENCE_SCORE_CEILING) -> Dict[str, float]:
    """Rescale so the maximum is at most the ceiling (scale = ceiling / max)"""
    if not scores:
        return {}
    highest = max(scores.values())
    if highest <= ceiling:
        return dict(scores)
    scale = ceiling / highest
    return {key: value * scale for key, value in scores.items()}


# ============================================
# Learning
# ============================================

def _bump(scores: Dict[str, float], key: Optional[str], weight: float):
    """Add weight to a key, floored at 0; never creates a key at 0"""
    if not key:
        return
    updated = max(0.0, scores.get(key, 0.0) + weight)
    if key in scores or updated > 0:
        scores[key] = updated


def learn(
    profile: Optional[PreferenceProfile],
    interaction: Interaction,
    candidate: Optional[PropertyCandidate] = None,
    now: Optional[datetime] = None,
) -> PreferenceProfile:
    """
    Fold one interaction into a profile.

    Args:
        profile: Current profile (None for a user with no history)
        interaction: The event to learn from
        candidate: The property the event refers to, when known
        now: Clock override; defaults to the current time

    Returns:
        A new PreferenceProfile
    """
    now = now or utcnow()
    current = profile or PreferenceProfile()

    elapsed = days_between(current.last_updated_at, now)
    if elapsed > DECAY_PERIOD_DAYS:
        updated = apply_decay(current, elapsed)
        logger.debug(f"Decayed profile of {interaction.user_id} after {elapsed:.1f} days")
    else:
        updated = current.model_copy(deep=True)

    weight = INTERACTION_WEIGHTS.get(interaction.action, 0.0)

    if candidate is not None:
        _bump(updated.location_scores, candidate.location, weight)
        _bump(updated.property_type_scores, candidate.property_type, weight)
        for amenity in candidate.amenities:
            _bump(updated.amenity_scores, amenity, weight)

        if candidate.price is not None and candidate.price > 0:
            _bump(updated.price_range_bucket_scores, price_bucket(candidate.price), weight)
            if weight > 0:
                total = updated.total_weighted_price_interactions + weight
                updated.average_preferred_price = (
                    updated.average_preferred_price * updated.total_weighted_price_interactions
                    + candidate.price * weight
                ) / total
                updated.total_weighted_price_interactions = total

    if interaction.action == InteractionAction.SEARCH:
        _learn_search_pattern(updated, interaction)

    for attribute in CATEGORIES.values():
        setattr(updated, attribute, normalize(getattr(updated, attribute)))

    updated.last_updated_at = now

    logger.info(
        f"Learned {interaction.action.value} (weight={weight:+.0f}) for {interaction.user_id}"
        + (f" on {candidate.id}" if candidate is not None else "")
    )
    return updated


def _learn_search_pattern(profile: PreferenceProfile, interaction: Interaction):
    patterns = profile.search_patterns

    method = interaction.search_method or "text"
    patterns.preferred_search_methods[method] = patterns.preferred_search_methods.get(method, 0) + 1

    for term in interaction.search_terms:
        term = term.lower().strip()
        if term:
            patterns.common_search_terms[term] = patterns.common_search_terms.get(term, 0) + 1

    slot = time_slot(as_utc(interaction.timestamp))
    patterns.search_time_patterns[slot] = patterns.search_time_patterns.get(slot, 0) + 1
    patterns.total_searches += 1


# ============================================
# Profile Queries
# ============================================

def top_preferences(profile: PreferenceProfile, category: str, limit: int = 5) -> List[Tuple[str, float]]:
    """Highest scoring keys of one category ('location', 'property_type', 'amenity', 'price_range')"""
    attribute = CATEGORIES.get(category)
    if attribute is None:
        logger.warning(f"Unknown preference category '{category}'")
        return []
    scores: Dict[str, float] = getattr(profile, attribute)
    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    return [(key, value) for key, value in ranked if value > 0][:limit]


def preferred_price_range(profile: PreferenceProfile) -> Optional[Tuple[float, float]]:
    """Average preferred price +/- 20%, or None without price history"""
    if profile.average_preferred_price <= 0:
        return None
    average = profile.average_preferred_price
    return average * (1 - PRICE_RANGE_BAND), average * (1 + PRICE_RANGE_BAND)


def summarize(profile: PreferenceProfile, limit: int = 3) -> Dict[str, Any]:
    patterns = profile.search_patterns
    favourite_method = max(patterns.preferred_search_methods.items(), key=lambda item: item[1], default=(None, 0))[0]
    favourite_slot = max(patterns.search_time_patterns.items(), key=lambda item: item[1], default=(None, 0))[0]

    return {
        "top_locations": [key for key, _ in top_preferences(profile, "location", limit)],
        "top_property_types": [key for key, _ in top_preferences(profile, "property_type", limit)],
        "top_amenities": [key for key, _ in top_preferences(profile, "amenity", limit)],
        "top_price_ranges": [key for key, _ in top_preferences(profile, "price_range", limit)],
        "price_range": preferred_price_range(profile),
        "total_searches": patterns.total_searches,
        "preferred_search_method": favourite_method,
        "preferred_search_time": favourite_slot,
        "last_updated_at": profile.last_updated_at.isoformat() if profile.last_updated_at else None,
    }


def reset_profile() -> PreferenceProfile:
    return PreferenceProfile()
