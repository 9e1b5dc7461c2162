"""
Ranking Algorithm
Scores rental listings against a target (search criteria and/or a learned profile)

Algorithm Components (each 0-100, then weighted):
1. Location (30%) - exact match 100, substring containment partial credit
2. Price (25%) - 100 at the preferred average, linear to 0 at the band edges
3. Property Type (20%) - 100 if preferred
4. Amenities (15%) - share of preferred amenities present

Bonuses on top of the weighted sum:
- Freshness: weights.freshness * 100 for listings created in the last 7 days
- Quality: verified +10, images +5, rating * 2

Total is unbounded above; only the relative order matters.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from loguru import logger

from ..schemas.assistant_schemas import (
    PreferenceProfile,
    PropertyCandidate,
    ScoredProperty,
    SearchCriteria,
)
from ..utils.time_utils import as_utc, utcnow


FRESHNESS_WINDOW = timedelta(days=7)
VERIFIED_BONUS = 10.0
IMAGES_BONUS = 5.0
RATING_MULTIPLIER = 2.0
PARTIAL_LOCATION_CREDIT = 75.0

MAX_PER_LOCATION = 3
MAX_PER_TYPE = 4
MAX_RECOMMENDATIONS = 20


@dataclass(frozen=True)
class ScoringWeights:
    """Component weights for the ranking score"""
    location: float = 0.30
    price: float = 0.25
    property_type: float = 0.20
    amenities: float = 0.15
    freshness: float = 0.05
    diversity: float = 0.05  # reserved, not applied to the score


def adjust_weights(
    interaction_frequency: float,
    saved_count: int,
    base: Optional[ScoringWeights] = None,
) -> ScoringWeights:
    """
    Personalize weights from behaviour.

    Args:
        interaction_frequency: Interactions per day
        saved_count: Number of saved properties

    Returns:
        New ScoringWeights (no weight goes below 0)
    """
    weights = base or ScoringWeights()

    if interaction_frequency > 2:
        weights = replace(
            weights,
            location=weights.location + 0.10,
            amenities=weights.amenities + 0.05,
            freshness=max(0.0, weights.freshness - 0.05),
        )

    if saved_count > 5:
        weights = replace(
            weights,
            amenities=weights.amenities + 0.10,
            property_type=weights.property_type + 0.05,
            diversity=max(0.0, weights.diversity - 0.05),
        )

    return weights


@dataclass
class RankingTarget:
    """
    What a listing is scored against.
    Empty lists / None bounds mean the component has no preference.
    """
    locations: List[str] = field(default_factory=list)
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    average_price: Optional[float] = None
    property_types: List[str] = field(default_factory=list)
    amenities: List[str] = field(default_factory=list)

    @classmethod
    def from_criteria(cls, criteria: SearchCriteria) -> "RankingTarget":
        price_min = criteria.price_min
        price_max = criteria.price_max
        average = None
        if price_max is not None:
            low = price_min if price_min is not None else 0.0
            average = (low + price_max) / 2
            price_min = low

        return cls(
            locations=[criteria.location] if criteria.location else [],
            price_min=price_min,
            price_max=price_max,
            average_price=average,
            property_types=[criteria.property_type] if criteria.property_type else [],
            amenities=list(criteria.amenities),
        )

    @classmethod
    def from_profile(
        cls,
        profile: PreferenceProfile,
        top_locations: int = 3,
        top_types: int = 2,
        top_amenities: int = 5,
    ) -> "RankingTarget":
        def top(scores: Dict[str, float], limit: int) -> List[str]:
            ranked = sorted(
                ((key, value) for key, value in scores.items() if value > 0),
                key=lambda item: item[1],
                reverse=True,
            )
            return [key for key, _ in ranked[:limit]]

        target = cls(
            locations=top(profile.location_scores, top_locations),
            property_types=top(profile.property_type_scores, top_types),
            amenities=top(profile.amenity_scores, top_amenities),
        )
        if profile.average_preferred_price > 0:
            average = profile.average_preferred_price
            target.price_min = average * 0.8
            target.price_max = average * 1.2
            target.average_price = average
        return target

    def merged(self, other: "RankingTarget") -> "RankingTarget":
        """Fill the components self leaves open from other"""
        has_price = self.price_min is not None or self.price_max is not None
        return RankingTarget(
            locations=list(self.locations or other.locations),
            price_min=self.price_min if has_price else other.price_min,
            price_max=self.price_max if has_price else other.price_max,
            average_price=self.average_price if has_price else other.average_price,
            property_types=list(self.property_types or other.property_types),
            amenities=list(self.amenities or other.amenities),
        )


# ============================================
# Component Scores (0-100)
# ============================================

def location_score(property_location: Optional[str], preferred: Iterable[str]) -> float:
    """100 on exact match, 75 * len(preferred)/len(location) when contained, else 0"""
    if not property_location:
        return 0.0

    best = 0.0
    for location in preferred:
        if not location:
            continue
        if property_location == location:
            return 100.0
        if location in property_location:
            best = max(best, PARTIAL_LOCATION_CREDIT * len(location) / len(property_location))
    return best


def price_score(price: Optional[float], target: RankingTarget) -> float:
    """Triangular score around the preferred average, zero outside the band"""
    if price is None:
        return 0.0
    if target.price_min is None and target.price_max is None:
        return 0.0

    if target.price_max is None:
        # Only a floor: anything at or above it fits
        return 100.0 if price >= target.price_min else 0.0

    low = target.price_min if target.price_min is not None else 0.0
    high = target.price_max
    average = target.average_price if target.average_price is not None else (low + high) / 2

    if price < low or price > high:
        return 0.0
    if price == average:
        return 100.0
    if price < average:
        span = average - low
        return 100.0 if span <= 0 else 100.0 * (price - low) / span
    span = high - average
    return 100.0 if span <= 0 else 100.0 * (high - price) / span


def property_type_score(property_type: Optional[str], preferred: Iterable[str]) -> float:
    return 100.0 if property_type and property_type in set(preferred) else 0.0


def amenity_score(amenities: Iterable[str], preferred: List[str]) -> float:
    if not preferred:
        return 0.0
    available = set(amenities)
    matching = sum(1 for amenity in preferred if amenity in available)
    return matching / len(preferred) * 100.0


def freshness_bonus(created_at: Optional[datetime], weights: ScoringWeights, now: datetime) -> float:
    if created_at is None:
        return 0.0
    if now - as_utc(created_at) < FRESHNESS_WINDOW:
        return weights.freshness * 100.0
    return 0.0


def quality_bonus(candidate: PropertyCandidate) -> float:
    bonus = 0.0
    if candidate.verified:
        bonus += VERIFIED_BONUS
    if candidate.has_images:
        bonus += IMAGES_BONUS
    if candidate.rating:
        bonus += candidate.rating * RATING_MULTIPLIER
    return bonus


# ============================================
# Ranking Engine
# ============================================

class RankingEngine:
    """Scores, sorts, filters and diversifies property candidates"""

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self.weights = weights or ScoringWeights()

    def score(
        self,
        candidate: PropertyCandidate,
        target: RankingTarget,
        weights: Optional[ScoringWeights] = None,
        now: Optional[datetime] = None,
    ) -> ScoredProperty:
        weights = weights or self.weights
        now = now or utcnow()

        components = {
            "location": location_score(candidate.location, target.locations),
            "price": price_score(candidate.price, target),
            "property_type": property_type_score(candidate.property_type, target.property_types),
            "amenities": amenity_score(candidate.amenities, target.amenities),
        }
        weighted = (
            weights.location * components["location"]
            + weights.price * components["price"]
            + weights.property_type * components["property_type"]
            + weights.amenities * components["amenities"]
        )
        freshness = freshness_bonus(candidate.created_at, weights, now)
        quality = quality_bonus(candidate)
        total = round(weighted + freshness + quality, 4)

        breakdown = dict(components, freshness=freshness, quality=quality)
        logger.debug(f"Scored {candidate.id}: total={total:.2f} {breakdown}")
        return ScoredProperty(property=candidate, score=total, breakdown=breakdown)

    def rank(
        self,
        candidates: Iterable[PropertyCandidate],
        target: RankingTarget,
        weights: Optional[ScoringWeights] = None,
        now: Optional[datetime] = None,
    ) -> List[ScoredProperty]:
        """Score and sort descending; equal scores keep catalog order"""
        now = now or utcnow()
        scored = [self.score(candidate, target, weights, now) for candidate in candidates]
        return sorted(scored, key=lambda item: item.score, reverse=True)

    @staticmethod
    def matches_criteria(candidate: PropertyCandidate, criteria: SearchCriteria) -> bool:
        """Hard filter for plain search: every set criterion must hold"""
        if criteria.location and (not candidate.location or criteria.location not in candidate.location):
            return False
        if criteria.price_min is not None and (candidate.price is None or candidate.price < criteria.price_min):
            return False
        if criteria.price_max is not None and (candidate.price is None or candidate.price > criteria.price_max):
            return False
        if criteria.bedrooms is not None and candidate.bedrooms != criteria.bedrooms:
            return False
        if criteria.property_type and candidate.property_type != criteria.property_type:
            return False
        if criteria.amenities and not set(criteria.amenities).issubset(candidate.amenities):
            return False
        return True

    def filter_by_criteria(
        self, candidates: Iterable[PropertyCandidate], criteria: SearchCriteria
    ) -> List[PropertyCandidate]:
        return [candidate for candidate in candidates if self.matches_criteria(candidate, criteria)]

    @staticmethod
    def diversity_filter(
        ranked: Iterable[ScoredProperty],
        max_per_location: int = MAX_PER_LOCATION,
        max_per_type: int = MAX_PER_TYPE,
        max_total: int = MAX_RECOMMENDATIONS,
    ) -> List[ScoredProperty]:
        """Admit in order while the location and type counts stay under their caps"""
        location_counts: Dict[Optional[str], int] = {}
        type_counts: Dict[Optional[str], int] = {}
        admitted: List[ScoredProperty] = []

        for item in ranked:
            if len(admitted) >= max_total:
                break
            location = item.property.location
            property_type = item.property.property_type
            if location_counts.get(location, 0) >= max_per_location:
                continue
            if type_counts.get(property_type, 0) >= max_per_type:
                continue
            admitted.append(item)
            location_counts[location] = location_counts.get(location, 0) + 1
            type_counts[property_type] = type_counts.get(property_type, 0) + 1

        return admitted


# ============================================
# Global Instance
# ============================================

ranking_engine = RankingEngine()
