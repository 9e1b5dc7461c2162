"""
Recommendation Engine
Personalized listings from what the user actually looked at.

Flow:
1. Implicit window: the 20 most recent distinct viewed/saved property ids
2. Fetch those listings; derive top locations, a price band, top types and amenities
3. Fill anything missing from the learned PreferenceProfile
4. Source candidates (one catalog query per preferred location + one open query)
5. Score, diversify, return the top N

Any gap (new user, empty catalog answer, catalog failure or timeout) returns
the fallback list instead: featured listings padded with the newest ones.
"""

import asyncio
from collections import Counter
from datetime import datetime
from typing import Awaitable, Iterable, List, Optional, Set, TypeVar, Union

from loguru import logger

from ..algorithms.ranking import RankingEngine, RankingTarget, adjust_weights, ranking_engine
from ..config import settings
from ..exceptions import CatalogUnavailableError
from ..interfaces.catalog import PropertyCatalog
from ..interfaces.interaction_log import InteractionLog
from ..schemas.assistant_schemas import (
    Interaction,
    InteractionAction,
    PreferenceProfile,
    PropertyCandidate,
    ScoredProperty,
    SearchCriteria,
)
from ..utils.time_utils import as_utc, days_between, utcnow

T = TypeVar("T")

WINDOW_ACTIONS = (InteractionAction.VIEW, InteractionAction.SAVE)
PRICE_BAND_LOW = 0.7
PRICE_BAND_HIGH = 1.3
SIMILAR_PRICE_BAND = 0.2


# ============================================
# Behaviour analysis
# ============================================

def implicit_window(interactions: Iterable[Interaction], size: int = settings.IMPLICIT_WINDOW_SIZE) -> List[str]:
    """Distinct viewed/saved property ids, most recent first"""
    ordered = sorted(
        (item for item in interactions if item.action in WINDOW_ACTIONS and item.property_id),
        key=lambda item: item.timestamp,
        reverse=True,
    )
    window: List[str] = []
    for item in ordered:
        if item.property_id not in window:
            window.append(item.property_id)
        if len(window) >= size:
            break
    return window


def derive_implicit_target(properties: List[PropertyCandidate]) -> RankingTarget:
    """Frequency-based target: top 3 locations, top 2 types, top 5 amenities, avg price +/- 30%"""
    target = RankingTarget()
    if not properties:
        return target

    locations = Counter(item.location for item in properties if item.location)
    types = Counter(item.property_type for item in properties if item.property_type)
    amenities = Counter(amenity for item in properties for amenity in item.amenities)
    target.locations = [key for key, _ in locations.most_common(3)]
    target.property_types = [key for key, _ in types.most_common(2)]
    target.amenities = [key for key, _ in amenities.most_common(5)]

    prices = [item.price for item in properties if item.price]
    if prices:
        average = sum(prices) / len(prices)
        target.average_price = average
        target.price_min = average * PRICE_BAND_LOW
        target.price_max = average * PRICE_BAND_HIGH
    return target


def interaction_frequency(interactions: List[Interaction], now: Optional[datetime] = None) -> float:
    """Interactions per day since the first one (a day at minimum)"""
    if not interactions:
        return 0.0
    first = min(as_utc(item.timestamp) for item in interactions)
    days = max(days_between(first, now or utcnow()), 1.0)
    return len(interactions) / days


class RecommendationEngine:
    """
    Builds personalized recommendation lists

    Never raises: catalog trouble degrades to the fallback list
    """

    def __init__(
        self,
        catalog: PropertyCatalog,
        interaction_log: InteractionLog,
        ranking: Optional[RankingEngine] = None,
        timeout: float = settings.CATALOG_TIMEOUT_SECONDS,
        candidate_limit: int = settings.RECOMMENDATION_CANDIDATE_LIMIT,
        window_size: int = settings.IMPLICIT_WINDOW_SIZE,
    ):
        self.catalog = catalog
        self.interaction_log = interaction_log
        self.ranking = ranking or ranking_engine
        self.timeout = timeout
        self.candidate_limit = candidate_limit
        self.window_size = window_size

    async def _timed(self, call: Awaitable[T]) -> T:
        return await asyncio.wait_for(call, timeout=self.timeout)

    async def recommend(
        self,
        user_id: str,
        profile: Optional[PreferenceProfile] = None,
        limit: int = settings.DEFAULT_RECOMMENDATIONS,
        now: Optional[datetime] = None,
    ) -> List[ScoredProperty]:
        """
        Personalized recommendations

        Args:
            user_id: User identifier
            profile: Learned profile (None for users without one)
            limit: Maximum number of results
            now: Clock override for tests

        Returns:
            Diversified, score-sorted list (fallback list when there is no signal)
        """
        now = now or utcnow()

        try:
            interactions = await self.interaction_log.history(user_id)
        except Exception as e:
            logger.error(f"Could not read interactions for {user_id}: {e}")
            interactions = []

        window = implicit_window(interactions, self.window_size)
        has_profile = profile is not None and profile.has_signal()
        if not window and not has_profile:
            logger.info(f"No implicit signal for {user_id}, using fallback recommendations")
            return await self.fallback(limit)

        try:
            viewed = await self._timed(self.catalog.get_properties(window))
            target = derive_implicit_target(viewed)
            if profile is not None:
                target = target.merged(RankingTarget.from_profile(profile))
            candidates = await self._source_candidates(target, exclude=set(window))
        except (CatalogUnavailableError, asyncio.TimeoutError) as e:
            logger.warning(f"Catalog unavailable while recommending for {user_id}: {e!r}")
            return await self.fallback(limit)

        if not candidates:
            logger.info(f"No candidates for {user_id}, using fallback recommendations")
            return await self.fallback(limit)

        saved_count = len({
            item.property_id for item in interactions
            if item.action == InteractionAction.SAVE and item.property_id
        })
        weights = adjust_weights(interaction_frequency(interactions, now), saved_count)

        ranked = self.ranking.rank(candidates, target, weights, now)
        diversified = self.ranking.diversity_filter(ranked)

        logger.info(
            f"Recommendations for {user_id}: {len(candidates)} candidates, "
            f"{len(diversified)} after diversity, returning {min(limit, len(diversified))}"
        )
        return diversified[:limit]

    async def _source_candidates(self, target: RankingTarget, exclude: Set[str]) -> List[PropertyCandidate]:
        """One query per preferred location plus one open query, deduplicated, seen ids removed"""
        queries = [SearchCriteria(location=location) for location in target.locations]
        queries.append(SearchCriteria())

        batches = await self._timed(asyncio.gather(
            *(self.catalog.query(criteria, self.candidate_limit) for criteria in queries)
        ))

        candidates: List[PropertyCandidate] = []
        seen: Set[str] = set(exclude)
        for batch in batches:
            for candidate in batch:
                if candidate.id in seen:
                    continue
                seen.add(candidate.id)
                candidates.append(candidate)
                if len(candidates) >= self.candidate_limit:
                    return candidates
        return candidates

    async def fallback(self, limit: int = settings.DEFAULT_RECOMMENDATIONS) -> List[ScoredProperty]:
        """Featured listings first, padded with the most recently created ones"""
        results: List[PropertyCandidate] = []
        seen: Set[str] = set()

        for source in (self.catalog.featured, self.catalog.recent):
            if len(results) >= limit:
                break
            try:
                batch = await self._timed(source(limit))
            except (CatalogUnavailableError, asyncio.TimeoutError) as e:
                logger.error(f"Fallback source {source.__name__} failed: {e!r}")
                continue
            for candidate in batch:
                if candidate.id not in seen and len(results) < limit:
                    seen.add(candidate.id)
                    results.append(candidate)

        return [ScoredProperty(property=candidate, score=0.0, breakdown={}) for candidate in results]

    async def similar_properties(
        self,
        reference: Union[PropertyCandidate, str],
        limit: int = 5,
    ) -> List[PropertyCandidate]:
        """
        Listings like the reference: same type, price within 20%, bedrooms within 1
        """
        try:
            if isinstance(reference, str):
                reference = await self._timed(self.catalog.get_property(reference))
                if reference is None:
                    return []
            criteria = SearchCriteria(property_type=reference.property_type)
            candidates = await self._timed(self.catalog.query(criteria, self.candidate_limit))
        except (CatalogUnavailableError, asyncio.TimeoutError) as e:
            logger.warning(f"Catalog unavailable for similar properties: {e!r}")
            return []

        similar = []
        for candidate in candidates:
            if candidate.id == reference.id:
                continue
            if reference.price and candidate.price is not None:
                if abs(candidate.price - reference.price) > reference.price * SIMILAR_PRICE_BAND:
                    continue
            if reference.bedrooms is not None and candidate.bedrooms is not None:
                if abs(candidate.bedrooms - reference.bedrooms) > 1:
                    continue
            similar.append(candidate)
            if len(similar) >= limit:
                break
        return similar
