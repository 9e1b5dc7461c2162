"""
Unit tests for personalized recommendations and their fallback list.
"""

import asyncio
from datetime import timedelta

import pytest

from tenant_ai.agents.recommendation_engine import (
    RecommendationEngine,
    derive_implicit_target,
    implicit_window,
    interaction_frequency,
)
from tenant_ai.exceptions import CatalogUnavailableError
from tenant_ai.interfaces.catalog import InMemoryCatalog
from tenant_ai.interfaces.interaction_log import InteractionLog
from tenant_ai.schemas.assistant_schemas import Interaction, InteractionAction, PreferenceProfile


class FailingCatalog(InMemoryCatalog):
    async def query(self, criteria, limit):
        raise CatalogUnavailableError("search service down")


class SlowCatalog(InMemoryCatalog):
    async def query(self, criteria, limit):
        await asyncio.sleep(1)
        return await super().query(criteria, limit)


def _seen(user_id, property_id, when, action=InteractionAction.VIEW):
    return Interaction(user_id=user_id, action=action, property_id=property_id, timestamp=when)


@pytest.fixture
def interaction_log():
    return InteractionLog(enabled=False)


class TestBehaviourAnalysis:

    def test_window_is_distinct_recent_views_and_saves(self, now):
        interactions = [
            _seen("u", "a", now - timedelta(hours=5)),
            _seen("u", "b", now - timedelta(hours=4), InteractionAction.SAVE),
            _seen("u", "a", now - timedelta(hours=3)),
            _seen("u", "c", now - timedelta(hours=2), InteractionAction.SKIP),
            _seen("u", "d", now - timedelta(hours=1)),
        ]
        assert implicit_window(interactions) == ["d", "a", "b"]
        assert implicit_window(interactions, size=2) == ["d", "a"]

    def test_derived_target(self, sample_properties):
        target = derive_implicit_target(sample_properties[:2])

        assert target.locations == ["molyko"]
        assert target.property_types == ["apartment"]
        assert target.amenities == ["parking", "water"]
        assert target.average_price == pytest.approx(80000)
        assert target.price_min == pytest.approx(56000)
        assert target.price_max == pytest.approx(104000)

    def test_interaction_frequency(self, now):
        interactions = [_seen("u", f"p{i}", now - timedelta(days=2)) for i in range(10)]
        assert interaction_frequency(interactions, now) == pytest.approx(5)
        assert interaction_frequency([_seen("u", "p", now)], now) == 1
        assert interaction_frequency([], now) == 0


class TestRecommendationEngine:

    @pytest.mark.asyncio
    async def test_new_user_gets_featured_then_newest(self, catalog, interaction_log, now):
        engine = RecommendationEngine(catalog, interaction_log)

        results = await engine.recommend("u", None, limit=3, now=now)

        assert [item.property.id for item in results] == ["p3", "p4", "p1"]

    @pytest.mark.asyncio
    async def test_viewed_listings_drive_recommendations(self, catalog, interaction_log, now):
        await interaction_log.record("u", _seen("u", "p1", now - timedelta(hours=1)))
        engine = RecommendationEngine(catalog, interaction_log)

        results = await engine.recommend("u", None, limit=10, now=now)

        ids = [item.property.id for item in results]
        assert "p1" not in ids
        assert ids[:2] == ["p2", "p5"]
        assert results[0].score > results[-1].score

    @pytest.mark.asyncio
    async def test_near_miss_is_recommended_below_exact_match(self, property_factory, interaction_log, now):
        catalog = InMemoryCatalog([
            property_factory("seen", price=70000),
            property_factory("exact", price=75000),
            property_factory("near", price=85000),
        ])
        await interaction_log.record("u", _seen("u", "seen", now))
        engine = RecommendationEngine(catalog, interaction_log)

        results = await engine.recommend("u", None, now=now)

        assert [item.property.id for item in results] == ["exact", "near"]
        assert results[0].score > results[1].score

    @pytest.mark.asyncio
    async def test_profile_alone_is_enough_signal(self, catalog, interaction_log, now):
        profile = PreferenceProfile(location_scores={"great soppo": 10}, property_type_scores={"house": 5})
        engine = RecommendationEngine(catalog, interaction_log)

        results = await engine.recommend("u", profile, limit=1, now=now)

        assert results[0].property.id == "p3"

    @pytest.mark.asyncio
    async def test_results_are_diversified(self, property_factory, interaction_log, now):
        catalog = InMemoryCatalog(
            [property_factory(f"m{i}") for i in range(6)]
            + [property_factory("h1", location="bonduma", property_type="house")]
        )
        await interaction_log.record("u", _seen("u", "m0", now))
        engine = RecommendationEngine(catalog, interaction_log)

        results = await engine.recommend("u", None, now=now)

        locations = [item.property.location for item in results]
        assert locations.count("molyko") == 3
        assert "h1" in [item.property.id for item in results]

    @pytest.mark.asyncio
    async def test_catalog_error_falls_back(self, sample_properties, interaction_log, now):
        catalog = FailingCatalog(sample_properties, featured_ids=["p3"])
        await interaction_log.record("u", _seen("u", "p1", now))
        engine = RecommendationEngine(catalog, interaction_log)

        results = await engine.recommend("u", None, limit=2, now=now)

        assert [item.property.id for item in results] == ["p3", "p4"]

    @pytest.mark.asyncio
    async def test_catalog_timeout_falls_back(self, sample_properties, interaction_log, now):
        catalog = SlowCatalog(sample_properties, featured_ids=["p3"])
        await interaction_log.record("u", _seen("u", "p1", now))
        engine = RecommendationEngine(catalog, interaction_log, timeout=0.05)

        results = await engine.recommend("u", None, limit=2, now=now)

        assert [item.property.id for item in results] == ["p3", "p4"]

    @pytest.mark.asyncio
    async def test_empty_catalog_gives_empty_list(self, interaction_log, now):
        engine = RecommendationEngine(InMemoryCatalog(), interaction_log)
        assert await engine.recommend("u", None, now=now) == []

    @pytest.mark.asyncio
    async def test_similar_properties(self, catalog, interaction_log, sample_properties):
        engine = RecommendationEngine(catalog, interaction_log)

        similar = await engine.similar_properties(sample_properties[0])

        assert [candidate.id for candidate in similar] == ["p2", "p5"]
        assert await engine.similar_properties("missing") == []
