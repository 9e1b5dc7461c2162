"""
Unit tests for listing ranking, hard filtering and the diversity filter.
"""

from datetime import timedelta

import pytest

from tenant_ai.algorithms.ranking import (
    RankingEngine,
    RankingTarget,
    ScoringWeights,
    adjust_weights,
    location_score,
    price_score,
)
from tenant_ai.schemas.assistant_schemas import PreferenceProfile, SearchCriteria


class TestComponentScores:

    def test_location_exact_partial_and_miss(self):
        assert location_score("molyko", ["molyko"]) == 100
        assert location_score("molyko central", ["molyko"]) == pytest.approx(75 * 6 / 14)
        assert location_score("bokwango", ["molyko"]) == 0
        assert location_score(None, ["molyko"]) == 0

    def test_price_peaks_at_average_and_drops_to_zero_at_edges(self):
        target = RankingTarget.from_criteria(SearchCriteria(price_max=80000))
        assert price_score(40000, target) == 100
        assert price_score(60000, target) == pytest.approx(50)
        assert price_score(80000, target) == 0
        assert price_score(85000, target) == 0

    def test_price_with_only_a_floor(self):
        target = RankingTarget.from_criteria(SearchCriteria(price_min=50000))
        assert price_score(60000, target) == 100
        assert price_score(40000, target) == 0

    def test_price_without_preference_scores_zero(self):
        assert price_score(50000, RankingTarget()) == 0


class TestRankingEngine:

    @pytest.fixture
    def engine(self):
        return RankingEngine()

    def test_more_matching_amenities_never_score_lower(self, engine, property_factory, now):
        target = RankingTarget(amenities=["parking", "wifi", "water"])
        scores = [
            engine.score(property_factory("p", amenities=amenities), target, now=now).score
            for amenities in ([], ["parking"], ["parking", "wifi"], ["parking", "wifi", "water"])
        ]
        assert scores == sorted(scores)
        assert scores[0] < scores[-1]

    def test_breakdown_and_weighted_total(self, engine, property_factory, now):
        candidate = property_factory("p", location="molyko", property_type="apartment", price=40000,
                                     amenities=["parking"])
        target = RankingTarget.from_criteria(SearchCriteria(
            location="molyko", property_type="apartment", price_max=80000, amenities=["parking", "wifi"],
        ))

        scored = engine.score(candidate, target, now=now)

        assert scored.breakdown["location"] == 100
        assert scored.breakdown["price"] == 100
        assert scored.breakdown["property_type"] == 100
        assert scored.breakdown["amenities"] == 50
        assert scored.score == pytest.approx(0.30 * 100 + 0.25 * 100 + 0.20 * 100 + 0.15 * 50)

    def test_freshness_and_quality_bonuses(self, engine, property_factory, now):
        fresh = property_factory("fresh", created_at=now - timedelta(days=2))
        polished = property_factory("polished", verified=True, has_images=True, rating=4)

        assert engine.score(fresh, RankingTarget(), now=now).score == pytest.approx(5)
        assert engine.score(polished, RankingTarget(), now=now).score == pytest.approx(10 + 5 + 8)

    def test_rank_is_descending_and_stable(self, engine, property_factory, now):
        candidates = [
            property_factory("a", location="bokwango"),
            property_factory("b", location="molyko"),
            property_factory("c", location="bokwango"),
            property_factory("d", location="bokwango"),
        ]

        ranked = engine.rank(candidates, RankingTarget(locations=["molyko"]), now=now)

        assert [item.property.id for item in ranked] == ["b", "a", "c", "d"]

    def test_hard_filter_rejects_near_miss(self, engine, sample_properties):
        criteria = SearchCriteria(bedrooms=2, location="molyko", price_max=80000)

        matches = engine.filter_by_criteria(sample_properties, criteria)

        assert [candidate.id for candidate in matches] == ["p1"]

    def test_hard_filter_requires_all_amenities(self, engine, property_factory):
        candidate = property_factory("p", amenities=["parking"])
        assert engine.matches_criteria(candidate, SearchCriteria(amenities=["parking"]))
        assert not engine.matches_criteria(candidate, SearchCriteria(amenities=["parking", "wifi"]))

    def test_diversity_caps(self, engine, property_factory, now):
        candidates = (
            [property_factory(f"m{i}", location="molyko", property_type="apartment") for i in range(6)]
            + [property_factory(f"s{i}", location="great soppo", property_type="apartment") for i in range(3)]
            + [property_factory(f"b{i}", location="bokwango", property_type="house") for i in range(3)]
        )
        ranked = engine.rank(candidates, RankingTarget(), now=now)

        admitted = engine.diversity_filter(ranked)

        ids = [item.property.id for item in admitted]
        assert ids == ["m0", "m1", "m2", "s0", "b0", "b1", "b2"]
        locations = [item.property.location for item in admitted]
        types = [item.property.property_type for item in admitted]
        assert max(locations.count(location) for location in set(locations)) <= 3
        assert types.count("apartment") <= 4

    def test_diversity_total_cap(self, engine, property_factory, now):
        candidates = [
            property_factory(f"p{i}", location=f"area {i}", property_type=f"type {i}") for i in range(30)
        ]
        ranked = engine.rank(candidates, RankingTarget(), now=now)
        assert len(engine.diversity_filter(ranked)) == 20


class TestWeightsAndTargets:

    def test_default_weights(self):
        weights = ScoringWeights()
        assert (weights.location, weights.price, weights.property_type) == (0.30, 0.25, 0.20)
        assert (weights.amenities, weights.freshness, weights.diversity) == (0.15, 0.05, 0.05)

    def test_active_user_shifts_towards_location(self):
        weights = adjust_weights(interaction_frequency=3, saved_count=0)
        assert weights.location == pytest.approx(0.40)
        assert weights.amenities == pytest.approx(0.20)
        assert weights.freshness == pytest.approx(0.0)

    def test_saver_shifts_towards_amenities_and_type(self):
        weights = adjust_weights(interaction_frequency=0, saved_count=6)
        assert weights.amenities == pytest.approx(0.25)
        assert weights.property_type == pytest.approx(0.25)
        assert weights.diversity == pytest.approx(0.0)

    def test_quiet_user_keeps_defaults(self):
        assert adjust_weights(interaction_frequency=2, saved_count=5) == ScoringWeights()

    def test_target_from_profile(self):
        profile = PreferenceProfile(
            location_scores={"molyko": 10, "bonduma": 3, "bokwango": 0},
            property_type_scores={"apartment": 4},
            amenity_scores={"parking": 2},
            average_preferred_price=100000,
        )

        target = RankingTarget.from_profile(profile)

        assert target.locations == ["molyko", "bonduma"]
        assert target.property_types == ["apartment"]
        assert target.price_min == pytest.approx(80000)
        assert target.price_max == pytest.approx(120000)

    def test_merged_fills_only_gaps(self):
        from_criteria = RankingTarget.from_criteria(SearchCriteria(location="molyko"))
        from_profile = RankingTarget(locations=["bonduma"], property_types=["house"], price_max=90000)

        merged = from_criteria.merged(from_profile)

        assert merged.locations == ["molyko"]
        assert merged.property_types == ["house"]
        assert merged.price_max == 90000
