"""
Unit tests for free-text criteria extraction.
"""

import pytest

from tenant_ai.nlp.criteria_extractor import CriteriaExtractor, extract_criteria
from tenant_ai.nlp.vocabulary import MarketVocabulary, PriceHint


class TestCriteriaExtractor:

    @pytest.fixture
    def extractor(self):
        return CriteriaExtractor()

    def test_full_query(self, extractor):
        criteria = extractor.extract("2 bedroom apartment in Molyko under 80000")
        assert criteria.location == "molyko"
        assert criteria.price_max == 80000
        assert criteria.price_min is None
        assert criteria.bedrooms == 2
        assert criteria.property_type == "apartment"

    def test_around_sets_symmetric_band(self, extractor):
        criteria = extractor.extract("house in great soppo around 100k")
        assert criteria.location == "great soppo"
        assert criteria.property_type == "house"
        assert criteria.price_min == pytest.approx(80000)
        assert criteria.price_max == pytest.approx(120000)

    def test_direction_word_beats_around(self, extractor):
        criteria = extractor.extract("around 100k, under 90000")
        assert criteria.price_max == 90000
        assert criteria.price_min is None

    def test_between_with_commas_and_currency(self, extractor):
        criteria = extractor.extract("between 50,000 and 80,000 fcfa")
        assert (criteria.price_min, criteria.price_max) == (50000, 80000)

    def test_range_with_k_suffix(self, extractor):
        criteria = extractor.extract("studio 40k to 60k")
        assert (criteria.price_min, criteria.price_max) == (40000, 60000)

    def test_lower_bound(self, extractor):
        criteria = extractor.extract("apartment above 60k")
        assert criteria.price_min == 60000
        assert criteria.price_max is None

    def test_bare_currency_amount_is_a_ceiling(self, extractor):
        assert extractor.extract("room for 40000 fcfa").price_max == 40000

    def test_price_keyword_only_without_numbers(self, extractor):
        assert extractor.extract("cheap room").price_max == 50000
        assert extractor.extract("cheap room under 30000").price_max == 30000
        assert extractor.extract("luxury duplex").price_min == 300000

    @pytest.mark.parametrize("text,bedrooms", [
        ("3-bed house", 3),
        ("4 bedrooms please", 4),
        ("two bedroom flat", 2),
        ("self contain in molyko", 1),
    ])
    def test_bedrooms(self, extractor, text, bedrooms):
        assert extractor.extract(text).bedrooms == bedrooms

    def test_bedroom_count_is_not_a_price(self, extractor):
        criteria = extractor.extract("5 bedroom house")
        assert criteria.price_min is None and criteria.price_max is None

    def test_room_type_not_matched_inside_bedroom(self, extractor):
        assert extractor.extract("two bedroom flat").property_type == "apartment"

    def test_amenities_in_vocabulary_order(self, extractor):
        criteria = extractor.extract("studio with wifi and parking, wifi again")
        assert criteria.property_type == "studio"
        assert criteria.amenities == ["parking", "wifi"]

    @pytest.mark.parametrize("text", [None, "", "   ", "???"])
    def test_unparseable_input_is_unconstrained(self, extractor, text):
        assert extractor.extract(text).is_empty()

    def test_custom_market_vocabulary(self):
        vocabulary = MarketVocabulary(
            name="test",
            locations={"downtown": ["downtown", "cbd"]},
            price_keywords={"cheap": PriceHint(price_max=1000)},
        )
        criteria = CriteriaExtractor(vocabulary).extract("cheap flat in the cbd")
        assert criteria.location == "downtown"
        assert criteria.price_max == 1000
        assert criteria.property_type is None

    def test_search_terms(self, extractor):
        terms = extractor.extract_search_terms("2 bedroom apartment in molyko")
        assert "molyko" in terms
        assert "apartment" in terms
        assert "2bedroom" in terms
        assert "in" not in terms

    def test_suggestions(self, extractor):
        suggestions = extractor.suggest("mol")
        assert "Properties in Molyko" in suggestions
        assert len(extractor.suggest("")) <= 5

    def test_extract_criteria_drops_unconstrained_fields(self):
        assert extract_criteria("house in bonduma") == {
            "location": "bonduma",
            "property_type": "house",
            "amenities": [],
        }
