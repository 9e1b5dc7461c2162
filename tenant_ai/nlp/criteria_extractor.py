# nlp/criteria_extractor.py
"""
Criteria Extractor for property search
Turns free text into structured SearchCriteria:
- Location (gazetteer lookup)
- Price bounds (direction words, ranges, "around N", currency amounts)
- Bedrooms, property type, amenities
Heuristic by design: keyword tables plus regular expressions.
"""

import re
from typing import Dict, List, Optional, Tuple

from loguru import logger

from ..schemas.assistant_schemas import SearchCriteria
from .vocabulary import DEFAULT_VOCABULARY, MarketVocabulary


# Amount: 80000, 80,000, 80.5, 80k
_AMOUNT = r"(\d{1,3}(?:,\d{3})+|\d+(?:\.\d+)?)\s*(k\b)?"
# An amount must not be a bedroom count ("2 bedroom", "3-bed") or run into more digits
_NOT_BEDROOMS = r"(?!\d|[,.]\d|\s*-?\s*(?:bed|br\b))"

_UPPER_BOUND_WORDS = ("under", "below", "less than", "max", "maximum", "up to", "at most")
_LOWER_BOUND_WORDS = ("above", "over", "more than", "min", "minimum", "at least")

AROUND_BAND = 0.2  # "around N" means N +/- 20%

STOP_WORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "is", "are", "was", "were", "be", "been", "have", "has", "had", "do", "does",
    "did", "will", "would", "could", "should", "may", "might", "can", "i", "you", "he",
    "she", "it", "we", "they", "me", "him", "her", "us", "them", "my", "please",
}


def _word_pattern(alias: str) -> re.Pattern:
    """Whole-word match for an alias, tolerating a plural 's'"""
    return re.compile(r"\b" + re.escape(alias) + r"s?\b")


def _parse_amount(number: str, suffix: Optional[str]) -> float:
    value = float(number.replace(",", ""))
    if suffix:
        value *= 1000
    return value


class CriteriaExtractor:
    """
    Parses natural language property queries into SearchCriteria.
    Never raises: anything it cannot read stays unconstrained.
    """

    def __init__(self, vocabulary: MarketVocabulary = DEFAULT_VOCABULARY):
        self.vocabulary = vocabulary

        # Compiled word matchers, in table order
        self.property_type_patterns: List[Tuple[str, List[re.Pattern]]] = [
            (canonical, [_word_pattern(alias) for alias in aliases])
            for canonical, aliases in vocabulary.property_types.items()
        ]
        self.amenity_patterns: List[Tuple[str, List[re.Pattern]]] = [
            (canonical, [_word_pattern(alias) for alias in aliases])
            for canonical, aliases in vocabulary.amenities.items()
        ]

        currency = "|".join(re.escape(word) for word in vocabulary.currency_words) or "fcfa"
        direction = "|".join(
            re.escape(word) for word in sorted(
                _UPPER_BOUND_WORDS + _LOWER_BOUND_WORDS, key=len, reverse=True
            )
        )

        # Price patterns
        self.between_pattern = re.compile(
            r"\bbetween\s+" + _AMOUNT + r"\s*(?:and|to|-)\s*" + _AMOUNT + _NOT_BEDROOMS
        )
        self.range_pattern = re.compile(
            _AMOUNT + r"\s*(?:to|-)\s*" + _AMOUNT + _NOT_BEDROOMS
        )
        self.direction_pattern = re.compile(
            r"\b(" + direction + r")\s*(?:of\s+)?(?:(?:" + currency + r")\s*)?" + _AMOUNT + _NOT_BEDROOMS
        )
        self.around_pattern = re.compile(
            r"\b(?:around|about|approximately|roughly)\s*(?:(?:" + currency + r")\s*)?" + _AMOUNT + _NOT_BEDROOMS
        )
        self.currency_pattern = re.compile(
            _AMOUNT + r"\s*(?:" + currency + r")\b"
        )

        # Bedrooms: a number right before "bedroom", optionally hyphenated
        self.bedroom_pattern = re.compile(r"(\d+)\s*-?\s*(?:bedrooms?|beds?|br)\b")

    def extract(self, text: Optional[str]) -> SearchCriteria:
        """
        Parse a free-text query into structured criteria.

        Args:
            text: User's message (None or empty is allowed)

        Returns:
            SearchCriteria with every field it could read; the rest unconstrained
        """
        if not text or not isinstance(text, str) or not text.strip():
            return SearchCriteria()

        query = text.lower().strip()

        price_min, price_max = self._extract_price(query)
        criteria = SearchCriteria(
            location=self._extract_location(query),
            price_min=price_min,
            price_max=price_max,
            bedrooms=self._extract_bedrooms(query),
            property_type=self._extract_property_type(query),
            amenities=self._extract_amenities(query),
        )

        logger.info(
            f"Extracted criteria: location={criteria.location}, "
            f"price={criteria.price_min}-{criteria.price_max}, "
            f"bedrooms={criteria.bedrooms}, type={criteria.property_type}, "
            f"amenities={criteria.amenities}"
        )
        return criteria

    def _extract_location(self, query: str) -> Optional[str]:
        """First gazetteer entry with an alias inside the query"""
        for canonical, aliases in self.vocabulary.locations.items():
            for alias in aliases:
                if alias in query:
                    return self.vocabulary.display_location(canonical)
        return None

    def _extract_price(self, query: str) -> Tuple[Optional[float], Optional[float]]:
        """Extract (price_min, price_max)"""
        # "between 50000 and 80000", "50k to 80k", "50000-80000"
        for pattern in (self.between_pattern, self.range_pattern):
            match = pattern.search(query)
            if match:
                low = _parse_amount(match.group(1), match.group(2))
                high = _parse_amount(match.group(3), match.group(4))
                return min(low, high), max(low, high)

        # "under 80000", "above 50k" (each bound may be set once)
        price_min = None
        price_max = None
        for match in self.direction_pattern.finditer(query):
            word = match.group(1)
            amount = _parse_amount(match.group(2), match.group(3))
            if word in _UPPER_BOUND_WORDS and price_max is None:
                price_max = amount
            elif word in _LOWER_BOUND_WORDS and price_min is None:
                price_min = amount
        if price_min is not None or price_max is not None:
            return price_min, price_max

        # "around 100000" -> symmetric band
        match = self.around_pattern.search(query)
        if match:
            amount = _parse_amount(match.group(1), match.group(2))
            return amount * (1 - AROUND_BAND), amount * (1 + AROUND_BAND)

        # "80000 fcfa" with no qualifier reads as a ceiling
        match = self.currency_pattern.search(query)
        if match:
            return None, _parse_amount(match.group(1), match.group(2))

        # "cheap", "luxury", ...
        for keyword, hint in self.vocabulary.price_keywords.items():
            if _word_pattern(keyword).search(query):
                return hint.price_min, hint.price_max

        return None, None

    def _extract_bedrooms(self, query: str) -> Optional[int]:
        match = self.bedroom_pattern.search(query)
        if match:
            return int(match.group(1))

        for phrase, count in self.vocabulary.bedroom_words.items():
            if phrase in query:
                return count
        return None

    def _extract_property_type(self, query: str) -> Optional[str]:
        for canonical, patterns in self.property_type_patterns:
            if any(pattern.search(query) for pattern in patterns):
                return canonical
        return None

    def _extract_amenities(self, query: str) -> List[str]:
        """All amenities mentioned, in vocabulary order"""
        return [
            canonical
            for canonical, patterns in self.amenity_patterns
            if any(pattern.search(query) for pattern in patterns)
        ]

    def extract_search_terms(self, text: Optional[str]) -> List[str]:
        """
        Terms worth remembering from a search message: content words plus
        the entities the extractor recognised.
        """
        if not text:
            return []

        query = text.lower().strip()
        terms: List[str] = [
            word for word in re.split(r"\s+", query)
            if len(word) > 1 and word not in STOP_WORDS
        ]

        criteria = self.extract(query)
        if criteria.location:
            terms.extend(criteria.location.split())
        if criteria.property_type:
            terms.append(criteria.property_type)
        terms.extend(criteria.amenities)
        if criteria.bedrooms is not None:
            terms.extend([f"{criteria.bedrooms}bedroom", f"{criteria.bedrooms}bed"])

        unique: List[str] = []
        for term in terms:
            if len(term) > 1 and term not in unique:
                unique.append(term)
        return unique

    def suggest(self, partial_query: str, limit: int = 5) -> List[str]:
        """Search suggestions for a partially typed query"""
        query = (partial_query or "").lower().strip()
        suggestions: List[str] = []

        for canonical, aliases in self.vocabulary.locations.items():
            if query and any(alias.startswith(query) or query in alias for alias in aliases):
                suggestions.append(f"Properties in {self.vocabulary.display_location(canonical).title()}")

        for canonical, aliases in self.vocabulary.property_types.items():
            if query and any(alias.startswith(query) or query in alias for alias in aliases):
                suggestions.append(f"{canonical.title()} properties")

        if len(query) < 3:
            suggestions.extend([
                "Cheap apartments in Molyko",
                "Two bedroom house in Buea",
                "Studio apartment with parking",
                "Furnished apartment near UB",
            ])

        return suggestions[:limit]


# ============================================
# Global Instance
# ============================================

criteria_extractor = CriteriaExtractor()


# ============================================
# Convenience Function
# ============================================

def extract_criteria(text: Optional[str]) -> Dict[str, object]:
    """Extract criteria and return a dict without unconstrained fields"""
    return criteria_extractor.extract(text).model_dump(exclude_none=True)
