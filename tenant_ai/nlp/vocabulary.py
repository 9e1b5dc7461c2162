# nlp/vocabulary.py
"""
Market Vocabulary
Declarative keyword tables used by the intent classifier and criteria extractor.
A market is tuned by passing a different MarketVocabulary, not by editing code.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class PriceHint:
    """Price bound implied by a word like 'cheap' or 'luxury'"""
    price_min: Optional[float] = None
    price_max: Optional[float] = None


@dataclass(frozen=True)
class MarketVocabulary:
    """
    Keyword tables for one rental market.

    Dict order matters: the first canonical entry whose alias matches wins.
    """
    name: str
    # canonical location -> aliases (substring match)
    locations: Dict[str, List[str]] = field(default_factory=dict)
    # canonical property type -> aliases (word match)
    property_types: Dict[str, List[str]] = field(default_factory=dict)
    # canonical amenity -> aliases (word match)
    amenities: Dict[str, List[str]] = field(default_factory=dict)
    # price word -> implied bound, used only when no number was given
    price_keywords: Dict[str, PriceHint] = field(default_factory=dict)
    # bedroom phrases -> count
    bedroom_words: Dict[str, int] = field(default_factory=dict)
    # currency words that mark a bare number as a price
    currency_words: Tuple[str, ...] = ()

    def display_location(self, canonical: str) -> str:
        return canonical.replace("_", " ")


BUEA_VOCABULARY = MarketVocabulary(
    name="buea",
    locations={
        "molyko": ["molyko", "moliko"],
        "great_soppo": ["great soppo", "great-soppo", "soppo"],
        "bokwango": ["bokwango", "bokwongo"],
        "bonduma": ["bonduma"],
        "buea_town": ["buea town", "buea-town"],
        "mile_16": ["mile 16", "mile16", "mile-16"],
        "checkpoint": ["checkpoint", "check point"],
        "federal_quarters": ["federal quarters", "federal-quarters", "fed quarters"],
    },
    property_types={
        "apartment": ["apartment", "flat", "unit"],
        "house": ["house", "home", "villa", "bungalow"],
        "studio": ["studio", "bedsitter"],
        "duplex": ["duplex", "maisonette"],
        "room": ["room", "single room", "shared room"],
    },
    amenities={
        "parking": ["parking", "garage", "car park"],
        "wifi": ["wifi", "wi-fi", "internet"],
        "generator": ["generator", "backup power", "power backup"],
        "water": ["water", "borehole", "pipe borne"],
        "security": ["security", "gated", "watchman"],
        "furnished": ["furnished", "furniture", "equipped"],
        "kitchen": ["kitchen"],
        "bathroom": ["bathroom", "toilet"],
        "balcony": ["balcony", "veranda"],
        "garden": ["garden", "compound", "yard"],
    },
    price_keywords={
        "cheap": PriceHint(price_max=50000),
        "affordable": PriceHint(price_max=100000),
        "budget": PriceHint(price_max=80000),
        "expensive": PriceHint(price_min=200000),
        "luxury": PriceHint(price_min=300000),
        "premium": PriceHint(price_min=250000),
    },
    bedroom_words={
        "one bedroom": 1,
        "two bedroom": 2,
        "three bedroom": 3,
        "four bedroom": 4,
        "five bedroom": 5,
        "self contain": 1,
        "self-contain": 1,
    },
    currency_words=("fcfa", "cfa", "xaf", "francs", "franc", "frs"),
)


DEFAULT_VOCABULARY = BUEA_VOCABULARY
