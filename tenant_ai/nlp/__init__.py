"""
NLP Module
Heuristic language understanding: intents and search criteria
"""

from .vocabulary import MarketVocabulary, PriceHint, BUEA_VOCABULARY, DEFAULT_VOCABULARY
from .intent_classifier import IntentClassifier, intent_classifier, classify_intent
from .criteria_extractor import CriteriaExtractor, criteria_extractor, extract_criteria

__all__ = [
    "MarketVocabulary",
    "PriceHint",
    "BUEA_VOCABULARY",
    "DEFAULT_VOCABULARY",
    "IntentClassifier",
    "intent_classifier",
    "classify_intent",
    "CriteriaExtractor",
    "criteria_extractor",
    "extract_criteria",
]
