"""
Agents Module
The assistant core and its recommendation engine
"""

from .recommendation_engine import RecommendationEngine
from .property_assistant import PropertyAssistant, parse_button

__all__ = [
    "RecommendationEngine",
    "PropertyAssistant",
    "parse_button",
]
