# schemas/__init__.py
"""
Pydantic Schemas Package

Contains all Pydantic v2 models for:
- Conversations and flow decisions
- Search criteria and catalog listings
- Preference profiles and interactions
"""

from .assistant_schemas import (
    # Enums
    IntentType, FlowName, FlowEvent, InteractionAction,
    # Criteria & listings
    SearchCriteria, PropertyCandidate, ScoredProperty,
    # Preference learning
    SearchPatterns, PreferenceProfile, Interaction,
    # Users, intents & conversations
    UserSnapshot, IntentResult, FlowHistoryEntry, StepTransition,
    InterruptedFlow, CompletedFlow, Conversation, NextAction, RouteResult,
)

__all__ = [
    # Enums
    "IntentType", "FlowName", "FlowEvent", "InteractionAction",
    # Criteria & listings
    "SearchCriteria", "PropertyCandidate", "ScoredProperty",
    # Preference learning
    "SearchPatterns", "PreferenceProfile", "Interaction",
    # Users, intents & conversations
    "UserSnapshot", "IntentResult", "FlowHistoryEntry", "StepTransition",
    "InterruptedFlow", "CompletedFlow", "Conversation", "NextAction", "RouteResult",
]
