# tenant_ai/__init__.py
"""
Tenant AI - Conversational Property Search Core

A rental property assistant with:
- Intent classification and criteria extraction from free text
- Declarative conversation flows with interrupt/resume
- Listing ranking against criteria and learned preferences
- Preference learning from views, saves, bookings and skips
- Diversified personalized recommendations

User Journeys Supported:
1. Find me a place that fits
2. Change my mind mid-conversation and come back
3. Show me what I'd probably like
4. Book a tour of the one I picked
"""

__version__ = "1.0.0"

# Package structure:
# tenant_ai/
# ├── __init__.py           <- This file
# ├── config.py             <- Configuration settings
# ├── exceptions.py         <- Error hierarchy
# │
# ├── agents/               <- Core entry points
# │   ├── property_assistant.py    <- route / search / recommend / learn
# │   └── recommendation_engine.py <- Implicit-profile recommendations
# │
# ├── flows/                <- Conversation state machine
# │   ├── flow_definitions.py <- Flow tables
# │   └── flow_engine.py      <- Flow engine
# │
# ├── nlp/                  <- Language understanding
# │   ├── intent_classifier.py
# │   ├── criteria_extractor.py
# │   └── vocabulary.py     <- Market keyword tables
# │
# ├── algorithms/           <- Scoring algorithms
# │   ├── ranking.py
# │   └── preference_learner.py
# │
# ├── interfaces/           <- Data Stores & catalog
# │   ├── conversation_store.py
# │   ├── profile_store.py
# │   ├── interaction_log.py
# │   └── catalog.py
# │
# ├── schemas/              <- Pydantic Models
# │   └── assistant_schemas.py
# │
# └── utils/
#     ├── time_utils.py
#     ├── user_locks.py
#     └── logging_setup.py
