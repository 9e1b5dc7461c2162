"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone

import pytest

# Stores stay in memory during tests
os.environ["REDIS_ENABLED"] = "false"

from tenant_ai.agents.property_assistant import PropertyAssistant
from tenant_ai.interfaces.catalog import InMemoryCatalog
from tenant_ai.interfaces.conversation_store import ConversationStore
from tenant_ai.interfaces.interaction_log import InteractionLog
from tenant_ai.interfaces.profile_store import ProfileStore
from tenant_ai.schemas.assistant_schemas import Conversation, PropertyCandidate, UserSnapshot


NOW = datetime(2024, 6, 3, 10, 0, tzinfo=timezone.utc)


def make_property(property_id: str, **fields) -> PropertyCandidate:
    """Listing with sensible defaults"""
    values = {
        "location": "molyko",
        "price": 75000,
        "property_type": "apartment",
        "bedrooms": 2,
        "amenities": [],
        "created_at": NOW - timedelta(days=30),
    }
    values.update(fields)
    return PropertyCandidate(id=property_id, **values)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def established_user():
    """User past the onboarding window"""
    return UserSnapshot(
        user_id="user-1",
        created_at=NOW - timedelta(days=30),
        interaction_count=12,
        has_preferences=True,
    )


@pytest.fixture
def new_user():
    return UserSnapshot(user_id="user-new", created_at=NOW - timedelta(hours=2))


@pytest.fixture
def conversation():
    return Conversation(user_id="user-1", created_at=NOW - timedelta(days=30))


@pytest.fixture
def sample_properties():
    return [
        make_property("p1", location="molyko", price=75000, bedrooms=2, amenities=["parking", "water"]),
        make_property("p2", location="molyko", price=85000, bedrooms=2, amenities=["parking"]),
        make_property("p3", location="great soppo", price=120000, property_type="house", bedrooms=3),
        make_property("p4", location="bokwango", price=45000, property_type="studio", bedrooms=1,
                      created_at=NOW - timedelta(days=2)),
        make_property("p5", location="molyko", price=60000, bedrooms=1, amenities=["wifi"]),
    ]


@pytest.fixture
def catalog(sample_properties):
    return InMemoryCatalog(sample_properties, featured_ids=["p3"])


@pytest.fixture
def stores():
    return {
        "conversation_store": ConversationStore(enabled=False),
        "profile_store": ProfileStore(enabled=False),
        "interaction_log": InteractionLog(enabled=False),
    }


@pytest.fixture
def assistant(catalog, stores):
    return PropertyAssistant(catalog=catalog, timeout=1.0, **stores)


@pytest.fixture
def property_factory():
    return make_property
