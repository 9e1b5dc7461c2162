"""
Unit tests for the stores and catalog adapters (in-memory mode and HTTP via a mock transport).
"""

import httpx
import pytest

from tenant_ai.exceptions import CatalogUnavailableError
from tenant_ai.interfaces.catalog import HttpCatalog, InMemoryCatalog
from tenant_ai.interfaces.conversation_store import ConversationStore
from tenant_ai.interfaces.interaction_log import InteractionLog
from tenant_ai.interfaces.profile_store import ProfileStore
from tenant_ai.schemas.assistant_schemas import (
    FlowName,
    Interaction,
    InteractionAction,
    PreferenceProfile,
    SearchCriteria,
)


LISTING = {
    "id": "abc",
    "location": "Molyko",
    "price": 65000,
    "propertyType": "Apartment",
    "bedrooms": 2,
    "amenities": ["Parking", "wifi"],
    "createdAt": "2024-06-01T08:00:00Z",
    "isVerified": True,
    "images": ["front.jpg"],
    "rating": 4.5,
}


def _http_catalog(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpCatalog(base_url="http://catalog.test/api/v1", client=client)


class TestHttpCatalog:

    @pytest.mark.asyncio
    async def test_query_sends_criteria_and_normalizes_listing(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"data": [LISTING, {"title": "no id"}]})

        catalog = _http_catalog(handler)
        criteria = SearchCriteria(location="molyko", price_max=80000, bedrooms=2, amenities=["parking"])

        results = await catalog.query(criteria, limit=10)

        assert seen["path"] == "/api/v1/properties/search"
        assert seen["params"]["location"] == "molyko"
        assert seen["params"]["bedrooms"] == "2"
        assert seen["params"]["amenities"] == "parking"
        assert "minPrice" not in seen["params"]
        listing = results[0]
        assert len(results) == 1
        assert (listing.id, listing.location, listing.property_type) == ("abc", "molyko", "apartment")
        assert listing.amenities == ["parking", "wifi"]
        assert listing.verified and listing.has_images
        assert listing.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_server_error_raises_catalog_unavailable(self):
        catalog = _http_catalog(lambda request: httpx.Response(503))

        with pytest.raises(CatalogUnavailableError):
            await catalog.featured(5)

    @pytest.mark.asyncio
    async def test_connection_error_raises_catalog_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(CatalogUnavailableError):
            await _http_catalog(handler).recent(5)

    @pytest.mark.asyncio
    async def test_missing_property_is_none(self):
        catalog = _http_catalog(lambda request: httpx.Response(404))
        assert await catalog.get_property("nope") is None

    @pytest.mark.asyncio
    async def test_malformed_listing_raises_catalog_unavailable(self):
        body = {"data": {"id": "p9", "price": "not-a-number"}}
        catalog = _http_catalog(lambda request: httpx.Response(200, json=body))

        with pytest.raises(CatalogUnavailableError):
            await catalog.get_property("p9")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [["p1", "p2"], "ok", {"data": "p1"}])
    async def test_unexpected_body_shape_raises_catalog_unavailable(self, body):
        catalog = _http_catalog(lambda request: httpx.Response(200, json=body))

        with pytest.raises(CatalogUnavailableError):
            await catalog.featured(5)

    @pytest.mark.asyncio
    async def test_non_object_items_are_skipped(self):
        body = {"data": ["p1", LISTING]}
        catalog = _http_catalog(lambda request: httpx.Response(200, json=body))

        assert [item.id for item in await catalog.recent(5)] == ["abc"]


class TestInMemoryCatalog:

    @pytest.mark.asyncio
    async def test_recent_and_featured(self, catalog):
        assert [item.id for item in await catalog.recent(2)] == ["p4", "p1"]
        assert [item.id for item in await catalog.featured(5)] == ["p3"]

    @pytest.mark.asyncio
    async def test_get_properties_skips_unknown(self, catalog):
        found = await catalog.get_properties(["p2", "ghost", "p1"])
        assert [item.id for item in found] == ["p2", "p1"]

    @pytest.mark.asyncio
    async def test_query_respects_limit(self):
        assert await InMemoryCatalog().query(SearchCriteria(), 5) == []


class TestStores:

    @pytest.mark.asyncio
    async def test_conversation_round_trip(self, conversation):
        store = ConversationStore(enabled=False)
        conversation.current_flow = FlowName.BOOKING
        conversation.current_step = "awaiting_details"
        conversation.context["selected_property_id"] = "p1"

        await store.save(conversation)
        loaded = await store.load("user-1")

        assert store.backend == "memory"
        assert loaded == conversation
        assert loaded is not conversation

    @pytest.mark.asyncio
    async def test_unknown_user_gets_fresh_conversation(self):
        loaded = await ConversationStore(enabled=False).load("stranger")
        assert loaded.user_id == "stranger"
        assert loaded.current_flow is None

    @pytest.mark.asyncio
    async def test_profile_round_trip(self):
        store = ProfileStore(enabled=False)
        profile = PreferenceProfile(location_scores={"molyko": 3})

        assert await store.load("user-1") is None
        await store.save("user-1", profile)
        assert await store.load("user-1") == profile

    @pytest.mark.asyncio
    async def test_interaction_log_keeps_newest_entries(self, now):
        log = InteractionLog(history_limit=3, enabled=False)
        for index in range(5):
            await log.record("user-1", Interaction(
                user_id="user-1", action=InteractionAction.VIEW, property_id=f"p{index}", timestamp=now,
            ))
        await log.record("user-1", Interaction(user_id="user-1", action=InteractionAction.SEARCH, timestamp=now))

        history = await log.history("user-1")
        views = await log.history("user-1", actions=[InteractionAction.VIEW], limit=1)

        assert [item.property_id for item in history] == ["p3", "p4", None]
        assert [item.property_id for item in views] == ["p4"]
        assert await log.count("user-1") == 3
