"""
Property Catalog - Read-only access to rental listings

PropertyCatalog is the contract the core consumes; InMemoryCatalog serves tests
and local runs, HttpCatalog talks to the search service.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import httpx
from loguru import logger

from ..algorithms.ranking import RankingEngine
from ..config import settings
from ..exceptions import CatalogUnavailableError
from ..schemas.assistant_schemas import PropertyCandidate, SearchCriteria


class PropertyCatalog(ABC):
    """External listing source. Adapters raise CatalogUnavailableError on failure."""

    @abstractmethod
    async def query(self, criteria: SearchCriteria, limit: int) -> List[PropertyCandidate]:
        """Listings satisfying every set criterion, in catalog order"""

    @abstractmethod
    async def get_property(self, property_id: str) -> Optional[PropertyCandidate]:
        """One listing, or None if it does not exist"""

    @abstractmethod
    async def featured(self, limit: int) -> List[PropertyCandidate]:
        """Promoted listings"""

    @abstractmethod
    async def recent(self, limit: int) -> List[PropertyCandidate]:
        """Most recently created listings, newest first"""

    async def get_properties(self, property_ids: Iterable[str]) -> List[PropertyCandidate]:
        """Fetch several listings, skipping ids that no longer exist"""
        found: List[PropertyCandidate] = []
        for property_id in property_ids:
            candidate = await self.get_property(property_id)
            if candidate is not None:
                found.append(candidate)
        return found


class InMemoryCatalog(PropertyCatalog):
    """Catalog over a fixed list of listings (list order is catalog order)"""

    def __init__(
        self,
        properties: Optional[Iterable[PropertyCandidate]] = None,
        featured_ids: Optional[Iterable[str]] = None,
    ):
        self.properties: List[PropertyCandidate] = list(properties or [])
        self.featured_ids: List[str] = list(featured_ids or [])

    def add(self, candidate: PropertyCandidate):
        self.properties.append(candidate)

    async def query(self, criteria: SearchCriteria, limit: int) -> List[PropertyCandidate]:
        matches = [candidate for candidate in self.properties if RankingEngine.matches_criteria(candidate, criteria)]
        return matches[:limit]

    async def get_property(self, property_id: str) -> Optional[PropertyCandidate]:
        for candidate in self.properties:
            if candidate.id == property_id:
                return candidate
        return None

    async def featured(self, limit: int) -> List[PropertyCandidate]:
        by_id = {candidate.id: candidate for candidate in self.properties}
        return [by_id[property_id] for property_id in self.featured_ids if property_id in by_id][:limit]

    async def recent(self, limit: int) -> List[PropertyCandidate]:
        dated = [candidate for candidate in self.properties if candidate.created_at is not None]
        dated.sort(key=lambda candidate: candidate.created_at, reverse=True)
        undated = [candidate for candidate in self.properties if candidate.created_at is None]
        return (dated + undated)[:limit]


class HttpCatalog(PropertyCatalog):
    """
    Catalog backed by the search service REST API

    Endpoints (relative to base_url):
    - GET /properties/search   filtered query
    - GET /properties/{id}     one listing
    - GET /properties/featured promoted listings
    - GET /properties          newest first with sort=-createdAt
    Responses wrap listings in {"data": ...}.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = settings.CATALOG_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.CATALOG_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._client = client

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Search Service error on {path}: {e}")
            raise CatalogUnavailableError(f"GET {path} failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.error(f"Search Service returned {response.status_code} for {path}")
            raise CatalogUnavailableError(f"GET {path} returned {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise CatalogUnavailableError(f"GET {path} returned invalid JSON") from e
        if not isinstance(body, dict):
            raise CatalogUnavailableError(f"GET {path} returned {type(body).__name__}, expected an object")
        return body.get("data")

    async def query(self, criteria: SearchCriteria, limit: int) -> List[PropertyCandidate]:
        params: Dict[str, Any] = {"limit": limit}
        if criteria.location:
            params["location"] = criteria.location
        if criteria.price_min is not None:
            params["minPrice"] = criteria.price_min
        if criteria.price_max is not None:
            params["maxPrice"] = criteria.price_max
        if criteria.bedrooms is not None:
            params["bedrooms"] = criteria.bedrooms
        if criteria.property_type:
            params["propertyType"] = criteria.property_type
        if criteria.amenities:
            params["amenities"] = ",".join(criteria.amenities)

        logger.info(f"Querying catalog: {params}")
        data = await self._get("/properties/search", params)
        return self._to_candidates(data)[:limit]

    async def get_property(self, property_id: str) -> Optional[PropertyCandidate]:
        data = await self._get(f"/properties/{property_id}")
        if not data:
            return None
        if not isinstance(data, dict):
            raise CatalogUnavailableError(f"Listing {property_id} is not an object")
        try:
            return self._to_candidate(data)
        except (TypeError, ValueError) as e:
            logger.error(f"Malformed listing {property_id}: {e}")
            raise CatalogUnavailableError(f"Listing {property_id} is malformed") from e

    async def featured(self, limit: int) -> List[PropertyCandidate]:
        return self._to_candidates(await self._get("/properties/featured", {"limit": limit}))[:limit]

    async def recent(self, limit: int) -> List[PropertyCandidate]:
        data = await self._get("/properties", {"sort": "-createdAt", "limit": limit})
        return self._to_candidates(data)[:limit]

    def _to_candidates(self, data: Optional[List[Dict[str, Any]]]) -> List[PropertyCandidate]:
        if data is not None and not isinstance(data, list):
            raise CatalogUnavailableError(f"Expected a list of listings, got {type(data).__name__}")

        candidates = []
        for item in data or []:
            if not isinstance(item, dict):
                logger.warning(f"Skipping non-object listing: {item!r}")
                continue
            try:
                candidate = self._to_candidate(item)
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed listing {item.get('id')}: {e}")
                continue
            if candidate is not None:
                candidates.append(candidate)
        return candidates

    @staticmethod
    def _to_candidate(item: Dict[str, Any]) -> Optional[PropertyCandidate]:
        """Normalize a search-service listing (camelCase or snake_case)"""
        property_id = item.get("id") or item.get("_id")
        if property_id is None:
            logger.warning(f"Skipping listing without id: {item}")
            return None

        created_at = item.get("createdAt", item.get("created_at"))
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))

        images = item.get("images")
        return PropertyCandidate(
            id=str(property_id),
            location=item.get("location"),
            price=item.get("price"),
            property_type=item.get("propertyType", item.get("property_type")),
            bedrooms=item.get("bedrooms"),
            amenities=item.get("amenities") or [],
            created_at=created_at,
            verified=bool(item.get("verified", item.get("isVerified", False))),
            has_images=bool(item.get("hasImages", item.get("has_images", bool(images)))),
            rating=item.get("rating"),
            title=item.get("title"),
        )
