# schemas/assistant_schemas.py
"""
Pydantic v2 schemas for the property-search assistant core
Conversations, criteria, listings, preference profiles and interactions
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from ..utils.time_utils import as_utc, utcnow


# ============================================
# Enums
# ============================================

class IntentType(str, Enum):
    GREETING = "greeting"
    SEARCH_PROPERTY = "search_property"
    BOOK_TOUR = "book_tour"
    HELP = "help"
    PREFERENCE_UPDATE = "preference_update"
    INFO_REQUEST = "info_request"


class FlowName(str, Enum):
    PROPERTY_SEARCH = "property_search"
    BOOKING = "booking"
    PREFERENCE_SETUP = "preference_setup"
    SUPPORT = "support"
    ONBOARDING = "onboarding"


class FlowEvent(str, Enum):
    INITIATED = "initiated"
    CONTINUED = "continued"
    INTERRUPTED = "interrupted"
    RESUMED = "resumed"
    COMPLETED = "completed"
    FALLBACK = "fallback"


class InteractionAction(str, Enum):
    VIEW = "view"
    SAVE = "save"
    BOOK = "book"
    CONTACT = "contact"
    SHARE = "share"
    SEARCH = "search"
    SKIP = "skip"
    UNSAVE = "unsave"


def _normalize_key(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = " ".join(value.replace("_", " ").split()).lower()
    return cleaned or None


def _normalize_keys(values: Optional[List[str]]) -> List[str]:
    seen: List[str] = []
    for value in values or []:
        key = _normalize_key(value)
        if key and key not in seen:
            seen.append(key)
    return seen


NormalizedKey = Annotated[Optional[str], AfterValidator(_normalize_key)]
NormalizedKeys = Annotated[List[str], AfterValidator(_normalize_keys)]


# ============================================
# Search criteria & listings
# ============================================

class SearchCriteria(BaseModel):
    """Structured form of a free-text property query. None means unconstrained."""
    location: NormalizedKey = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    bedrooms: Optional[int] = None
    property_type: NormalizedKey = None
    amenities: NormalizedKeys = Field(default_factory=list)  # deduplicated, vocabulary order

    def is_empty(self) -> bool:
        return (
            self.location is None
            and self.price_min is None
            and self.price_max is None
            and self.bedrooms is None
            and self.property_type is None
            and not self.amenities
        )


class PropertyCandidate(BaseModel):
    """Read-only projection of a catalog listing"""
    model_config = ConfigDict(frozen=True)

    id: str
    location: NormalizedKey = None
    price: Optional[float] = None
    property_type: NormalizedKey = None
    bedrooms: Optional[int] = None
    amenities: NormalizedKeys = Field(default_factory=list)
    created_at: Optional[datetime] = None
    verified: bool = False
    has_images: bool = False
    rating: Optional[float] = None
    title: Optional[str] = None

    @field_validator("created_at")
    @classmethod
    def _utc_created_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class ScoredProperty(BaseModel):
    """A candidate with its ranking score and per-component breakdown"""
    property: PropertyCandidate
    score: float
    breakdown: Dict[str, float] = Field(default_factory=dict)


# ============================================
# Preference learning
# ============================================

class SearchPatterns(BaseModel):
    """How and when a user searches"""
    preferred_search_methods: Dict[str, int] = Field(default_factory=dict)
    common_search_terms: Dict[str, int] = Field(default_factory=dict)
    search_time_patterns: Dict[str, int] = Field(default_factory=dict)
    total_searches: int = 0


class PreferenceProfile(BaseModel):
    """Per-user learned preference weights. Scores are never negative."""
    location_scores: Dict[str, float] = Field(default_factory=dict)
    property_type_scores: Dict[str, float] = Field(default_factory=dict)
    amenity_scores: Dict[str, float] = Field(default_factory=dict)
    price_range_bucket_scores: Dict[str, float] = Field(default_factory=dict)
    average_preferred_price: float = 0.0
    total_weighted_price_interactions: float = 0.0
    search_patterns: SearchPatterns = Field(default_factory=SearchPatterns)
    last_updated_at: Optional[datetime] = None

    def has_signal(self) -> bool:
        return any(
            (self.location_scores, self.property_type_scores,
             self.amenity_scores, self.price_range_bucket_scores)
        )


class Interaction(BaseModel):
    """Immutable user interaction event"""
    model_config = ConfigDict(frozen=True)

    user_id: str
    action: InteractionAction
    property_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    search_terms: List[str] = Field(default_factory=list)
    search_method: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _utc_timestamp(cls, value: datetime) -> datetime:
        return as_utc(value)


# ============================================
# Users, intents & conversations
# ============================================

class UserSnapshot(BaseModel):
    """The user facts the flow engine needs to pick a flow"""
    user_id: str
    created_at: datetime = Field(default_factory=utcnow)
    interaction_count: int = 0
    has_preferences: bool = False


class IntentResult(BaseModel):
    intent: IntentType
    confidence: float = 0.0
    command: Optional[str] = None


class FlowHistoryEntry(BaseModel):
    flow: FlowName
    started_at: datetime = Field(default_factory=utcnow)
    previous_flow: Optional[FlowName] = None


class StepTransition(BaseModel):
    flow: FlowName
    from_step: str
    to_step: str
    action: Optional[str] = None
    trigger: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)


class InterruptedFlow(BaseModel):
    flow: FlowName
    step: str
    interrupted_at: datetime = Field(default_factory=utcnow)
    reason: str = "user_request"


class CompletedFlow(BaseModel):
    flow: FlowName
    completed_at: datetime = Field(default_factory=utcnow)
    data: Dict[str, Any] = Field(default_factory=dict)


class Conversation(BaseModel):
    """
    Per-user conversation state.
    current_step is always a declared state of current_flow; both are None when idle.
    """
    user_id: str
    current_flow: Optional[FlowName] = None
    current_step: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    flow_history: List[FlowHistoryEntry] = Field(default_factory=list)
    step_history: List[StepTransition] = Field(default_factory=list)
    interrupted_flows: List[InterruptedFlow] = Field(default_factory=list)
    completed_flows: List[CompletedFlow] = Field(default_factory=list)
    last_activity_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)


class NextAction(BaseModel):
    action: str
    description: str
    target: str


class RouteResult(BaseModel):
    """The flow engine's decision for one inbound message"""
    flow: Optional[FlowName] = None
    step: Optional[str] = None
    action: Optional[str] = None
    next_prompt: Optional[str] = None
    event: FlowEvent = FlowEvent.CONTINUED
    previous_step: Optional[str] = None
    intent: Optional[IntentType] = None
    next_actions: List[NextAction] = Field(default_factory=list)
    resumable_flows: List[FlowName] = Field(default_factory=list)
    results: List[ScoredProperty] = Field(default_factory=list)  # filled on search steps
