# flows/flow_definitions.py
"""
Conversation Flow Tables
Each flow is data: named states, and per state an ordered list of transitions.
A transition fires when its condition holds; the first one wins, and an
'always' condition may only close a state's list.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..exceptions import FlowConfigurationError
from ..schemas.assistant_schemas import FlowName, IntentType


COMPLETED = "completed"


class ConditionKind(str, Enum):
    INTENT = "intent"
    KEYWORD = "keyword"
    PATTERN = "pattern"
    CONTEXT = "context"
    ALWAYS = "always"


class ContextPredicate(str, Enum):
    HAS_SEARCH_RESULTS = "has_search_results"
    HAS_SELECTED_PROPERTY = "has_selected_property"
    HAS_BOOKING_DETAILS = "has_booking_details"
    IS_FIRST_INTERACTION = "is_first_interaction"


@dataclass(frozen=True)
class Condition:
    """Tagged variant: kind says how value is interpreted"""
    kind: ConditionKind
    value: Optional[str] = None

    def describe(self) -> str:
        return self.kind.value if self.value is None else f"{self.kind.value}:{self.value}"


def on_intent(intent: IntentType) -> Condition:
    return Condition(ConditionKind.INTENT, intent.value)


def on_keyword(keyword: str) -> Condition:
    return Condition(ConditionKind.KEYWORD, keyword)


def on_pattern(pattern: str) -> Condition:
    return Condition(ConditionKind.PATTERN, pattern)


def on_context(predicate: ContextPredicate) -> Condition:
    return Condition(ConditionKind.CONTEXT, predicate.value)


ALWAYS = Condition(ConditionKind.ALWAYS)


@dataclass(frozen=True)
class Transition:
    condition: Condition
    target: str
    action: str
    description: str = ""


@dataclass(frozen=True)
class StateDefinition:
    prompt: str
    transitions: List[Transition] = field(default_factory=list)


@dataclass(frozen=True)
class FlowDefinition:
    name: FlowName
    initial_state: str
    states: Dict[str, StateDefinition]

    def __post_init__(self):
        if self.initial_state not in self.states:
            raise FlowConfigurationError(
                f"{self.name.value}: initial state '{self.initial_state}' is not declared"
            )
        for state_name, state in self.states.items():
            for index, transition in enumerate(state.transitions):
                if transition.target not in self.states:
                    raise FlowConfigurationError(
                        f"{self.name.value}.{state_name}: unknown target '{transition.target}'"
                    )
                is_last = index == len(state.transitions) - 1
                if transition.condition.kind == ConditionKind.ALWAYS and not is_last:
                    raise FlowConfigurationError(
                        f"{self.name.value}.{state_name}: 'always' must be the last transition"
                    )

    def has_state(self, state: Optional[str]) -> bool:
        return state is not None and state in self.states

    def transitions_for(self, state: str) -> List[Transition]:
        definition = self.states.get(state)
        return list(definition.transitions) if definition else []

    def prompt_for(self, state: str) -> Optional[str]:
        definition = self.states.get(state)
        return definition.prompt if definition else None


# ============================================
# Property Search
# ============================================

PROPERTY_SEARCH_FLOW = FlowDefinition(
    name=FlowName.PROPERTY_SEARCH,
    initial_state="initial",
    states={
        "initial": StateDefinition(
            prompt="What kind of place are you looking for? Tell me the area, budget and number of bedrooms.",
            transitions=[
                Transition(on_intent(IntentType.SEARCH_PROPERTY), "awaiting_criteria", "collect_criteria", "Collect search criteria"),
                Transition(on_keyword("browse"), "showing_results", "show_all_properties", "Show all properties"),
                Transition(ALWAYS, "awaiting_criteria", "prompt_criteria", "Prompt for search criteria"),
            ],
        ),
        "awaiting_criteria": StateDefinition(
            prompt="Tell me what you need, e.g. '2 bedroom apartment in Molyko under 80000'.",
            transitions=[
                Transition(on_pattern(r"\d+\s*-?\s*(bedroom|bed)"), "showing_results", "search_properties", "Search with criteria"),
                Transition(on_keyword("location"), "showing_results", "search_properties", "Search by location"),
                Transition(ALWAYS, "showing_results", "search_properties", "Search with any criteria"),
            ],
        ),
        "showing_results": StateDefinition(
            prompt="Here is what I found. Say 'more' for more results, 'refine' to change your search or 'done' to finish.",
            transitions=[
                Transition(on_keyword("more"), "showing_results", "show_more_results", "Show more results"),
                Transition(on_keyword("refine"), "refining_search", "refine_criteria", "Refine search criteria"),
                Transition(on_keyword("done"), COMPLETED, "end_search", "Finish searching"),
            ],
        ),
        "refining_search": StateDefinition(
            prompt="What would you like to change?",
            transitions=[
                Transition(ALWAYS, "showing_results", "search_with_refined_criteria", "Search with refined criteria"),
            ],
        ),
        COMPLETED: StateDefinition(prompt="Happy house hunting!"),
    },
)


# ============================================
# Booking
# ============================================

BOOKING_FLOW = FlowDefinition(
    name=FlowName.BOOKING,
    initial_state="initial",
    states={
        "initial": StateDefinition(
            prompt="Let's book a tour.",
            transitions=[
                Transition(on_context(ContextPredicate.HAS_SELECTED_PROPERTY), "awaiting_details", "collect_booking_details", "Collect booking details"),
                Transition(ALWAYS, "selecting_property", "prompt_property_selection", "Prompt property selection"),
            ],
        ),
        "selecting_property": StateDefinition(
            prompt="Which property would you like to visit?",
            transitions=[
                Transition(on_pattern(r"property|view|book"), "awaiting_details", "collect_booking_details", "Collect booking details"),
            ],
        ),
        "awaiting_details": StateDefinition(
            prompt="When would you like to visit? (e.g. 'tomorrow' or 'Saturday')",
            transitions=[
                Transition(
                    on_pattern(r"\d{1,2}(st|nd|rd|th)|tomorrow|today|monday|tuesday|wednesday|thursday|friday|saturday|sunday"),
                    "confirming_booking", "confirm_booking", "Confirm booking details",
                ),
            ],
        ),
        "confirming_booking": StateDefinition(
            prompt="Shall I confirm this tour? (yes/no)",
            transitions=[
                Transition(on_keyword("yes"), COMPLETED, "create_booking", "Create booking"),
                Transition(on_keyword("no"), "awaiting_details", "modify_booking", "Modify booking details"),
            ],
        ),
        COMPLETED: StateDefinition(prompt="Your tour request has been sent."),
    },
)


# ============================================
# Preference Setup
# ============================================

PREFERENCE_SETUP_FLOW = FlowDefinition(
    name=FlowName.PREFERENCE_SETUP,
    initial_state="initial",
    states={
        "initial": StateDefinition(
            prompt="Let's set up your preferences.",
            transitions=[
                Transition(ALWAYS, "collecting_location", "ask_location_preference", "Ask for location preference"),
            ],
        ),
        "collecting_location": StateDefinition(
            prompt="Which area do you prefer?",
            transitions=[
                Transition(ALWAYS, "collecting_budget", "ask_budget_preference", "Ask for budget preference"),
            ],
        ),
        "collecting_budget": StateDefinition(
            prompt="What is your monthly budget?",
            transitions=[
                Transition(ALWAYS, "collecting_type", "ask_type_preference", "Ask for property type preference"),
            ],
        ),
        "collecting_type": StateDefinition(
            prompt="What type of property? (apartment, house, studio...)",
            transitions=[
                Transition(ALWAYS, "collecting_amenities", "ask_amenity_preference", "Ask for amenity preferences"),
            ],
        ),
        "collecting_amenities": StateDefinition(
            prompt="Any must-have amenities? (parking, wifi, generator...)",
            transitions=[
                Transition(ALWAYS, COMPLETED, "save_preferences", "Save all preferences"),
            ],
        ),
        COMPLETED: StateDefinition(prompt="Your preferences are saved."),
    },
)


# ============================================
# Support
# ============================================

SUPPORT_FLOW = FlowDefinition(
    name=FlowName.SUPPORT,
    initial_state="initial",
    states={
        "initial": StateDefinition(
            prompt="How can I help?",
            transitions=[
                Transition(ALWAYS, "identifying_issue", "identify_issue", "Identify user issue"),
            ],
        ),
        "identifying_issue": StateDefinition(
            prompt="Is this a technical issue, a reservation issue, or would you like an agent?",
            transitions=[
                Transition(on_keyword("technical"), "providing_solution", "provide_technical_help", "Provide technical help"),
                Transition(on_keyword("reservation"), "providing_solution", "provide_booking_help", "Provide booking help"),
                Transition(on_keyword("agent"), "escalating", "escalate_to_agent", "Escalate to human agent"),
                Transition(ALWAYS, "providing_solution", "provide_general_help", "Provide general help"),
            ],
        ),
        "providing_solution": StateDefinition(
            prompt="Did that solve it? Say 'solved' or ask for an 'agent'.",
            transitions=[
                Transition(on_keyword("solved"), COMPLETED, "mark_resolved", "Mark issue as resolved"),
                Transition(on_keyword("agent"), "escalating", "escalate_to_agent", "Escalate to human agent"),
            ],
        ),
        "escalating": StateDefinition(
            prompt="Connecting you to an agent.",
            transitions=[
                Transition(ALWAYS, COMPLETED, "connect_to_agent", "Connect to human agent"),
            ],
        ),
        COMPLETED: StateDefinition(prompt="Glad I could help."),
    },
)


# ============================================
# Onboarding
# ============================================

ONBOARDING_FLOW = FlowDefinition(
    name=FlowName.ONBOARDING,
    initial_state="welcome",
    states={
        "welcome": StateDefinition(
            prompt="Welcome! I help you find rental properties, book tours and learn what you like.",
            transitions=[
                Transition(ALWAYS, "explaining_features", "explain_features", "Explain app features"),
            ],
        ),
        "explaining_features": StateDefinition(
            prompt="Say 'ready' to set your preferences or 'skip' to start searching.",
            transitions=[
                Transition(on_keyword("ready"), "setting_preferences", "setup_preferences", "Set up user preferences"),
                Transition(on_keyword("skip"), "first_search", "skip_to_search", "Skip to first search"),
                Transition(ALWAYS, "setting_preferences", "setup_preferences", "Set up user preferences"),
            ],
        ),
        "setting_preferences": StateDefinition(
            prompt="Tell me your preferred area, budget and property type.",
            transitions=[
                Transition(ALWAYS, "first_search", "start_first_search", "Start first property search"),
            ],
        ),
        "first_search": StateDefinition(
            prompt="Now tell me what you are looking for.",
            transitions=[
                Transition(ALWAYS, COMPLETED, "search_properties", "Run first search and complete onboarding"),
            ],
        ),
        COMPLETED: StateDefinition(prompt="You're all set."),
    },
)


FLOWS: Dict[FlowName, FlowDefinition] = {
    flow.name: flow
    for flow in (PROPERTY_SEARCH_FLOW, BOOKING_FLOW, PREFERENCE_SETUP_FLOW, SUPPORT_FLOW, ONBOARDING_FLOW)
}

DEFAULT_FLOW = FlowName.PROPERTY_SEARCH

# Default flow entered for a classified intent
INTENT_FLOW_MAP: Dict[IntentType, FlowName] = {
    IntentType.SEARCH_PROPERTY: FlowName.PROPERTY_SEARCH,
    IntentType.BOOK_TOUR: FlowName.BOOKING,
    IntentType.HELP: FlowName.SUPPORT,
    IntentType.GREETING: FlowName.PROPERTY_SEARCH,
    IntentType.INFO_REQUEST: FlowName.SUPPORT,
    IntentType.PREFERENCE_UPDATE: FlowName.PREFERENCE_SETUP,
}

# Words that switch flows regardless of the active one
FLOW_SWITCH_TRIGGERS: List[tuple] = [
    (FlowName.BOOKING, ("book", "schedule", "tour"), IntentType.BOOK_TOUR),
    (FlowName.SUPPORT, ("help", "support", "problem"), IntentType.HELP),
    (FlowName.PREFERENCE_SETUP, ("preferences", "settings", "profile"), None),
]
