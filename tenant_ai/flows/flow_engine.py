# flows/flow_engine.py
"""
Conversation Flow Engine
Per-conversation state machine driven by the declarative tables in flow_definitions.

Decision order for an inbound message:
1. New user -> onboarding (welcome)
2. Explicit switch trigger -> interrupt the active flow, start the requested one
3. Active flow with recent activity -> continue it
4. Otherwise -> start the default flow for the classified intent

Configuration defects (unknown flow, undeclared step) never reach the caller:
they are logged and the conversation falls back to the search flow.
"""

import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple, Union

from loguru import logger

from ..config import settings
from ..nlp.intent_classifier import IntentClassifier, intent_classifier
from ..schemas.assistant_schemas import (
    CompletedFlow,
    Conversation,
    FlowEvent,
    FlowHistoryEntry,
    FlowName,
    IntentResult,
    IntentType,
    InterruptedFlow,
    NextAction,
    RouteResult,
    StepTransition,
    UserSnapshot,
)
from ..utils.time_utils import as_utc, hours_between, utcnow
from .flow_definitions import (
    COMPLETED,
    DEFAULT_FLOW,
    FLOW_SWITCH_TRIGGERS,
    FLOWS,
    INTENT_FLOW_MAP,
    Condition,
    ConditionKind,
    ContextPredicate,
    FlowDefinition,
)


NEW_USER_MAX_AGE = timedelta(days=1)
NEW_USER_MAX_INTERACTIONS = 5


def _keyword_pattern(keyword: str) -> re.Pattern:
    return re.compile(r"\b" + re.escape(keyword.lower()) + r"\b")


class ConversationFlowEngine:
    """
    Drives Conversation.current_flow / current_step.

    Mutates the Conversation it is given; persisting it is the caller's job.
    """

    def __init__(
        self,
        flows: Optional[Dict[FlowName, FlowDefinition]] = None,
        classifier: Optional[IntentClassifier] = None,
        context_retention_hours: float = settings.CONTEXT_RETENTION_HOURS,
    ):
        self.flows = flows if flows is not None else FLOWS
        self.classifier = classifier or intent_classifier
        self.context_retention_hours = context_retention_hours

        self.switch_triggers: List[Tuple[FlowName, List[re.Pattern], Optional[IntentType]]] = [
            (flow, [_keyword_pattern(keyword) for keyword in keywords], intent)
            for flow, keywords, intent in FLOW_SWITCH_TRIGGERS
        ]

        logger.info(f"ConversationFlowEngine initialized with {len(self.flows)} flows")

    # ============================================
    # Flow selection
    # ============================================

    def determine_flow(
        self,
        user: Optional[UserSnapshot],
        conversation: Conversation,
        text: Optional[str],
        intent: Optional[IntentResult] = None,
        now: Optional[datetime] = None,
    ) -> RouteResult:
        """
        Decide which flow handles this message and advance it.

        Args:
            user: Facts about the user (None means an established user)
            conversation: The user's conversation, mutated in place
            text: Raw message text
            intent: Pre-computed classification (classified here when omitted)
            now: Clock override for tests

        Returns:
            RouteResult describing the flow, step and action taken
        """
        now = now or utcnow()
        intent = intent or self.classifier.classify(text)

        if self._has_invalid_state(conversation):
            return self._fallback(conversation, now, intent)

        if self.is_new_user(user, now) and self._should_onboard(conversation):
            logger.info(f"New user {conversation.user_id}: starting onboarding")
            return self.initiate_flow(conversation, FlowName.ONBOARDING, now=now, intent=intent)

        requested = self.detect_explicit_flow_request(text, intent)
        if requested is not None:
            if requested == conversation.current_flow and self.is_flow_active(conversation, now):
                return self.continue_flow(conversation, text, intent, now=now, user=user)
            return self.interrupt_flow(conversation, requested, now=now, intent=intent)

        if self.is_flow_active(conversation, now):
            return self.continue_flow(conversation, text, intent, now=now, user=user)

        if conversation.current_flow is not None:
            logger.info(
                f"Flow {conversation.current_flow.value} for {conversation.user_id} is stale, starting over"
            )

        return self.initiate_flow(conversation, self.map_intent_to_flow(intent.intent), now=now, intent=intent)

    def is_new_user(self, user: Optional[UserSnapshot], now: Optional[datetime] = None) -> bool:
        """Account younger than a day, fewer than 5 interactions, no preferences"""
        if user is None:
            return False
        now = now or utcnow()
        age = now - as_utc(user.created_at)
        return (
            age < NEW_USER_MAX_AGE
            and user.interaction_count < NEW_USER_MAX_INTERACTIONS
            and not user.has_preferences
        )

    def is_flow_active(self, conversation: Conversation, now: Optional[datetime] = None) -> bool:
        if conversation.current_flow is None:
            return False
        elapsed = hours_between(conversation.last_activity_at, now or utcnow())
        return elapsed < self.context_retention_hours

    def map_intent_to_flow(self, intent: IntentType) -> FlowName:
        return INTENT_FLOW_MAP.get(intent, DEFAULT_FLOW)

    def detect_explicit_flow_request(
        self, text: Optional[str], intent: Optional[IntentResult] = None
    ) -> Optional[FlowName]:
        """Flow named by a switch keyword or switch intent, if any"""
        message = (text or "").lower()
        for flow, patterns, trigger_intent in self.switch_triggers:
            if any(pattern.search(message) for pattern in patterns):
                return flow
            if intent is not None and trigger_intent is not None and intent.intent == trigger_intent:
                return flow
        return None

    # ============================================
    # Flow lifecycle
    # ============================================

    def initiate_flow(
        self,
        conversation: Conversation,
        flow_name: Union[FlowName, str],
        now: Optional[datetime] = None,
        intent: Optional[IntentResult] = None,
    ) -> RouteResult:
        """Start a flow at its initial state"""
        now = now or utcnow()
        definition = self._lookup(flow_name)
        if definition is None:
            logger.warning(f"Unknown flow '{flow_name}', falling back to {DEFAULT_FLOW.value}")
            return self._fallback(conversation, now, intent)

        previous_flow = conversation.current_flow
        previous_step = conversation.current_step
        conversation.flow_history.append(
            FlowHistoryEntry(flow=definition.name, started_at=now, previous_flow=previous_flow)
        )
        conversation.current_flow = definition.name
        conversation.current_step = definition.initial_state
        conversation.last_activity_at = now

        logger.info(
            f"Initiated flow {definition.name.value} for {conversation.user_id} "
            f"(previous={previous_flow.value if previous_flow else None})"
        )
        return self._result(
            conversation,
            event=FlowEvent.INITIATED,
            action=f"start_{definition.name.value}",
            previous_step=previous_step,
            intent=intent,
        )

    def continue_flow(
        self,
        conversation: Conversation,
        text: Optional[str],
        intent: Optional[IntentResult] = None,
        now: Optional[datetime] = None,
        user: Optional[UserSnapshot] = None,
    ) -> RouteResult:
        """
        Take the first transition of the current step whose condition holds.
        No match leaves the step unchanged.
        """
        now = now or utcnow()
        intent = intent or self.classifier.classify(text)

        if conversation.current_flow is None:
            return self.initiate_flow(conversation, self.map_intent_to_flow(intent.intent), now=now, intent=intent)
        if self._has_invalid_state(conversation):
            return self._fallback(conversation, now, intent)

        definition = self.flows[conversation.current_flow]
        step = conversation.current_step
        message = (text or "").lower().strip()

        for transition in definition.transitions_for(step):
            if not self._condition_holds(transition.condition, message, intent, conversation):
                continue

            conversation.step_history.append(StepTransition(
                flow=definition.name,
                from_step=step,
                to_step=transition.target,
                action=transition.action,
                trigger=intent.intent.value,
                timestamp=now,
            ))
            conversation.current_step = transition.target
            conversation.last_activity_at = now
            logger.info(
                f"{conversation.user_id}: {definition.name.value} {step} -> {transition.target} "
                f"({transition.condition.describe()}, action={transition.action})"
            )

            if transition.target == COMPLETED:
                prompt = definition.prompt_for(COMPLETED)
                self.complete_flow(conversation, now=now)
                return RouteResult(
                    flow=definition.name,
                    step=COMPLETED,
                    action=transition.action,
                    next_prompt=prompt,
                    event=FlowEvent.COMPLETED,
                    previous_step=step,
                    intent=intent.intent,
                    resumable_flows=self.resumable_flows(conversation),
                )

            return self._result(
                conversation,
                event=FlowEvent.CONTINUED,
                action=transition.action,
                previous_step=step,
                intent=intent,
            )

        conversation.last_activity_at = now
        logger.debug(f"{conversation.user_id}: no transition from {definition.name.value}.{step}")
        return self._result(conversation, event=FlowEvent.CONTINUED, previous_step=step, intent=intent)

    def interrupt_flow(
        self,
        conversation: Conversation,
        new_flow: Union[FlowName, str],
        reason: str = "user_request",
        now: Optional[datetime] = None,
        intent: Optional[IntentResult] = None,
    ) -> RouteResult:
        """Suspend the active flow on the interrupted stack and start new_flow"""
        now = now or utcnow()
        suspended = None
        if conversation.current_flow is not None and conversation.current_step is not None:
            suspended = InterruptedFlow(
                flow=conversation.current_flow,
                step=conversation.current_step,
                interrupted_at=now,
                reason=reason,
            )
            conversation.interrupted_flows.append(suspended)
            logger.info(
                f"Interrupted {suspended.flow.value}.{suspended.step} for {conversation.user_id} ({reason})"
            )

        result = self.initiate_flow(conversation, new_flow, now=now, intent=intent)
        if suspended is not None and result.event == FlowEvent.INITIATED:
            result.event = FlowEvent.INTERRUPTED
        return result

    def resume_flow(
        self,
        conversation: Conversation,
        flow_name: Union[FlowName, str],
        now: Optional[datetime] = None,
    ) -> RouteResult:
        """
        Restore the most recent interrupted entry for flow_name at its saved step.
        Starts the flow fresh when nothing was interrupted.
        """
        now = now or utcnow()
        definition = self._lookup(flow_name)
        if definition is None:
            logger.warning(f"Cannot resume unknown flow '{flow_name}', falling back to {DEFAULT_FLOW.value}")
            return self._fallback(conversation, now, None)

        for index in range(len(conversation.interrupted_flows) - 1, -1, -1):
            entry = conversation.interrupted_flows[index]
            if entry.flow != definition.name:
                continue

            conversation.interrupted_flows.pop(index)
            step = entry.step
            if not definition.has_state(step):
                logger.warning(
                    f"Interrupted step '{step}' is not declared in {definition.name.value}, using initial state"
                )
                step = definition.initial_state

            previous_step = conversation.current_step
            conversation.flow_history.append(
                FlowHistoryEntry(flow=definition.name, started_at=now, previous_flow=conversation.current_flow)
            )
            conversation.current_flow = definition.name
            conversation.current_step = step
            conversation.last_activity_at = now

            logger.info(f"Resumed {definition.name.value}.{step} for {conversation.user_id}")
            return self._result(conversation, event=FlowEvent.RESUMED, previous_step=previous_step)

        logger.info(f"No interrupted {definition.name.value} for {conversation.user_id}, starting fresh")
        return self.initiate_flow(conversation, definition.name, now=now)

    def complete_flow(
        self,
        conversation: Conversation,
        data: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Optional[CompletedFlow]:
        """Close the active flow and record it"""
        if conversation.current_flow is None:
            return None

        now = now or utcnow()
        record = CompletedFlow(flow=conversation.current_flow, completed_at=now, data=dict(data or {}))
        conversation.completed_flows.append(record)
        conversation.current_flow = None
        conversation.current_step = None
        conversation.last_activity_at = now

        logger.info(f"Completed flow {record.flow.value} for {conversation.user_id}")
        return record

    # ============================================
    # Introspection
    # ============================================

    def get_next_actions(self, flow_name: Union[FlowName, str, None], step: Optional[str]) -> List[NextAction]:
        """Transitions available from a step"""
        definition = self._lookup(flow_name) if flow_name is not None else None
        if definition is None or not definition.has_state(step):
            return []
        return [
            NextAction(action=transition.action, description=transition.description, target=transition.target)
            for transition in definition.transitions_for(step)
        ]

    def resumable_flows(self, conversation: Conversation) -> List[FlowName]:
        """Interrupted flows, most recent first, without duplicates"""
        flows: List[FlowName] = []
        for entry in reversed(conversation.interrupted_flows):
            if entry.flow not in flows:
                flows.append(entry.flow)
        return flows

    def get_context_summary(self, conversation: Conversation) -> Dict[str, Any]:
        return {
            "user_id": conversation.user_id,
            "current_flow": conversation.current_flow.value if conversation.current_flow else None,
            "current_step": conversation.current_step,
            "flow_count": len(conversation.flow_history),
            "step_count": len(conversation.step_history),
            "interrupted_flows": [flow.value for flow in self.resumable_flows(conversation)],
            "completed_flows": [record.flow.value for record in conversation.completed_flows],
            "context_keys": sorted(conversation.context.keys()),
            "last_activity_at": conversation.last_activity_at.isoformat() if conversation.last_activity_at else None,
        }

    # ============================================
    # Internals
    # ============================================

    def _lookup(self, flow_name: Union[FlowName, str]) -> Optional[FlowDefinition]:
        try:
            name = FlowName(flow_name)
        except ValueError:
            return None
        return self.flows.get(name)

    def _has_invalid_state(self, conversation: Conversation) -> bool:
        if conversation.current_flow is None:
            return False
        definition = self.flows.get(conversation.current_flow)
        if definition is None or not definition.has_state(conversation.current_step):
            logger.warning(
                f"Conversation {conversation.user_id} is in undeclared state "
                f"{conversation.current_flow.value}.{conversation.current_step}"
            )
            return True
        return False

    def _fallback(
        self, conversation: Conversation, now: datetime, intent: Optional[IntentResult]
    ) -> RouteResult:
        definition = self.flows[DEFAULT_FLOW]
        previous_step = conversation.current_step
        conversation.flow_history.append(
            FlowHistoryEntry(flow=definition.name, started_at=now, previous_flow=conversation.current_flow)
        )
        conversation.current_flow = definition.name
        conversation.current_step = definition.initial_state
        conversation.last_activity_at = now
        return self._result(conversation, event=FlowEvent.FALLBACK, previous_step=previous_step, intent=intent)

    def _should_onboard(self, conversation: Conversation) -> bool:
        """Onboarding is forced once; after a switch away it is only resumable"""
        if conversation.current_flow == FlowName.ONBOARDING:
            return False
        return not any(entry.flow == FlowName.ONBOARDING for entry in conversation.flow_history)

    def _condition_holds(
        self,
        condition: Condition,
        message: str,
        intent: Optional[IntentResult],
        conversation: Conversation,
    ) -> bool:
        kind = condition.kind
        if kind == ConditionKind.ALWAYS:
            return True
        if kind == ConditionKind.INTENT:
            return intent is not None and intent.intent.value == condition.value
        if kind == ConditionKind.KEYWORD:
            return bool(_keyword_pattern(condition.value).search(message))
        if kind == ConditionKind.PATTERN:
            return bool(re.search(condition.value, message, re.IGNORECASE))
        if kind == ConditionKind.CONTEXT:
            return self._context_predicate(condition.value, conversation)
        return False

    def _context_predicate(self, name: str, conversation: Conversation) -> bool:
        context = conversation.context
        if name == ContextPredicate.HAS_SEARCH_RESULTS.value:
            return bool(context.get("search_results"))
        if name == ContextPredicate.HAS_SELECTED_PROPERTY.value:
            return context.get("selected_property_id") is not None
        if name == ContextPredicate.HAS_BOOKING_DETAILS.value:
            return bool(context.get("booking_details"))
        if name == ContextPredicate.IS_FIRST_INTERACTION.value:
            return not conversation.step_history
        logger.warning(f"Unknown context predicate '{name}'")
        return False

    def _result(
        self,
        conversation: Conversation,
        event: FlowEvent,
        action: Optional[str] = None,
        previous_step: Optional[str] = None,
        intent: Optional[IntentResult] = None,
    ) -> RouteResult:
        flow = conversation.current_flow
        step = conversation.current_step
        definition = self.flows.get(flow) if flow is not None else None
        return RouteResult(
            flow=flow,
            step=step,
            action=action,
            next_prompt=definition.prompt_for(step) if definition else None,
            event=event,
            previous_step=previous_step,
            intent=intent.intent if intent else None,
            next_actions=self.get_next_actions(flow, step),
            resumable_flows=self.resumable_flows(conversation),
        )


# ============================================
# Global Instance
# ============================================

flow_engine = ConversationFlowEngine()
