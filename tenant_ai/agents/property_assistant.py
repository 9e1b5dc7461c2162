"""
Property Assistant - Core entry point for the conversational property search

Responsibilities:
1. Route each inbound message (text or button) through the flow engine
2. Run hard-filtered searches on search steps and keep results in context
3. Serve personalized recommendations
4. Record interactions and fold them into the user's preference profile

Every public call holds the user's lock for its whole read-modify-write, so one
user's messages apply in arrival order while different users run concurrently.
No collaborator failure escapes: degraded answers beat no answer.
"""

import asyncio
from datetime import datetime
from typing import List, Optional, Set, Tuple, Union

from loguru import logger

from ..algorithms import preference_learner
from ..algorithms.ranking import RankingEngine, RankingTarget, ranking_engine
from ..config import settings
from ..exceptions import CatalogUnavailableError
from ..flows.flow_engine import ConversationFlowEngine
from ..interfaces.catalog import PropertyCatalog
from ..interfaces.conversation_store import ConversationStore
from ..interfaces.interaction_log import InteractionLog
from ..interfaces.profile_store import ProfileStore
from ..nlp.criteria_extractor import CriteriaExtractor, criteria_extractor
from ..nlp.intent_classifier import IntentClassifier, intent_classifier
from ..schemas.assistant_schemas import (
    Conversation,
    FlowName,
    Interaction,
    InteractionAction,
    PreferenceProfile,
    PropertyCandidate,
    RouteResult,
    ScoredProperty,
    UserSnapshot,
)
from ..utils.time_utils import utcnow
from ..utils.user_locks import UserLocks
from .recommendation_engine import RecommendationEngine


BUTTON_ACTIONS = {
    InteractionAction.VIEW,
    InteractionAction.SAVE,
    InteractionAction.BOOK,
    InteractionAction.CONTACT,
    InteractionAction.SHARE,
    InteractionAction.SKIP,
    InteractionAction.UNSAVE,
}

# Flow actions that put listings in front of the user
SEARCH_ACTIONS = {
    "search_properties",
    "search_with_refined_criteria",
    "show_all_properties",
    "show_more_results",
}


def parse_button(button_id: Optional[str]) -> Optional[Tuple[InteractionAction, str]]:
    """'<action>_<property_id>' -> (action, property_id); None if not a property button"""
    if not button_id or "_" not in button_id:
        return None
    action, property_id = button_id.split("_", 1)
    try:
        parsed = InteractionAction(action.lower())
    except ValueError:
        return None
    if parsed not in BUTTON_ACTIONS or not property_id:
        return None
    return parsed, property_id


class PropertyAssistant:
    """
    Conversational property-search core

    Collaborators default to in-memory/Redis stores from settings;
    a catalog must be supplied.
    """

    def __init__(
        self,
        catalog: PropertyCatalog,
        conversation_store: Optional[ConversationStore] = None,
        profile_store: Optional[ProfileStore] = None,
        interaction_log: Optional[InteractionLog] = None,
        flow_engine: Optional[ConversationFlowEngine] = None,
        classifier: Optional[IntentClassifier] = None,
        extractor: Optional[CriteriaExtractor] = None,
        ranking: Optional[RankingEngine] = None,
        recommender: Optional[RecommendationEngine] = None,
        timeout: float = settings.CATALOG_TIMEOUT_SECONDS,
    ):
        self.catalog = catalog
        self.conversation_store = conversation_store or ConversationStore()
        self.profile_store = profile_store or ProfileStore()
        self.interaction_log = interaction_log or InteractionLog()
        self.classifier = classifier or intent_classifier
        self.flow_engine = flow_engine or ConversationFlowEngine(classifier=self.classifier)
        self.extractor = extractor or criteria_extractor
        self.ranking = ranking or ranking_engine
        self.recommender = recommender or RecommendationEngine(
            catalog=catalog,
            interaction_log=self.interaction_log,
            ranking=self.ranking,
            timeout=timeout,
        )
        self.timeout = timeout

        self.user_locks = UserLocks()
        self._pending: Set[asyncio.Task] = set()

        logger.info("PropertyAssistant initialized")

    # ============================================
    # Public API
    # ============================================

    async def route(
        self,
        user_id: str,
        text: Optional[str],
        button_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RouteResult:
        """
        Handle one inbound message

        Args:
            user_id: User identifier
            text: Message text (may be empty for button presses)
            button_id: Optional '<action>_<property_id>' button
            now: Clock override for tests

        Returns:
            RouteResult with the flow decision (and listings on search steps)
        """
        now = now or utcnow()
        async with self.user_locks.hold(user_id):
            conversation = await self._load_conversation(user_id)
            profile = await self._load_profile(user_id)

            button = parse_button(button_id)
            if button_id and button is None:
                logger.warning(f"Ignoring unrecognised button '{button_id}' from {user_id}")
            if button is not None:
                action, property_id = button
                conversation.context["selected_property_id"] = property_id
                interaction = Interaction(user_id=user_id, action=action, property_id=property_id, timestamp=now)
                profile = await self._learn_locked(user_id, interaction, None, profile, now)
                if not text or not text.strip():
                    text = action.value

            user = await self._snapshot(user_id, conversation, profile)
            intent = self.classifier.classify(text)
            result = self.flow_engine.determine_flow(user, conversation, text, intent, now=now)

            if result.action in SEARCH_ACTIONS:
                result.results = await self._search_step(conversation, text, result.action, profile, now)

            await self._save_conversation(conversation)
            return result

    async def search(self, text: Optional[str], user_id: str, now: Optional[datetime] = None) -> List[ScoredProperty]:
        """
        Hard-filtered search ranked against the criteria and the user's profile

        Returns:
            Ranked list; empty when nothing matches or the catalog is unavailable
        """
        now = now or utcnow()
        async with self.user_locks.hold(user_id):
            profile = await self._load_profile(user_id)
            return await self._search_locked(text, user_id, profile, now)

    async def recommend(
        self,
        user_id: str,
        limit: int = settings.DEFAULT_RECOMMENDATIONS,
        now: Optional[datetime] = None,
    ) -> List[ScoredProperty]:
        profile = await self._load_profile(user_id)
        return await self.recommender.recommend(user_id, profile, limit, now)

    async def learn(
        self,
        user_id: str,
        interaction: Interaction,
        candidate: Optional[PropertyCandidate] = None,
        now: Optional[datetime] = None,
    ) -> PreferenceProfile:
        """
        Record an interaction and fold it into the user's profile

        Returns:
            The updated profile (returned even if persisting it failed)
        """
        now = now or utcnow()
        async with self.user_locks.hold(user_id):
            profile = await self._load_profile(user_id)
            return await self._learn_locked(user_id, interaction, candidate, profile, now)

    async def resume(self, user_id: str, flow: Union[FlowName, str], now: Optional[datetime] = None) -> RouteResult:
        """Resume an interrupted flow where it was left"""
        async with self.user_locks.hold(user_id):
            conversation = await self._load_conversation(user_id)
            result = self.flow_engine.resume_flow(conversation, flow, now=now)
            await self._save_conversation(conversation)
            return result

    async def similar(self, property_id: str, limit: int = 5) -> List[PropertyCandidate]:
        return await self.recommender.similar_properties(property_id, limit)

    async def profile_summary(self, user_id: str) -> dict:
        profile = await self._load_profile(user_id) or preference_learner.reset_profile()
        return preference_learner.summarize(profile)

    async def drain(self):
        """Wait for fire-and-forget interaction writes"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ============================================
    # Internals (caller holds the user's lock)
    # ============================================

    async def _search_step(
        self,
        conversation: Conversation,
        text: Optional[str],
        action: str,
        profile: Optional[PreferenceProfile],
        now: datetime,
    ) -> List[ScoredProperty]:
        context = conversation.context
        page_size = settings.RESULTS_PAGE_SIZE

        if action == "show_more_results":
            query = context.get("last_query", "")
            offset = context.get("results_offset", 0) + page_size
        elif action == "show_all_properties":
            query, offset = "", 0
        else:
            query, offset = text or "", 0

        ranked = await self._search_locked(query, conversation.user_id, profile, now, record=offset == 0)
        page = ranked[offset:offset + page_size]

        context["last_query"] = query
        context["results_offset"] = offset
        context["search_results"] = [item.property.id for item in ranked]
        return page

    async def _search_locked(
        self,
        text: Optional[str],
        user_id: str,
        profile: Optional[PreferenceProfile],
        now: datetime,
        record: bool = True,
    ) -> List[ScoredProperty]:
        criteria = self.extractor.extract(text)

        try:
            candidates = await asyncio.wait_for(
                self.catalog.query(criteria, settings.SEARCH_RESULT_LIMIT), timeout=self.timeout
            )
        except (CatalogUnavailableError, asyncio.TimeoutError) as e:
            logger.warning(f"Catalog unavailable for search by {user_id}: {e!r}")
            candidates = []

        matches = self.ranking.filter_by_criteria(candidates, criteria)
        target = RankingTarget.from_criteria(criteria)
        if profile is not None:
            target = target.merged(RankingTarget.from_profile(profile))
        ranked = self.ranking.rank(matches, target, now=now)

        if not ranked:
            logger.info(f"No matches for {user_id}: {criteria.model_dump(exclude_none=True)}")

        if record:
            interaction = Interaction(
                user_id=user_id,
                action=InteractionAction.SEARCH,
                timestamp=now,
                search_terms=self.extractor.extract_search_terms(text),
                search_method="text",
            )
            await self._learn_locked(user_id, interaction, None, profile, now)

        return ranked

    async def _learn_locked(
        self,
        user_id: str,
        interaction: Interaction,
        candidate: Optional[PropertyCandidate],
        profile: Optional[PreferenceProfile],
        now: datetime,
    ) -> PreferenceProfile:
        self._record_interaction(user_id, interaction)

        if candidate is None and interaction.property_id:
            try:
                candidate = await asyncio.wait_for(
                    self.catalog.get_property(interaction.property_id), timeout=self.timeout
                )
            except (CatalogUnavailableError, asyncio.TimeoutError) as e:
                logger.warning(f"Could not fetch {interaction.property_id} to learn from: {e!r}")

        updated = preference_learner.learn(profile, interaction, candidate, now)
        await self._save_profile(user_id, updated)
        return updated

    def _record_interaction(self, user_id: str, interaction: Interaction):
        """Fire-and-forget append to the interaction log"""
        task = asyncio.create_task(self._write_interaction(user_id, interaction))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write_interaction(self, user_id: str, interaction: Interaction):
        try:
            await self.interaction_log.record(user_id, interaction)
        except Exception as e:
            logger.error(f"Failed to record {interaction.action.value} for {user_id}: {e}")

    async def _snapshot(
        self,
        user_id: str,
        conversation: Conversation,
        profile: Optional[PreferenceProfile],
    ) -> UserSnapshot:
        try:
            interaction_count = await self.interaction_log.count(user_id)
        except Exception as e:
            logger.error(f"Could not count interactions for {user_id}: {e}")
            interaction_count = 0
        return UserSnapshot(
            user_id=user_id,
            created_at=conversation.created_at,
            interaction_count=interaction_count,
            has_preferences=profile is not None and profile.has_signal(),
        )

    async def _load_conversation(self, user_id: str) -> Conversation:
        try:
            return await self.conversation_store.load(user_id)
        except Exception as e:
            logger.error(f"Failed to load conversation for {user_id}, starting fresh: {e}")
            return Conversation(user_id=user_id)

    async def _save_conversation(self, conversation: Conversation):
        try:
            await self.conversation_store.save(conversation)
        except Exception as e:
            logger.error(f"Failed to save conversation for {conversation.user_id}: {e}")

    async def _load_profile(self, user_id: str) -> Optional[PreferenceProfile]:
        try:
            return await self.profile_store.load(user_id)
        except Exception as e:
            logger.error(f"Failed to load profile for {user_id}: {e}")
            return None

    async def _save_profile(self, user_id: str, profile: PreferenceProfile):
        try:
            await self.profile_store.save(user_id, profile)
        except Exception as e:
            logger.error(f"Failed to save profile for {user_id}: {e}")
