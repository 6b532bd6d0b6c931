# /djula/services/context_service.py

import logging
from datetime import datetime
from typing import List, Optional

from djula.config import strings
from djula.config.settings import settings
from djula.models.conversation import (
    ConversationContext, ContextUpdate, Intent, Message, SessionState,
    SessionStateUpdate, ConversationStats,
)
from djula.services.cache_service import TTLCache
from djula.services.db_service import DatabaseService, db_service

# This service keeps each customer's conversation context (recent history and
# last intent) and session state, reading through an in-process TTL cache in
# front of MongoDB.

logger = logging.getLogger(__name__)


def merge_session_state(current: SessionState, update: SessionStateUpdate) -> SessionState:
    """
    Applies an update to a session state: `active_order` and `status` are
    replaced wholesale when provided, `session_data` is merged key by key.
    """
    merged = current.model_copy(deep=True)
    provided = update.model_fields_set
    if "active_order" in provided:
        merged.active_order = update.active_order
    if update.session_data:
        merged.session_data = {**merged.session_data, **update.session_data}
    if update.status is not None:
        merged.status = update.status
    return merged


def default_state() -> SessionState:
    state = SessionState()
    state.session_data["last_intent"] = "UNKNOWN"
    return state


class ContextService:
    def __init__(
        self,
        store: DatabaseService,
        context_cache: TTLCache[ConversationContext],
        state_cache: TTLCache[SessionState],
        history_limit: int = 20,
    ):
        self.store = store
        self.context_cache = context_cache
        self.state_cache = state_cache
        self.history_limit = history_limit

    # ==================== Reads ====================

    async def get_context(self, customer_id: str) -> ConversationContext:
        cached = self.context_cache.get(customer_id)
        if cached is not None:
            return cached.model_copy(deep=True)

        try:
            raw_messages = await self.store.get_recent_messages(customer_id, self.history_limit)
            raw_intent = await self.store.get_last_intent(customer_id)
        except Exception as e:
            logger.error(f"Could not load conversation context for {customer_id}: {e}")
            return ConversationContext(customer_id=customer_id)

        state = await self.get_state(customer_id)
        context = ConversationContext(
            customer_id=customer_id,
            history=[Message.model_validate(m) for m in raw_messages],
            last_intent=Intent.model_validate(raw_intent) if raw_intent else None,
            current_order=state.active_order,
        )
        self.context_cache.set(customer_id, context)
        return context.model_copy(deep=True)

    async def get_state(self, customer_id: str) -> SessionState:
        cached = self.state_cache.get(customer_id)
        if cached is not None:
            return cached.model_copy(deep=True)

        try:
            raw_state = await self.store.get_session_state(customer_id)
        except Exception as e:
            logger.error(f"Could not load session state for {customer_id}: {e}")
            return default_state()

        if raw_state is None:
            state = default_state()
            await self._persist_state(customer_id, state)
        else:
            state = SessionState.model_validate(raw_state)

        self.state_cache.set(customer_id, state)
        return state.model_copy(deep=True)

    # ==================== Writes ====================

    async def update_context(self, customer_id: str, update: ContextUpdate):
        if update.last_intent is not None:
            try:
                await self.store.append_intent(customer_id, update.last_intent.model_dump(mode="json"))
            except Exception as e:
                logger.error(f"Could not record intent for {customer_id}: {e}")

        if update.session_data:
            await self.update_state(customer_id, SessionStateUpdate(session_data=update.session_data))

        self.context_cache.invalidate(customer_id)

    async def update_state(self, customer_id: str, update: SessionStateUpdate) -> SessionState:
        current = await self.get_state(customer_id)
        merged = merge_session_state(current, update)
        await self._persist_state(customer_id, merged)
        self.state_cache.set(customer_id, merged)
        self.context_cache.invalidate(customer_id)
        return merged.model_copy(deep=True)

    async def add_messages(self, customer_id: str, messages: List[Message]):
        if not messages:
            return
        try:
            await self.store.append_messages(customer_id, [m.model_dump() for m in messages])
        except Exception as e:
            logger.error(f"Could not append {len(messages)} messages for {customer_id}: {e}")
        self.context_cache.invalidate(customer_id)

    async def clear(self, customer_id: str):
        """Deletes history and intents, resets the session to defaults and evicts both cache entries."""
        await self.store.delete_conversation(customer_id)
        await self._persist_state(customer_id, default_state())
        self.context_cache.invalidate(customer_id)
        self.state_cache.invalidate(customer_id)
        logger.info(f"Conversation context cleared for {customer_id}")

    async def _persist_state(self, customer_id: str, state: SessionState):
        try:
            await self.store.save_session_state(customer_id, state.model_dump())
        except Exception as e:
            logger.error(f"Could not persist session state for {customer_id}: {e}")

    def sweep(self) -> int:
        return self.context_cache.sweep() + self.state_cache.sweep()

    # ==================== History queries ====================

    async def search_history(self, customer_id: str, query: str, limit: int = 10, offset: int = 0) -> List[Message]:
        try:
            raw_messages = await self.store.search_messages(customer_id, query, limit=limit, offset=offset)
        except Exception as e:
            logger.error(f"History search failed for {customer_id}: {e}")
            return []
        return [Message.model_validate(m) for m in raw_messages]

    async def get_conversation_stats(self, customer_id: str, language: Optional[str] = None) -> ConversationStats:
        try:
            total, first, last = await self.store.get_message_stats(customer_id)
            intent_counts = await self.store.get_intent_counts(customer_id, top=3)
        except Exception as e:
            logger.error(f"Could not compute conversation stats for {customer_id}: {e}")
            return ConversationStats()

        topics = strings.INTENT_TOPICS.get(language or settings.default_language, strings.INTENT_TOPICS["fr"])
        return ConversationStats(
            total_messages=total,
            first_interaction=first,
            last_interaction=last,
            common_topics=[topics.get(intent_type, intent_type) for intent_type, _ in intent_counts],
        )


def touch_session_data(last_intent: str) -> dict:
    """The session_data fields refreshed on every turn."""
    return {"last_interaction": datetime.utcnow(), "last_intent": last_intent}


# Globally accessible instance
context_service = ContextService(
    store=db_service,
    context_cache=TTLCache("context", settings.context_cache_ttl_seconds, settings.context_cache_max_size),
    state_cache=TTLCache("state", settings.context_cache_ttl_seconds, settings.context_cache_max_size),
    history_limit=settings.history_limit,
)
