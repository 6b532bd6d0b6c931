# /djula/services/response_service.py

import json
import logging
from typing import List

from djula.config import persona, strings
from djula.models.actions import Action, ActionType, find_action
from djula.models.conversation import Intent, IntentType
from djula.models.domain import CustomerPreferences
from djula.services.ai_service import AIService, ai_service

logger = logging.getLogger(__name__)

MAX_REPLY_CHARS = 400
MAX_SUGGESTIONS = 3
# Keeps the action context in the prompt bounded when a search returns many products.
MAX_ACTIONS_CONTEXT_CHARS = 4000


def _actions_context(actions: List[Action]) -> str:
    dumped = json.dumps(
        [action.model_dump(mode="json", exclude_none=True) for action in actions],
        ensure_ascii=False,
        indent=2,
    )
    return dumped[:MAX_ACTIONS_CONTEXT_CHARS]


def build_response_prompt(intent: Intent, preferences: CustomerPreferences, actions: List[Action]) -> str:
    language = preferences.preferred_language
    language_phrase, language_name = persona.LANGUAGE_PHRASES.get(language, persona.LANGUAGE_PHRASES["fr"])
    return persona.RESPONSE_PROMPT_TEMPLATE.format(
        language_phrase=language_phrase,
        intent_type=intent.type.value,
        language=language,
        categories=", ".join(preferences.preferred_categories) or persona.NOT_SPECIFIED,
        actions=_actions_context(actions),
        language_name=language_name,
        max_chars=MAX_REPLY_CHARS,
    )


def suggested_replies(intent_type: IntentType, actions: List[Action], language: str = strings.DEFAULT_LANGUAGE) -> List[str]:
    """Static quick replies for an intent, refined by what the dispatcher actually did."""
    replies = strings.SUGGESTED_REPLIES.get(language) or strings.SUGGESTED_REPLIES[strings.DEFAULT_LANGUAGE]
    key = intent_type.value

    if intent_type == IntentType.CATALOG_BROWSE:
        shown = find_action(actions, ActionType.SHOW_PRODUCTS)
        if shown and shown.payload.get("products"):
            key = "CATALOG_BROWSE_WITH_PRODUCTS"
    elif intent_type == IntentType.PRODUCT_QUERY and find_action(actions, ActionType.SHOW_PRODUCT_DETAIL):
        key = "PRODUCT_QUERY_WITH_DETAIL"
    elif intent_type == IntentType.ORDER_PLACEMENT and find_action(actions, ActionType.CREATE_ORDER):
        key = "ORDER_PLACEMENT_CREATED"

    return list(replies.get(key, replies["UNKNOWN"]))[:MAX_SUGGESTIONS]


class ResponseService:
    def __init__(self, ai: AIService):
        self.ai = ai

    async def compose(self, intent: Intent, preferences: CustomerPreferences, actions: List[Action]) -> str:
        """Writes the reply text for a turn. Never raises: falls back to a static apology."""
        fallback = strings.localized(strings.COMPOSE_FALLBACK, preferences.preferred_language)
        try:
            text = await self.ai.generate_text(build_response_prompt(intent, preferences, actions), max_tokens=300)
        except Exception as e:
            logger.error(f"Reply composition failed for intent {intent.type.value}: {e}")
            return fallback
        return text.strip() or fallback


# Globally accessible instance
response_service = ResponseService(ai_service)
