# /djula/services/intent_service.py

import json
import logging
from typing import Optional, Dict, Any, Callable

from pydantic import ValidationError as PydanticValidationError

from djula.config import persona
from djula.config.settings import settings
from djula.models.conversation import ConversationContext, Intent, IntentContext, IntentType
from djula.models.domain import CustomerPreferences
from djula.services.ai_service import AIService, ai_service
from djula.utils.errors import ClassificationError
from djula.utils.metrics import intent_counter

# This service turns one inbound message into a structured Intent. Interactive
# reply ids produced by our own buttons and lists are parsed deterministically;
# free text is classified by the AI model with a validated JSON answer.

logger = logging.getLogger(__name__)

INTERACTIVE_PREFIXES = (
    "product_", "add_cart_", "buy_now_", "pay_", "filter_",
    "track_order_", "cancel_order_", "suggestion_",
)

CALL_FAILURE_CONFIDENCE = 0.3
PARSE_FAILURE_CONFIDENCE = 0.5


def is_interactive_id(message: str) -> bool:
    return message.startswith(INTERACTIVE_PREFIXES)


def _flags(context: ConversationContext, order_in_progress: Optional[bool] = None, product_discussion: bool = False) -> IntentContext:
    return IntentContext(
        previous_intent=context.last_intent.type if context.last_intent else None,
        order_in_progress=bool(context.current_order) if order_in_progress is None else order_in_progress,
        product_discussion=product_discussion,
    )


def _suggestion_intent(suggestion_id: str, context: ConversationContext) -> Intent:
    if suggestion_id == "0" or "product" in suggestion_id:
        return Intent(type=IntentType.CATALOG_BROWSE, confidence=0.9, context=_flags(context, product_discussion=True))
    if suggestion_id == "1" or "order" in suggestion_id:
        return Intent(type=IntentType.ORDER_STATUS, confidence=0.9, context=_flags(context))
    if suggestion_id == "2" or "help" in suggestion_id or "support" in suggestion_id:
        return Intent(type=IntentType.CUSTOMER_SUPPORT, confidence=0.9, context=_flags(context))
    return Intent(type=IntentType.UNKNOWN, confidence=CALL_FAILURE_CONFIDENCE, context=_flags(context))


def _payment_parameters(rest: str) -> Dict[str, Any]:
    # pay_order_<order> carries only the order; pay_<method>_<order> carries both.
    if rest.startswith("order_"):
        return {"order_id": rest[len("order_"):]}
    method_id, _, order_id = rest.partition("_")
    parameters: Dict[str, Any] = {"method_id": method_id}
    if order_id:
        parameters["order_id"] = order_id
    return parameters


_INTERACTIVE_PARSERS: Dict[str, Callable[[str, ConversationContext], Intent]] = {
    "cancel_order_": lambda rest, ctx: Intent(
        type=IntentType.ORDER_STATUS, confidence=1.0,
        parameters={"order_id": rest, "action": "cancel"}, context=_flags(ctx),
    ),
    "track_order_": lambda rest, ctx: Intent(
        type=IntentType.ORDER_STATUS, confidence=1.0,
        parameters={"order_id": rest}, context=_flags(ctx, order_in_progress=False),
    ),
    "suggestion_": lambda rest, ctx: _suggestion_intent(rest, ctx),
    "add_cart_": lambda rest, ctx: Intent(
        type=IntentType.ORDER_PLACEMENT, confidence=1.0,
        parameters={"product_id": rest, "quantity": 1, "action": "add_to_cart"},
        context=_flags(ctx, order_in_progress=True, product_discussion=True),
    ),
    "buy_now_": lambda rest, ctx: Intent(
        type=IntentType.ORDER_PLACEMENT, confidence=1.0,
        parameters={"product_id": rest, "quantity": 1, "action": "buy_now"},
        context=_flags(ctx, order_in_progress=True, product_discussion=True),
    ),
    "product_": lambda rest, ctx: Intent(
        type=IntentType.PRODUCT_QUERY, confidence=1.0,
        parameters={"product_id": rest}, context=_flags(ctx, product_discussion=True),
    ),
    "filter_": lambda rest, ctx: Intent(
        type=IntentType.CATALOG_BROWSE, confidence=1.0,
        parameters={"category": rest}, context=_flags(ctx, order_in_progress=False, product_discussion=True),
    ),
    "pay_": lambda rest, ctx: Intent(
        type=IntentType.PAYMENT, confidence=1.0,
        parameters=_payment_parameters(rest), context=_flags(ctx, order_in_progress=True),
    ),
}


def parse_interactive_id(message: str, context: ConversationContext) -> Intent:
    """Maps one of our own button/list reply ids to an Intent without any network call."""
    for prefix, parser in _INTERACTIVE_PARSERS.items():
        if message.startswith(prefix):
            return parser(message[len(prefix):], context)
    raise ValueError(f"Not an interactive reply id: {message!r}")


def build_intent_prompt(message: str, context: ConversationContext, preferences: CustomerPreferences, history_turns: int = 5) -> str:
    recent = context.history[-history_turns:]
    history = "\n".join(f"{m.role.value}: {m.content}" for m in recent) or persona.NO_HISTORY
    if context.current_order:
        current_order = f"Commande en cours: {context.current_order.model_dump_json(indent=2)}"
    else:
        current_order = persona.NO_CURRENT_ORDER
    previous_intent = context.last_intent.type.value if context.last_intent else ""
    return persona.INTENT_PROMPT_TEMPLATE.format(
        message=message,
        history=history,
        current_order=current_order,
        last_intent=f"Dernière intention: {previous_intent}" if previous_intent else "",
        language=preferences.preferred_language,
        categories=", ".join(preferences.preferred_categories) or persona.NOT_SPECIFIED,
        payment_methods=", ".join(preferences.preferred_payment_methods) or persona.NOT_SPECIFIED,
        previous_intent=previous_intent,
    )


class IntentService:
    def __init__(self, ai: AIService, history_turns: int = 5):
        self.ai = ai
        self.history_turns = history_turns

    async def resolve(self, message: str, context: ConversationContext, preferences: CustomerPreferences) -> Intent:
        """Never raises: classification problems degrade to an UNKNOWN intent."""
        if is_interactive_id(message):
            intent = parse_interactive_id(message, context)
            intent_counter.labels(intent_type=intent.type.value, source="interactive").inc()
            return intent

        try:
            intent = await self.classify(message, context, preferences)
            intent_counter.labels(intent_type=intent.type.value, source="model").inc()
            return intent
        except ClassificationError as e:
            logger.warning(f"Intent classification unusable for {context.customer_id}: {e}")
            confidence = PARSE_FAILURE_CONFIDENCE
        except Exception as e:
            logger.error(f"Intent classification call failed for {context.customer_id}: {e}")
            confidence = CALL_FAILURE_CONFIDENCE

        intent_counter.labels(intent_type=IntentType.UNKNOWN.value, source="fallback").inc()
        return Intent(type=IntentType.UNKNOWN, confidence=confidence, context=_flags(context))

    async def classify(self, message: str, context: ConversationContext, preferences: CustomerPreferences) -> Intent:
        """
        Asks the AI model for an intent. Raises ClassificationError when the
        answer is not a valid Intent and CompletionError when no model answers.
        """
        prompt = build_intent_prompt(message, context, preferences, self.history_turns)
        try:
            raw = await self.ai.generate_json(prompt)
        except json.JSONDecodeError as e:
            raise ClassificationError(f"unparsable model output: {e}") from e

        try:
            intent = Intent.model_validate(raw)
        except PydanticValidationError as e:
            raise ClassificationError(f"invalid intent shape: {e.error_count()} errors") from e

        return self._fill_context_flags(intent, context, raw)

    def _fill_context_flags(self, intent: Intent, context: ConversationContext, raw: Dict[str, Any]) -> Intent:
        provided = raw.get("context") if isinstance(raw.get("context"), dict) else {}
        defaults = _flags(context, product_discussion=intent.type in (IntentType.PRODUCT_QUERY, IntentType.CATALOG_BROWSE))
        for field in ("previous_intent", "order_in_progress", "product_discussion"):
            if provided.get(field) in (None, ""):
                setattr(intent.context, field, getattr(defaults, field))
        return intent


# Globally accessible instance
intent_service = IntentService(ai_service, history_turns=settings.classification_history_turns)
