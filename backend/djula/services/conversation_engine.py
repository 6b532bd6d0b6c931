# /djula/services/conversation_engine.py

import asyncio
import logging
import time
from typing import List, Optional

from djula.config import strings
from djula.config.settings import settings
from djula.models.actions import Action, ActionType
from djula.models.conversation import (
    ActiveOrder, ContextUpdate, InboundMessage, Message, MessageMetadata,
    MessageRole, OutboundMessage, SessionState, SessionStateUpdate,
)
from djula.models.domain import CustomerPreferences, Order, PaymentStatus
from djula.services.cache_service import CacheService, cache_service
from djula.services.collaborators import Customers, commerce_client
from djula.services.context_service import ContextService, context_service, touch_session_data
from djula.services.db_service import DatabaseService, db_service
from djula.services.dispatch_service import DispatchService, dispatch_service
from djula.services.intent_service import IntentService, intent_service
from djula.services.render_service import render, text_with_suggestions
from djula.services.response_service import ResponseService, response_service, suggested_replies
from djula.services.whatsapp_service import WhatsAppService, whatsapp_service
from djula.utils.metrics import duplicate_delivery_counter, message_counter, turn_duration_histogram
from djula.utils.turn_executor import TurnExecutor
from djula.workflows.session_machine import InvalidTransitionError, SessionMachine, SessionTrigger, legacy_flags

# The conversation engine runs one turn per inbound message:
# dedup -> context -> intent -> actions -> session status -> reply -> render ->
# send -> persist. Every stage degrades on its own; anything that still escapes
# is answered with the static apology so a turn always ends with a message.

logger = logging.getLogger(__name__)

_SESSION_TRIGGERS = {
    ActionType.CREATE_ORDER: SessionTrigger.ORDER_CREATED,
    ActionType.PROCESS_PAYMENT: SessionTrigger.PAYMENT_INITIATED,
    ActionType.CANCEL_ORDER: SessionTrigger.ORDER_CANCELLED,
    ActionType.END_CONVERSATION: SessionTrigger.SESSION_ABANDONED,
}

_PRODUCT_ACTIONS = (
    ActionType.SHOW_PRODUCTS, ActionType.SHOW_RECOMMENDATIONS, ActionType.SHOW_SIMILAR_PRODUCTS,
)

_UNCHANGED = object()


def _active_order(order: Order) -> ActiveOrder:
    return ActiveOrder(id=order.id, status=order.status.value, items=[i.model_dump(mode="json") for i in order.items])


def _is_active_order(order: Order, state: SessionState) -> bool:
    return state.active_order is not None and order.id == state.active_order.id


def _referenced_products(actions: List[Action]) -> List[str]:
    product_ids = []
    for action in actions:
        if action.type == ActionType.SHOW_PRODUCT_DETAIL:
            product_ids.append(action.payload["product"].id)
        elif action.type in _PRODUCT_ACTIONS:
            product_ids.extend(p.id for p in action.payload.get("products") or [])
    return list(dict.fromkeys(product_ids))


class ConversationEngine:
    def __init__(
        self,
        context: ContextService,
        intents: IntentService,
        dispatcher: DispatchService,
        responder: ResponseService,
        channel: WhatsAppService,
        customers: Customers,
        deliveries: CacheService,
        store: DatabaseService,
        pacing_delay: float = 0.3,
    ):
        self.context = context
        self.intents = intents
        self.dispatcher = dispatcher
        self.responder = responder
        self.channel = channel
        self.customers = customers
        self.deliveries = deliveries
        self.store = store
        self.pacing_delay = pacing_delay

    async def handle_message(self, message: InboundMessage) -> List[Action]:
        """Runs one full turn and returns the actions it produced."""
        if not await self.deliveries.claim_delivery(message.message_id):
            duplicate_delivery_counter.inc()
            logger.info(f"Dropping duplicate delivery {message.message_id} from {message.customer_id}")
            return [Action(type=ActionType.DUPLICATE_DELIVERY, payload={"message_id": message.message_id})]

        await self.store.log_message({
            "wamid": message.message_id,
            "phone": message.customer_id,
            "direction": "inbound",
            "message_type": message.message_type,
            "content": message.content,
            "status": "received",
            "timestamp": message.timestamp,
        })

        start_time = time.monotonic()
        language = settings.default_language
        try:
            preferences = await self.customers.get_preferences(message.customer_id)
            language = preferences.preferred_language
            actions = await self._run_turn(message, preferences)
            message_counter.labels(status="success", message_type=message.message_type).inc()
            return actions
        except Exception as e:
            logger.error(f"Turn failed for {message.customer_id} (message {message.message_id}): {e}", exc_info=True)
            message_counter.labels(status="error", message_type=message.message_type).inc()
            await self._send_apology(message.customer_id, language)
            return [Action(type=ActionType.FALLBACK_REPLY, payload={"error": str(e)})]
        finally:
            turn_duration_histogram.observe(time.monotonic() - start_time)

    async def _run_turn(self, message: InboundMessage, preferences: CustomerPreferences) -> List[Action]:
        customer_id = message.customer_id
        language = preferences.preferred_language

        context = await self.context.get_context(customer_id)
        state = await self.context.get_state(customer_id)
        machine = SessionMachine(state.status)
        session_actions: List[Action] = []
        self._apply_trigger(machine, SessionTrigger.MESSAGE_RECEIVED, session_actions)

        intent = await self.intents.resolve(message.content, context, preferences)
        logger.info(f"Intent for {customer_id}: {intent.type.value} ({intent.confidence:.2f})")

        actions = await self.dispatcher.dispatch(intent, customer_id, state)
        order_update = self._advance_session(machine, state, actions, session_actions)
        actions.extend(session_actions)

        text = await self.responder.compose(intent, preferences, actions)
        suggestions = suggested_replies(intent.type, actions, language)
        await self.send_all(customer_id, render(text, suggestions, actions, language))

        await self.context.add_messages(customer_id, [
            Message(
                role=MessageRole.CUSTOMER,
                content=message.content,
                timestamp=message.timestamp,
                metadata=MessageMetadata(intent=intent.type, parameters=intent.parameters),
            ),
            Message(
                role=MessageRole.ASSISTANT,
                content=text,
                metadata=MessageMetadata(
                    intent=intent.type,
                    products=_referenced_products(actions),
                    error=any(a.type == ActionType.ERROR for a in actions),
                ),
            ),
        ])
        await self.context.update_context(customer_id, ContextUpdate(last_intent=intent))

        update = {
            "status": machine.status,
            "session_data": {**touch_session_data(intent.type.value), **legacy_flags(machine.status)},
        }
        if order_update is not _UNCHANGED:
            update["active_order"] = order_update
        await self.context.update_state(customer_id, SessionStateUpdate(**update))
        return actions

    def _advance_session(self, machine: SessionMachine, state: SessionState, actions: List[Action],
                         session_actions: List[Action]):
        """
        Moves the session status along with what the dispatcher did. Returns the
        new active order, None to clear it, or _UNCHANGED.
        """
        order_update = _UNCHANGED
        for action in actions:
            if action.type == ActionType.CANCEL_ORDER and not _is_active_order(action.payload["order"], state):
                logger.info(f"Cancelled order {action.payload['order'].id} is not the tracked order; session unchanged")
                continue

            trigger = _SESSION_TRIGGERS.get(action.type)
            if trigger and self._apply_trigger(machine, trigger, session_actions):
                if action.type == ActionType.CREATE_ORDER:
                    order_update = _active_order(action.payload["order"])
                elif action.type == ActionType.CANCEL_ORDER:
                    order_update = None

            if self._payment_verified(action, state):
                self._apply_trigger(machine, SessionTrigger.PAYMENT_VERIFIED, session_actions)
        return order_update

    @staticmethod
    def _payment_verified(action: Action, state: SessionState) -> bool:
        if action.type == ActionType.PROCESS_PAYMENT:
            return action.payload["transaction"].status == PaymentStatus.COMPLETED
        if action.type == ActionType.CHECK_ORDER_STATUS:
            order = action.payload["order"]
            return _is_active_order(order, state) and order.payment_status == PaymentStatus.COMPLETED
        return False

    @staticmethod
    def _apply_trigger(machine: SessionMachine, trigger: SessionTrigger, session_actions: List[Action]) -> bool:
        try:
            machine.transition(trigger)
            return True
        except InvalidTransitionError as e:
            logger.warning(f"Session transition rejected: {e}")
            session_actions.append(Action(
                type=ActionType.SESSION_TRANSITION_REJECTED,
                payload={"status": e.status.value, "trigger": e.trigger.value},
            ))
            return False

    async def send_all(self, customer_id: str, messages: List[OutboundMessage]) -> int:
        """Sends the parts of one reply in order with a pacing delay; returns how many were accepted."""
        sent = 0
        for index, outbound in enumerate(messages):
            if index:
                await asyncio.sleep(self.pacing_delay)
            if await self.channel.send(customer_id, outbound):
                sent += 1
        if sent < len(messages):
            logger.warning(f"Only {sent}/{len(messages)} reply parts reached {customer_id}")
        return sent

    async def _send_apology(self, customer_id: str, language: Optional[str]):
        apology = text_with_suggestions(
            strings.localized(strings.APOLOGY, language),
            strings.APOLOGY_SUGGESTIONS.get(language) or strings.APOLOGY_SUGGESTIONS[strings.DEFAULT_LANGUAGE],
        )
        try:
            await self.channel.send(customer_id, apology)
        except Exception as e:
            logger.error(f"Could not send the apology to {customer_id}: {e}")


# Globally accessible instances
conversation_engine = ConversationEngine(
    context=context_service,
    intents=intent_service,
    dispatcher=dispatch_service,
    responder=response_service,
    channel=whatsapp_service,
    customers=commerce_client.customers,
    deliveries=cache_service,
    store=db_service,
    pacing_delay=settings.send_pacing_delay,
)
turn_executor = TurnExecutor(conversation_engine.handle_message, idle_seconds=settings.turn_worker_idle_seconds)
