# /djula/services/dispatch_service.py

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from djula.config import strings
from djula.config.settings import settings
from djula.models.actions import Action, ActionType
from djula.models.conversation import Intent, IntentType, SessionState
from djula.models.domain import OrderItem, OrderStatus, PriceRange, ShippingAddress, TicketPriority
from djula.services.collaborators import Catalog, Customers, Orders, Payments, Support, commerce_client
from djula.utils.metrics import action_counter

# This service executes the business operation behind an Intent. Every
# collaborator call runs under a timeout and is isolated: a failure appends an
# ERROR action and the turn carries on with whatever else succeeded.

logger = logging.getLogger(__name__)

_FAILED = object()

UNKNOWN_SUGGESTED_ACTIONS = ["browse_catalog", "check_orders", "contact_support"]


def _search_term(parameters: Dict[str, Any]) -> Optional[str]:
    for key in ("search_term", "term", "query", "product_name", "product"):
        value = parameters.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _price_range(parameters: Dict[str, Any]) -> Optional[PriceRange]:
    raw = parameters.get("price_range")
    if isinstance(raw, dict):
        return PriceRange.from_api(raw)
    return None


def _order_items(parameters: Dict[str, Any]) -> List[OrderItem]:
    raw_items = parameters.get("items")
    if isinstance(raw_items, list):
        items = [OrderItem.from_api(item) for item in raw_items if isinstance(item, dict)]
        return [item for item in items if item is not None]
    product_id = parameters.get("product_id")
    if not product_id:
        return []
    try:
        quantity = max(int(parameters.get("quantity") or 1), 1)
    except (TypeError, ValueError):
        quantity = 1
    return [OrderItem(product_id=str(product_id), quantity=quantity)]


def _priority(parameters: Dict[str, Any]) -> TicketPriority:
    raw = str(parameters.get("priority") or "").upper()
    return TicketPriority(raw) if raw in TicketPriority.__members__ else TicketPriority.MEDIUM


class DispatchService:
    def __init__(
        self,
        catalog: Catalog,
        orders: Orders,
        payments: Payments,
        support: Support,
        customers: Customers,
        seller_id: str = "",
        timeout: float = 10.0,
        search_limit: int = 5,
        recommendation_limit: int = 3,
    ):
        self.catalog = catalog
        self.orders = orders
        self.payments = payments
        self.support = support
        self.customers = customers
        self.seller_id = seller_id
        self.timeout = timeout
        self.search_limit = search_limit
        self.recommendation_limit = recommendation_limit

    async def dispatch(self, intent: Intent, customer_id: str, state: SessionState) -> List[Action]:
        actions: List[Action] = []
        if intent.parameters.get("action") == "end_conversation":
            actions.append(Action(type=ActionType.END_CONVERSATION))
        else:
            handler = HANDLERS[intent.type]
            try:
                await handler(self, intent, customer_id, state, actions)
            except Exception as e:
                logger.error(f"Dispatch for {intent.type.value} failed for {customer_id}: {e}", exc_info=True)
                actions.append(self._error_action("dispatch", e))

        for action in actions:
            action_counter.labels(action_type=action.type.value).inc()
        return actions

    # --- Helpers ---

    def _error_action(self, operation: str, error: Exception) -> Action:
        return Action(
            type=ActionType.ERROR,
            payload={"operation": operation, "message": strings.ACTION_ERROR["fr"], "error": str(error)},
        )

    async def _call(self, actions: List[Action], operation: str, coro: Awaitable) -> Any:
        """Awaits one collaborator call; on failure records an ERROR action and returns _FAILED."""
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except Exception as e:
            logger.error(f"Collaborator call '{operation}' failed: {e!r}")
            actions.append(self._error_action(operation, e))
            return _FAILED

    async def _show_products(self, actions: List[Action], term: Optional[str], category: Optional[str],
                             price_range: Optional[PriceRange] = None):
        products = await self._call(
            actions, "catalog.search",
            self.catalog.search(term=term, category=category, price_range=price_range, limit=self.search_limit),
        )
        if products is _FAILED:
            return
        payload = {"term": term, "category": category}
        if products:
            actions.append(Action(type=ActionType.SHOW_PRODUCTS, payload={**payload, "products": products}))
        else:
            actions.append(Action(type=ActionType.NO_PRODUCTS_FOUND, payload=payload))

    # --- Intent handlers ---

    async def _catalog_browse(self, intent: Intent, customer_id: str, state: SessionState, actions: List[Action]):
        p = intent.parameters
        await self._show_products(actions, _search_term(p), p.get("category"), _price_range(p))

    async def _product_query(self, intent: Intent, customer_id: str, state: SessionState, actions: List[Action]):
        product_id = intent.parameters.get("product_id")
        if not product_id:
            await self._show_products(actions, _search_term(intent.parameters), intent.parameters.get("category"))
            return

        product = await self._call(actions, "catalog.get", self.catalog.get(str(product_id)))
        if product is None:
            actions.append(Action(type=ActionType.PRODUCT_NOT_FOUND, payload={"product_id": product_id}))
        elif product is not _FAILED:
            actions.append(Action(type=ActionType.SHOW_PRODUCT_DETAIL, payload={"product": product}))

        similar = await self._call(actions, "catalog.similar", self.catalog.similar(str(product_id), limit=3))
        if similar is not _FAILED and similar:
            actions.append(Action(type=ActionType.SHOW_SIMILAR_PRODUCTS, payload={"product_id": product_id, "products": similar}))

    async def _order_placement(self, intent: Intent, customer_id: str, state: SessionState, actions: List[Action]):
        p = intent.parameters
        items = _order_items(p)
        if not items:
            # Nothing identifiable to order yet: let the customer pick from the catalog.
            await self._show_products(actions, _search_term(p), p.get("category"))
            return

        address = ShippingAddress.from_api(p["shipping_address"]) if isinstance(p.get("shipping_address"), dict) else None
        order = await self._call(
            actions, "orders.create",
            self.orders.create(customer_id, self.seller_id, items, shipping_address=address, payment_method=p.get("payment_method")),
        )
        if order is not _FAILED:
            actions.append(Action(type=ActionType.CREATE_ORDER, payload={"order": order, "action": p.get("action")}))

    async def _order_status(self, intent: Intent, customer_id: str, state: SessionState, actions: List[Action]):
        p = intent.parameters
        order_id = p.get("order_id") or (state.active_order.id if state.active_order else None)

        if p.get("action") == "cancel":
            if not order_id:
                actions.append(Action(type=ActionType.NO_ACTIVE_ORDER))
                return
            order = await self._call(actions, "orders.update_status", self.orders.update_status(str(order_id), OrderStatus.CANCELLED))
            if order is not _FAILED:
                actions.append(Action(type=ActionType.CANCEL_ORDER, payload={"order": order}))
            return

        if order_id:
            order = await self._call(actions, "orders.get", self.orders.get(str(order_id)))
            if order is None:
                actions.append(Action(type=ActionType.NO_ORDERS_FOUND, payload={"order_id": order_id}))
            elif order is not _FAILED:
                actions.append(Action(type=ActionType.CHECK_ORDER_STATUS, payload={"order": order}))
            return

        recent = await self._call(actions, "orders.list_for_customer", self.orders.list_for_customer(customer_id))
        if recent is _FAILED:
            return
        if recent:
            actions.append(Action(type=ActionType.SHOW_RECENT_ORDERS, payload={"orders": recent}))
        else:
            actions.append(Action(type=ActionType.NO_ORDERS_FOUND))

    async def _payment(self, intent: Intent, customer_id: str, state: SessionState, actions: List[Action]):
        p = intent.parameters
        order_id = p.get("order_id") or (state.active_order.id if state.active_order else None)
        methods = await self._call(actions, "payments.list_methods", self.payments.list_methods(customer_id))
        if methods is _FAILED:
            return

        method_id = p.get("method_id")
        if not method_id:
            actions.append(Action(type=ActionType.SHOW_PAYMENT_METHODS, payload={"methods": methods, "order_id": order_id}))
            return

        method = next((m for m in methods if m.id == str(method_id)), None)
        if method is None:
            actions.append(Action(type=ActionType.PAYMENT_METHOD_UNAVAILABLE, payload={"method_id": method_id, "methods": methods, "order_id": order_id}))
            return
        if not order_id:
            actions.append(Action(type=ActionType.NO_ACTIVE_ORDER, payload={"method_id": method_id}))
            return

        transaction = await self._call(actions, "payments.initiate", self.payments.initiate(str(order_id), method))
        if transaction is not _FAILED:
            actions.append(Action(
                type=ActionType.PROCESS_PAYMENT,
                payload={"transaction": transaction, "method": method, "order_id": order_id},
            ))

    async def _customer_support(self, intent: Intent, customer_id: str, state: SessionState, actions: List[Action]):
        p = intent.parameters
        issue = p.get("issue") or strings.DEFAULT_SUPPORT_ISSUE
        ticket = await self._call(actions, "support.create_ticket", self.support.create_ticket(customer_id, str(issue), _priority(p)))
        if ticket is not _FAILED:
            actions.append(Action(type=ActionType.CREATE_SUPPORT_TICKET, payload={"ticket": ticket}))

    async def _unknown(self, intent: Intent, customer_id: str, state: SessionState, actions: List[Action]):
        actions.append(Action(type=ActionType.UNKNOWN_INTENT, payload={"suggested_actions": list(UNKNOWN_SUGGESTED_ACTIONS)}))
        recommended = await self._call(
            actions, "catalog.recommended", self.catalog.recommended(customer_id, limit=self.recommendation_limit)
        )
        if recommended is not _FAILED and recommended:
            actions.append(Action(type=ActionType.SHOW_RECOMMENDATIONS, payload={"products": recommended}))


HANDLERS: Dict[IntentType, Callable[..., Awaitable[None]]] = {
    IntentType.CATALOG_BROWSE: DispatchService._catalog_browse,
    IntentType.PRODUCT_QUERY: DispatchService._product_query,
    IntentType.ORDER_PLACEMENT: DispatchService._order_placement,
    IntentType.ORDER_STATUS: DispatchService._order_status,
    IntentType.PAYMENT: DispatchService._payment,
    IntentType.CUSTOMER_SUPPORT: DispatchService._customer_support,
    IntentType.UNKNOWN: DispatchService._unknown,
}

_missing_handlers = set(IntentType) - set(HANDLERS)
if _missing_handlers:
    raise RuntimeError(f"No dispatch handler for intent types: {sorted(t.value for t in _missing_handlers)}")


# Globally accessible instance
dispatch_service = DispatchService(
    catalog=commerce_client.catalog,
    orders=commerce_client.orders,
    payments=commerce_client.payments,
    support=commerce_client.support,
    customers=commerce_client.customers,
    seller_id=settings.seller_id,
    timeout=settings.collaborator_timeout_seconds,
    search_limit=settings.catalog_search_limit,
    recommendation_limit=settings.recommendation_limit,
)
