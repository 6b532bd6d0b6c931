# /djula/services/collaborators.py

import httpx
import logging
import tenacity
from typing import Any, Dict, List, Optional, Protocol

from djula.config.settings import settings
from djula.models.domain import (
    CustomerPreferences, Order, OrderItem, OrderStatus, PaymentMethod,
    PaymentTransaction, PriceRange, Product, ShippingAddress, SupportTicket, TicketPriority,
)
from djula.services.cache_service import cache_service
from djula.utils.errors import ActionError
from djula.utils.metrics import collaborator_calls_counter

# Interfaces of the seller back-office the conversation engine depends on, and
# CommerceAPIClient, the default implementation over its REST API.

logger = logging.getLogger(__name__)

PREFERENCES_CACHE_TTL = 300


class Catalog(Protocol):
    async def search(self, term: Optional[str] = None, category: Optional[str] = None,
                     price_range: Optional[PriceRange] = None, limit: int = 5) -> List[Product]: ...

    async def get(self, product_id: str) -> Optional[Product]: ...

    async def similar(self, product_id: str, limit: int = 3) -> List[Product]: ...

    async def recommended(self, customer_id: str, limit: int = 3) -> List[Product]: ...


class Orders(Protocol):
    async def create(self, customer_id: str, seller_id: str, items: List[OrderItem],
                     shipping_address: Optional[ShippingAddress] = None,
                     payment_method: Optional[str] = None) -> Order: ...

    async def get(self, order_id: str) -> Optional[Order]: ...

    async def update_status(self, order_id: str, status: OrderStatus) -> Order: ...

    async def list_for_customer(self, customer_id: str, limit: int = 5) -> List[Order]: ...


class Payments(Protocol):
    async def list_methods(self, customer_id: str) -> List[PaymentMethod]: ...

    async def initiate(self, order_id: str, method: PaymentMethod) -> PaymentTransaction: ...


class Support(Protocol):
    async def create_ticket(self, customer_id: str, issue: str,
                            priority: TicketPriority = TicketPriority.MEDIUM) -> SupportTicket: ...


class Customers(Protocol):
    async def get_preferences(self, customer_id: str) -> CustomerPreferences: ...


def _unwrap(body: Any) -> Any:
    """The back-office wraps most payloads as {"success": ..., "data": ...}."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _parse_list(model, body: Any) -> list:
    items = _unwrap(body) or []
    if isinstance(items, dict):
        items = items.get("items") or items.get("results") or []
    return [record for record in (model.from_api(item) for item in items) if record is not None]


def _parse_one(model, operation: str, body: Any):
    record = model.from_api(_unwrap(body) or {})
    if record is None:
        raise ActionError(operation, f"malformed {model.__name__} in response")
    return record


class CommerceAPIClient:
    """Transport for the back-office REST API, shared by the collaborator clients below."""

    def __init__(self, base_url: str, api_key: Optional[str], seller_id: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.seller_id = seller_id
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["X-API-KEY"] = api_key
        self.http_client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=5.0),
        )
        self.catalog = CatalogClient(self)
        self.orders = OrdersClient(self)
        self.payments = PaymentsClient(self)
        self.support = SupportClient(self)
        self.customers = CustomersClient(self)

    @tenacity.retry(
        retry=tenacity.retry_if_exception_type((httpx.RequestError, httpx.TimeoutException)),
        stop=tenacity.stop_after_attempt(3),
        wait=tenacity.wait_exponential(multiplier=2, min=1, max=10),
        before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def resilient_api_call(self, func, *args, **kwargs):
        return await func(*args, **kwargs)

    # Writes are only retried when the connection was never established.
    @tenacity.retry(
        retry=tenacity.retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
        stop=tenacity.stop_after_attempt(3),
        wait=tenacity.wait_exponential(multiplier=2, min=1, max=10),
        before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def resilient_write_call(self, func, *args, **kwargs):
        return await func(*args, **kwargs)

    async def request(self, operation: str, method: str, path: str, allow_404: bool = False, **kwargs) -> Any:
        """Performs one call, raising ActionError on transport errors and non-2xx answers."""
        try:
            call = self.resilient_api_call if method == "GET" else self.resilient_write_call
            resp = await call(self.http_client.request, method, path, **kwargs)
        except httpx.HTTPError as e:
            collaborator_calls_counter.labels(operation=operation, status="error").inc()
            raise ActionError(operation, f"transport error: {e}") from e

        if allow_404 and resp.status_code == 404:
            collaborator_calls_counter.labels(operation=operation, status="not_found").inc()
            return None
        if resp.status_code >= 400:
            collaborator_calls_counter.labels(operation=operation, status="error").inc()
            raise ActionError(operation, f"HTTP {resp.status_code}: {resp.text[:200]}")

        collaborator_calls_counter.labels(operation=operation, status="success").inc()
        return resp.json() if resp.content else None

    async def close(self):
        await self.http_client.aclose()


class CatalogClient:
    def __init__(self, api: CommerceAPIClient):
        self.api = api

    async def search(self, term: Optional[str] = None, category: Optional[str] = None,
                     price_range: Optional[PriceRange] = None, limit: int = 5) -> List[Product]:
        params: Dict[str, Any] = {"limit": limit}
        if self.api.seller_id:
            params["sellerId"] = self.api.seller_id
        if term:
            params["search"] = term
        if category:
            params["category"] = category
        if price_range:
            params["minPrice"] = price_range.min
            params["maxPrice"] = price_range.max
        body = await self.api.request("catalog_search", "GET", "/products", params=params)
        return _parse_list(Product, body)

    async def get(self, product_id: str) -> Optional[Product]:
        body = await self.api.request("catalog_get", "GET", f"/products/{product_id}", allow_404=True)
        return _parse_one(Product, "catalog_get", body) if body is not None else None

    async def similar(self, product_id: str, limit: int = 3) -> List[Product]:
        body = await self.api.request("catalog_similar", "GET", f"/products/{product_id}/similar", params={"limit": limit})
        return _parse_list(Product, body)

    async def recommended(self, customer_id: str, limit: int = 3) -> List[Product]:
        body = await self.api.request(
            "catalog_recommended", "GET", f"/customers/{customer_id}/recommendations", params={"limit": limit}
        )
        return _parse_list(Product, body)


class OrdersClient:
    def __init__(self, api: CommerceAPIClient):
        self.api = api

    async def create(self, customer_id: str, seller_id: str, items: List[OrderItem],
                     shipping_address: Optional[ShippingAddress] = None,
                     payment_method: Optional[str] = None) -> Order:
        payload = {
            "customerId": customer_id,
            "sellerId": seller_id,
            "items": [item.model_dump(by_alias=True, exclude_none=True) for item in items],
            "shippingAddress": shipping_address.model_dump(by_alias=True, exclude_none=True) if shipping_address else None,
            "paymentMethod": payment_method,
            "source": "whatsapp",
        }
        body = await self.api.request("orders_create", "POST", "/orders", json=payload)
        return _parse_one(Order, "orders_create", body)

    async def get(self, order_id: str) -> Optional[Order]:
        body = await self.api.request("orders_get", "GET", f"/orders/{order_id}", allow_404=True)
        return _parse_one(Order, "orders_get", body) if body is not None else None

    async def update_status(self, order_id: str, status: OrderStatus) -> Order:
        body = await self.api.request("orders_update_status", "PUT", f"/orders/{order_id}/status", json={"status": status.value})
        return _parse_one(Order, "orders_update_status", body)

    async def list_for_customer(self, customer_id: str, limit: int = 5) -> List[Order]:
        body = await self.api.request("orders_list", "GET", f"/customers/{customer_id}/orders", params={"limit": limit})
        return _parse_list(Order, body)


class PaymentsClient:
    def __init__(self, api: CommerceAPIClient):
        self.api = api

    async def list_methods(self, customer_id: str) -> List[PaymentMethod]:
        body = await self.api.request("payments_methods", "GET", "/payments/methods", params={"customerId": customer_id})
        return [m for m in _parse_list(PaymentMethod, body) if m.is_active]

    async def initiate(self, order_id: str, method: PaymentMethod) -> PaymentTransaction:
        payload = {"orderId": order_id, "methodId": method.id, "methodType": method.type}
        body = await self.api.request("payments_initiate", "POST", "/payments/initialize", json=payload)
        data = {
            "orderId": order_id,
            "methodId": method.id,
            "methodType": method.type,
            "methodName": method.name,
            "merchantNumber": method.merchant_number,
            **(_unwrap(body) or {}),
        }
        return _parse_one(PaymentTransaction, "payments_initiate", data)


class SupportClient:
    def __init__(self, api: CommerceAPIClient):
        self.api = api

    async def create_ticket(self, customer_id: str, issue: str,
                            priority: TicketPriority = TicketPriority.MEDIUM) -> SupportTicket:
        body = await self.api.request(
            "support_create_ticket", "POST", f"/customers/{customer_id}/support",
            json={"issue": issue, "priority": priority.value},
        )
        return _parse_one(SupportTicket, "support_create_ticket", body)


class CustomersClient:
    def __init__(self, api: CommerceAPIClient):
        self.api = api

    async def get_preferences(self, customer_id: str) -> CustomerPreferences:
        """Never raises: preferences fall back to the defaults (French, no filters)."""
        cache_key = f"prefs:{customer_id}"
        cached = await cache_service.get(cache_key)
        if cached:
            try:
                return CustomerPreferences.model_validate_json(cached)
            except ValueError:
                logger.warning(f"Discarding malformed cached preferences for {customer_id}")

        try:
            body = await self.api.request("customers_preferences", "GET", f"/customers/{customer_id}/preferences", allow_404=True)
        except ActionError as e:
            logger.warning(f"Using default preferences for {customer_id}: {e}")
            return CustomerPreferences(preferred_language=settings.default_language)

        preferences = CustomerPreferences.from_api(_unwrap(body) or {}) if body else None
        if preferences is None:
            preferences = CustomerPreferences(preferred_language=settings.default_language)
        await cache_service.set(cache_key, preferences.model_dump(mode="json"), ttl=PREFERENCES_CACHE_TTL)
        return preferences


# Globally accessible instance
commerce_client = CommerceAPIClient(
    settings.commerce_api_url,
    settings.commerce_api_key,
    settings.seller_id,
    timeout=settings.collaborator_timeout_seconds,
)
