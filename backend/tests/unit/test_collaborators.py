# backend/tests/unit/test_collaborators.py

import httpx
import pytest
from unittest.mock import AsyncMock

from djula.models.domain import OrderItem, PaymentMethod
from djula.services.collaborators import CommerceAPIClient
from djula.utils.errors import ActionError


def response(status_code=200, body=None):
    return httpx.Response(status_code, json=body if body is not None else {})


@pytest.fixture
def client():
    return CommerceAPIClient("http://commerce.test/api", "key", "seller-1")


@pytest.mark.asyncio
async def test_search_parses_wrapped_camel_case_products(client, mocker):
    body = {"success": True, "data": [
        {"_id": "42", "name": "Boubou", "price": 12500, "imageUrl": "https://cdn/42.jpg", "stock": 3},
        {"name": "missing id"},
    ]}
    call = mocker.patch.object(client, "resilient_api_call", AsyncMock(return_value=response(200, body)))

    products = await client.catalog.search(term="boubou", limit=5)

    assert [p.id for p in products] == ["42"]
    assert products[0].primary_image == "https://cdn/42.jpg"
    assert call.await_args.kwargs["params"] == {"limit": 5, "sellerId": "seller-1", "search": "boubou"}


@pytest.mark.asyncio
async def test_missing_product_is_none(client, mocker):
    mocker.patch.object(client, "resilient_api_call", AsyncMock(return_value=response(404, {"error": "not found"})))
    assert await client.catalog.get("404") is None


@pytest.mark.asyncio
async def test_server_error_raises_action_error(client, mocker):
    mocker.patch.object(client, "resilient_api_call", AsyncMock(return_value=response(500, {"error": "boom"})))
    with pytest.raises(ActionError) as exc_info:
        await client.orders.get("ORD1")
    assert exc_info.value.operation == "orders_get"


@pytest.mark.asyncio
async def test_transport_error_raises_action_error(client, mocker):
    mocker.patch.object(client, "resilient_api_call", AsyncMock(side_effect=httpx.ConnectError("refused")))
    with pytest.raises(ActionError):
        await client.catalog.similar("42")


@pytest.mark.asyncio
async def test_order_creation_payload(client, mocker):
    body = {"data": {"id": "ORD1", "totalAmount": 25000, "status": "PENDING", "items": [{"productId": "42", "quantity": 2}]}}
    call = mocker.patch.object(client, "resilient_write_call", AsyncMock(return_value=response(201, body)))

    order = await client.orders.create("+2250701020304", "seller-1", [OrderItem(product_id="42", quantity=2)])

    assert order.id == "ORD1"
    assert order.total_amount == 25000
    sent = call.await_args.kwargs["json"]
    assert sent["customerId"] == "+2250701020304"
    assert sent["items"] == [{"productId": "42", "quantity": 2, "price": 0.0}]
    assert sent["source"] == "whatsapp"


@pytest.mark.asyncio
async def test_inactive_payment_methods_are_dropped(client, mocker):
    body = {"data": [
        {"id": "orange", "type": "mobile_money", "name": "Orange Money", "isActive": True},
        {"id": "old", "type": "card", "name": "Old card", "isActive": False},
    ]}
    mocker.patch.object(client, "resilient_api_call", AsyncMock(return_value=response(200, body)))

    methods = await client.payments.list_methods("+2250701020304")
    assert [m.id for m in methods] == ["orange"]


@pytest.mark.asyncio
async def test_payment_initiation_keeps_method_details(client, mocker):
    body = {"data": {"amount": 25000, "reference": "DJ-ORD1", "status": "PENDING"}}
    mocker.patch.object(client, "resilient_write_call", AsyncMock(return_value=response(200, body)))
    method = PaymentMethod(id="orange", type="mobile_money", name="Orange Money", merchant_number="0700000000")

    transaction = await client.payments.initiate("ORD1", method)

    assert transaction.order_id == "ORD1"
    assert transaction.method_type == "mobile_money"
    assert transaction.merchant_number == "0700000000"
    assert transaction.reference == "DJ-ORD1"


@pytest.mark.asyncio
async def test_preferences_default_to_french_when_unavailable(client, mocker):
    mocker.patch("djula.services.collaborators.cache_service.get", new_callable=AsyncMock, return_value=None)
    mocker.patch("djula.services.collaborators.cache_service.set", new_callable=AsyncMock)
    mocker.patch.object(client, "resilient_api_call", AsyncMock(side_effect=httpx.ConnectError("refused")))

    preferences = await client.customers.get_preferences("+2250701020304")
    assert preferences.preferred_language == "fr"
    assert preferences.preferred_categories == []


@pytest.mark.asyncio
async def test_preferences_are_parsed_and_cached(client, mocker):
    mocker.patch("djula.services.collaborators.cache_service.get", new_callable=AsyncMock, return_value=None)
    cache_set = mocker.patch("djula.services.collaborators.cache_service.set", new_callable=AsyncMock)
    body = {"data": {"preferredLanguage": "en", "preferredCategories": ["Mode"]}}
    mocker.patch.object(client, "resilient_api_call", AsyncMock(return_value=response(200, body)))

    preferences = await client.customers.get_preferences("+2250701020304")

    assert preferences.preferred_language == "en"
    assert preferences.preferred_categories == ["Mode"]
    cache_set.assert_awaited_once()


@pytest.mark.asyncio
async def test_order_creation_is_not_resent_after_a_read_error(client):
    requests = []

    def handler(request):
        requests.append(request.url.path)
        raise httpx.ReadError("connection reset", request=request)

    await client.http_client.aclose()
    client.http_client = httpx.AsyncClient(base_url=client.base_url, transport=httpx.MockTransport(handler))

    with pytest.raises(ActionError) as exc_info:
        await client.orders.create("+2250701020304", "seller-1", [OrderItem(product_id="42", quantity=1)])

    assert exc_info.value.operation == "orders_create"
    assert requests == ["/api/orders"]


@pytest.mark.asyncio
async def test_reads_are_retried_after_a_read_error(client, mocker):
    mocker.patch("asyncio.sleep", new_callable=AsyncMock)
    requests = []

    def handler(request):
        requests.append(request.url.path)
        if len(requests) == 1:
            raise httpx.ReadError("connection reset", request=request)
        return httpx.Response(200, json={"data": {"_id": "42", "name": "Boubou", "price": 12500}})

    await client.http_client.aclose()
    client.http_client = httpx.AsyncClient(base_url=client.base_url, transport=httpx.MockTransport(handler))

    product = await client.catalog.get("42")

    assert product.id == "42"
    assert requests == ["/api/products/42", "/api/products/42"]
