# backend/tests/unit/test_whatsapp.py

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from djula.services.render_service import text_message
from djula.services.whatsapp_service import WhatsAppService, clean_phone
from djula.utils.rate_limiter import OutboundRateLimiter


@pytest.fixture
def service():
    return WhatsAppService("token", "1234567890", OutboundRateLimiter(limit=15, window_seconds=60))


def test_clean_phone():
    assert clean_phone("2250701020304") == "+2250701020304"
    assert clean_phone("+225 07 01 02 03 04") == "+2250701020304"


@pytest.mark.asyncio
async def test_send_message_success(service, mocker):
    mock_log = mocker.patch('djula.services.whatsapp_service.db_service.log_message', new_callable=AsyncMock)
    mock_response = AsyncMock(return_value=MagicMock(status_code=200, json=lambda: {"messages": [{"id": "wamid_123"}]}))
    mocker.patch.object(service, "resilient_api_call", mock_response)

    assert await service.send("+2250701020304", text_message("Bonjour")) is True

    mock_response.assert_awaited_once()
    payload = mock_response.await_args.kwargs["json"]
    assert payload["to"] == "+2250701020304"
    assert payload["type"] == "text"
    assert payload["text"] == {"body": "Bonjour"}
    assert mock_log.await_args.args[0]["wamid"] == "wamid_123"
    assert service.rate_limiter.count("+2250701020304") == 1


@pytest.mark.asyncio
async def test_rejected_message_returns_false(service, mocker):
    mock_log = mocker.patch('djula.services.whatsapp_service.db_service.log_message', new_callable=AsyncMock)
    rejected = MagicMock(status_code=400, json=lambda: {"error": {"message": "Invalid parameter"}})
    mocker.patch.object(service, "resilient_api_call", AsyncMock(return_value=rejected))

    assert await service.send("+2250701020304", text_message("Bonjour")) is False
    mock_log.assert_not_awaited()


@pytest.mark.asyncio
async def test_transport_error_returns_false(service, mocker):
    mocker.patch.object(service, "resilient_api_call", AsyncMock(side_effect=httpx.ConnectError("unreachable")))
    assert await service.send("+2250701020304", text_message("Bonjour")) is False


@pytest.mark.asyncio
async def test_over_limit_send_is_still_attempted(service, mocker):
    mocker.patch('djula.services.whatsapp_service.db_service.log_message', new_callable=AsyncMock)
    ok = AsyncMock(return_value=MagicMock(status_code=200, json=lambda: {"messages": [{"id": "wamid"}]}))
    mocker.patch.object(service, "resilient_api_call", ok)

    for _ in range(16):
        assert await service.send("+2250701020304", text_message("Bonjour")) is True
    assert ok.await_count == 16
