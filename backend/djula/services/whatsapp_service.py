# /djula/services/whatsapp_service.py

import httpx
import logging
import re
import json
import tenacity
from datetime import datetime
from typing import Optional

from djula.config.settings import settings
from djula.models.conversation import OutboundMessage
from djula.services.db_service import db_service
from djula.utils.circuit_breaker import CircuitBreaker
from djula.utils.errors import RenderError
from djula.utils.metrics import outbound_messages_counter
from djula.utils.rate_limiter import OutboundRateLimiter, outbound_rate_limiter

logger = logging.getLogger(__name__)


def clean_phone(phone: str) -> str:
    digits = re.sub(r"[^\d+]", "", phone)
    if not digits.startswith("+"):
        digits = "+" + digits.lstrip("+")
    return digits


class WhatsAppService:
    def __init__(self, access_token: str, phone_id: str, rate_limiter: OutboundRateLimiter,
                 api_version: str = "v18.0", base_url: str = "https://graph.facebook.com", timeout: float = 15.0):
        self.access_token = access_token
        self.phone_id = phone_id
        self.rate_limiter = rate_limiter
        self.http_client = httpx.AsyncClient(timeout=timeout)
        self.base_url = f"{base_url.rstrip('/')}/{api_version}"
        self.circuit_breaker = CircuitBreaker("whatsapp")

    @tenacity.retry(
        retry=tenacity.retry_if_exception_type((httpx.RequestError, httpx.TimeoutException)),
        stop=tenacity.stop_after_attempt(3),
        wait=tenacity.wait_exponential(multiplier=2, min=1, max=10),
        before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def resilient_api_call(self, func, *args, **kwargs):
        return await self.circuit_breaker.call(func, *args, **kwargs)

    async def send(self, customer_id: str, message: OutboundMessage) -> bool:
        """
        Sends one rendered message. The per-customer rate limit is soft: an
        over-limit send is logged and still attempted. Returns False instead of
        raising when WhatsApp rejects the message or cannot be reached.
        """
        self.rate_limiter.register_send(customer_id)
        try:
            message_id = await self._post(customer_id, message)
        except RenderError as e:
            logger.error(f"whatsapp_send_failed to {customer_id}: {e}")
            outbound_messages_counter.labels(message_type=message.type, status="rejected").inc()
            return False
        except Exception as e:
            logger.error(f"whatsapp_send_error to {customer_id}: {e}", exc_info=True)
            outbound_messages_counter.labels(message_type=message.type, status="error").inc()
            return False

        outbound_messages_counter.labels(message_type=message.type, status="sent").inc()
        await db_service.log_message({
            "wamid": message_id,
            "phone": customer_id,
            "direction": "outbound",
            "message_type": message.type,
            "content": json.dumps(message.body, ensure_ascii=False),
            "status": "sent",
            "timestamp": datetime.utcnow(),
        })
        return True

    async def _post(self, customer_id: str, message: OutboundMessage) -> Optional[str]:
        url = f"{self.base_url}/{self.phone_id}/messages"
        headers = {"Authorization": f"Bearer {self.access_token}", "Content-Type": "application/json"}
        payload = message.to_payload(clean_phone(customer_id))
        response = await self.resilient_api_call(self.http_client.post, url, json=payload, headers=headers)

        if response.status_code != 200:
            try:
                error_message = (response.json().get("error") or {}).get("message", "Unknown error")
            except ValueError:
                error_message = response.text[:200]
            raise RenderError(f"{response.status_code} - {error_message}")

        message_id = (response.json().get("messages") or [{}])[0].get("id")
        logger.info(f"WhatsApp {message.type} message sent to {customer_id}, wamid: {message_id}")
        return message_id

    async def close(self):
        await self.http_client.aclose()


# Globally accessible instance
whatsapp_service = WhatsAppService(
    settings.whatsapp_access_token,
    settings.whatsapp_phone_id,
    outbound_rate_limiter,
    api_version=settings.whatsapp_api_version,
    base_url=settings.whatsapp_base_url,
    timeout=settings.send_timeout_seconds,
)
