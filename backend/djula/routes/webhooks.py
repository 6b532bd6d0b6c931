# /djula/routes/webhooks.py

import json
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Query
from fastapi.responses import JSONResponse, PlainTextResponse

from djula.config.settings import settings
from djula.models.api import WebhookAck
from djula.services.conversation_engine import turn_executor
from djula.utils.dependencies import verify_webhook_signature
from djula.utils.errors import ValidationError
from djula.utils.message_parser import parse_webhook_payload
from djula.utils.metrics import response_time_histogram
from djula.utils.rate_limiter import limiter

# This file defines the WhatsApp webhook endpoints. Inbound messages are
# acknowledged immediately and their turns run in the background, so WhatsApp
# never times out and re-delivers while a reply is being prepared.

router = APIRouter(
    tags=["Webhooks"]
)

log = structlog.get_logger(__name__)


@router.get("/whatsapp")
async def verify_whatsapp_webhook(
    hub_mode: str = Query(None, alias="hub.mode"),
    hub_verify_token: str = Query(None, alias="hub.verify_token"),
    hub_challenge: str = Query(None, alias="hub.challenge")
):
    """WhatsApp webhook verification (GET request)."""
    if hub_mode == "subscribe" and hub_verify_token and hub_verify_token == settings.whatsapp_verify_token:
        log.info("WhatsApp webhook verification successful.")
        return PlainTextResponse(hub_challenge)
    log.error("WhatsApp webhook verification failed.")
    raise HTTPException(status_code=403, detail="Forbidden")


@router.post("/whatsapp")
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def handle_whatsapp_webhook(
    request: Request,
    verified_body: bytes = Depends(verify_webhook_signature)
):
    """Normalizes the payload, queues one turn per message and acknowledges."""
    with response_time_histogram.labels(endpoint="whatsapp_webhook").time():
        try:
            data = json.loads(verified_body.decode("utf-8"))
            messages = parse_webhook_payload(data, expected_phone_id=settings.whatsapp_phone_id or None)
        except (ValueError, ValidationError) as e:
            # Malformed payloads are acknowledged so WhatsApp does not keep re-delivering them.
            log.warning("Ignoring malformed webhook payload.", error=str(e))
            return JSONResponse({"status": "ignored"})

        for message in messages:
            log.info("Queued inbound message", message_id=message.message_id, customer_id=message.customer_id, type=message.message_type)
            await turn_executor.submit(message)

        return JSONResponse(WebhookAck(status="success", queued=len(messages)).model_dump())
