# /djula/utils/dependencies.py

import secrets
import structlog
from fastapi import Request, HTTPException

from djula.config.settings import settings
from djula.services.security_service import SecurityService
from djula.services.db_service import db_service
from djula.utils.metrics import webhook_signature_counter
from djula.utils.request_utils import get_remote_address

log = structlog.get_logger(__name__)


async def verify_webhook_signature(request: Request) -> bytes:
    """
    Returns the raw webhook body. When an app secret is configured the body must
    carry a valid X-Hub-Signature-256 header.
    """
    body = await request.body()
    if not settings.whatsapp_app_secret:
        webhook_signature_counter.labels(status="skipped").inc()
        return body

    signature = request.headers.get("x-hub-signature-256", "")
    if not SecurityService.verify_webhook_signature(body, signature, settings.whatsapp_app_secret):
        webhook_signature_counter.labels(status="invalid").inc()
        await db_service.log_security_event("invalid_webhook_signature", get_remote_address(request), {"signature": signature[:50]})
        log.error("Invalid webhook signature.", signature=signature[:50])
        raise HTTPException(status_code=403, detail="Invalid signature")
    webhook_signature_counter.labels(status="valid").inc()
    log.debug("Webhook signature verified successfully.")
    return body


async def verify_api_key(request: Request):
    """Guards operator and metrics endpoints when an API key is configured."""
    if settings.api_key:
        provided_key = request.headers.get("X-API-KEY")
        if not (provided_key and secrets.compare_digest(provided_key, settings.api_key)):
            raise HTTPException(status_code=403, detail="Invalid or missing API key")
