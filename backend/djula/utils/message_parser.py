# /djula/utils/message_parser.py

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from djula.config import strings
from djula.models.conversation import InboundMessage
from djula.services.security_service import MAX_MESSAGE_LENGTH, SecurityService
from djula.utils.errors import ValidationError

# Normalizes WhatsApp Cloud API webhook payloads into InboundMessage objects so
# every later stage of a turn can assume plain text content.

logger = logging.getLogger(__name__)

_PLACEHOLDERS = {
    "image": strings.IMAGE_PLACEHOLDER,
    "audio": strings.AUDIO_PLACEHOLDER,
    "voice": strings.AUDIO_PLACEHOLDER,
    "video": strings.VIDEO_PLACEHOLDER,
    "document": strings.DOCUMENT_PLACEHOLDER,
}
_CAPTIONED_TYPES = ("image", "document")


def _require_list(container: Dict[str, Any], key: str, where: str) -> List[Any]:
    value = container.get(key, [])
    if not isinstance(value, list):
        raise ValidationError(f"'{key}' in {where} must be a list")
    return value


def _timestamp(raw: Any) -> datetime:
    try:
        return datetime.utcfromtimestamp(int(raw))
    except (TypeError, ValueError, OverflowError):
        return datetime.utcnow()


def extract_content(message: Dict[str, Any]) -> tuple[str, Optional[str]]:
    """Returns (content, interactive_id) for one raw message."""
    message_type = message.get("type")

    if message_type == "text":
        return (message.get("text") or {}).get("body", ""), None

    if message_type == "interactive":
        interactive = message.get("interactive") or {}
        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
        reply_id = reply.get("id")
        if reply_id:
            return reply_id, reply_id
        return strings.UNSUPPORTED_PLACEHOLDER, None

    if message_type == "button":
        # Quick-reply buttons on template messages carry a payload instead of an id.
        button = message.get("button") or {}
        return button.get("payload") or button.get("text") or "", None

    if message_type == "location":
        location = message.get("location") or {}
        return strings.LOCATION_PLACEHOLDER.format(
            latitude=location.get("latitude"), longitude=location.get("longitude")
        ), None

    if message_type in _PLACEHOLDERS:
        media = message.get(message_type) or {}
        caption = media.get("caption") if message_type in _CAPTIONED_TYPES else None
        return caption or _PLACEHOLDERS[message_type], None

    return strings.UNSUPPORTED_PLACEHOLDER, None


def _normalize_message(message: Dict[str, Any], contacts: List[Dict[str, Any]]) -> Optional[InboundMessage]:
    contact = contacts[0] if contacts and isinstance(contacts[0], dict) else {}
    sender = SecurityService.sanitize_phone_number(message.get("from") or contact.get("wa_id") or "")
    message_id = message.get("id")
    if not sender or not message_id:
        logger.warning(f"Skipping inbound message without a valid sender or id: {message_id}")
        return None

    content, interactive_id = extract_content(message)
    try:
        content = SecurityService.validate_message_content(content)
    except ValueError:
        logger.warning(f"Truncating oversized inbound message {message_id} from {sender}")
        content = SecurityService.validate_message_content(content[:MAX_MESSAGE_LENGTH])
    if not content:
        logger.info(f"Empty inbound message {message_id} from {sender}")
        content = strings.EMPTY_PLACEHOLDER

    return InboundMessage(
        message_id=message_id,
        customer_id=sender,
        message_type=message.get("type") or "unknown",
        content=content,
        profile_name=(contact.get("profile") or {}).get("name"),
        interactive_id=interactive_id,
        timestamp=_timestamp(message.get("timestamp")),
    )


def parse_webhook_payload(data: Any, expected_phone_id: Optional[str] = None) -> List[InboundMessage]:
    """
    Walks entry[].changes[].value.messages[] and returns the normalized inbound
    messages. Status updates, non-message changes and changes addressed to
    another phone number id are ignored. Raises ValidationError when the
    envelope itself is malformed.
    """
    if not isinstance(data, dict):
        raise ValidationError("Webhook payload must be a JSON object")

    messages: List[InboundMessage] = []
    for entry in _require_list(data, "entry", "payload"):
        if not isinstance(entry, dict):
            raise ValidationError("Webhook entry must be an object")
        for change in _require_list(entry, "changes", "entry"):
            if not isinstance(change, dict):
                raise ValidationError("Webhook change must be an object")
            if change.get("field", "messages") != "messages":
                logger.debug(f"Ignoring non-message change: {change.get('field')}")
                continue

            value = change.get("value")
            if not isinstance(value, dict):
                raise ValidationError("Webhook change value must be an object")

            incoming_phone_id = (value.get("metadata") or {}).get("phone_number_id")
            if incoming_phone_id and expected_phone_id and incoming_phone_id != expected_phone_id:
                logger.info(f"Ignored event for different phone ID: {incoming_phone_id}")
                continue

            contacts = _require_list(value, "contacts", "value")
            for raw in _require_list(value, "messages", "value"):
                if not isinstance(raw, dict):
                    raise ValidationError("Webhook message must be an object")
                message = _normalize_message(raw, contacts)
                if message:
                    messages.append(message)
    return messages
