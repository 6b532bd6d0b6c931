# /djula/services/security_service.py

import hmac
import hashlib
import re

# This service provides the webhook signature check and the sanitizers applied
# to inbound WhatsApp data.

MAX_MESSAGE_LENGTH = 4096


class SecurityService:
    @staticmethod
    def verify_webhook_signature(payload: bytes, signature: str, secret: str) -> bool:
        if not signature or not signature.startswith('sha256='):
            return False
        expected_signature = hmac.new(secret.encode('utf-8'), payload, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected_signature, signature[7:])

    @staticmethod
    def sign_payload(payload: bytes, secret: str) -> str:
        """Builds an X-Hub-Signature-256 header value for `payload`."""
        return "sha256=" + hmac.new(secret.encode('utf-8'), payload, hashlib.sha256).hexdigest()

    @staticmethod
    def sanitize_phone_number(phone: str) -> str:
        """
        Normalizes a WhatsApp id to an E.164-style string (e.g. +2250701020304).
        Returns an empty string for invalid or empty inputs instead of raising.
        """
        if not phone or not isinstance(phone, str):
            return ""

        clean_phone = re.sub(r"[^\d+]", "", phone.strip())
        if not clean_phone.startswith("+"):
            clean_phone = "+" + clean_phone.lstrip("+")

        if not re.match(r"^\+\d{10,15}$", clean_phone):
            return ""
        return clean_phone

    @staticmethod
    def validate_message_content(message: str) -> str:
        if len(message) > MAX_MESSAGE_LENGTH:
            raise ValueError("Message too long")
        return message.strip()
