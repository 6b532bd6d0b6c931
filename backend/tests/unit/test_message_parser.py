# backend/tests/unit/test_message_parser.py

import pytest

from djula.config import strings
from djula.services.security_service import MAX_MESSAGE_LENGTH
from djula.utils.errors import ValidationError
from djula.utils.message_parser import extract_content, parse_webhook_payload

PHONE_ID = "1234567890"


def envelope(*messages, phone_id=PHONE_ID, field="messages", contacts=None):
    return {
        "object": "whatsapp_business_account",
        "entry": [{
            "id": "WABA",
            "changes": [{
                "field": field,
                "value": {
                    "messaging_product": "whatsapp",
                    "metadata": {"phone_number_id": phone_id},
                    "contacts": contacts if contacts is not None else [{"wa_id": "2250701020304", "profile": {"name": "Awa"}}],
                    "messages": list(messages),
                },
            }],
        }],
    }


def text(body, message_id="wamid.1", sender="2250701020304"):
    return {"from": sender, "id": message_id, "timestamp": "1718000000", "type": "text", "text": {"body": body}}


class TestExtractContent:

    def test_button_and_list_replies_yield_their_id(self):
        button = {"type": "interactive", "interactive": {"type": "button_reply", "button_reply": {"id": "buy_now_42", "title": "Acheter"}}}
        row = {"type": "interactive", "interactive": {"type": "list_reply", "list_reply": {"id": "product_42", "title": "Boubou"}}}

        assert extract_content(button) == ("buy_now_42", "buy_now_42")
        assert extract_content(row) == ("product_42", "product_42")

    def test_image_uses_caption_or_placeholder(self):
        assert extract_content({"type": "image", "image": {"caption": "Celui-ci?"}}) == ("Celui-ci?", None)
        assert extract_content({"type": "image", "image": {"id": "media"}}) == (strings.IMAGE_PLACEHOLDER, None)

    def test_location_and_unsupported(self):
        content, _ = extract_content({"type": "location", "location": {"latitude": 5.35, "longitude": -4.0}})
        assert "5.35" in content

        assert extract_content({"type": "sticker", "sticker": {}}) == (strings.UNSUPPORTED_PLACEHOLDER, None)


class TestParseWebhookPayload:

    def test_text_message_is_normalized(self):
        messages = parse_webhook_payload(envelope(text("  Bonjour  ")), PHONE_ID)

        assert len(messages) == 1
        message = messages[0]
        assert message.customer_id == "+2250701020304"
        assert message.message_id == "wamid.1"
        assert message.content == "Bonjour"
        assert message.profile_name == "Awa"
        assert message.interactive_id is None

    def test_several_messages_keep_their_order(self):
        messages = parse_webhook_payload(envelope(text("un", "wamid.1"), text("deux", "wamid.2")), PHONE_ID)
        assert [m.content for m in messages] == ["un", "deux"]

    def test_status_updates_are_ignored(self):
        payload = envelope()
        payload["entry"][0]["changes"][0]["value"].pop("messages")
        payload["entry"][0]["changes"][0]["value"]["statuses"] = [{"id": "wamid.1", "status": "delivered"}]
        assert parse_webhook_payload(payload, PHONE_ID) == []

    def test_other_phone_ids_and_fields_are_ignored(self):
        assert parse_webhook_payload(envelope(text("Bonjour"), phone_id="999"), PHONE_ID) == []
        assert parse_webhook_payload(envelope(text("Bonjour"), field="account_update"), PHONE_ID) == []

    def test_invalid_sender_is_skipped(self):
        assert parse_webhook_payload(envelope(text("Bonjour", sender="123"), contacts=[]), PHONE_ID) == []

    def test_empty_body_becomes_a_placeholder(self):
        messages = parse_webhook_payload(envelope(text("   ")), PHONE_ID)
        assert [m.content for m in messages] == [strings.EMPTY_PLACEHOLDER]

    def test_oversized_body_is_truncated(self):
        messages = parse_webhook_payload(envelope(text("a" * 5000)), PHONE_ID)
        assert len(messages) == 1
        assert messages[0].content == "a" * MAX_MESSAGE_LENGTH

    @pytest.mark.parametrize("payload", [
        [],
        {"entry": "not a list"},
        {"entry": [{"changes": [{"field": "messages", "value": "nope"}]}]},
        {"entry": [{"changes": [{"field": "messages", "value": {"messages": ["nope"]}}]}]},
    ])
    def test_malformed_envelopes_raise(self, payload):
        with pytest.raises(ValidationError):
            parse_webhook_payload(payload, PHONE_ID)
