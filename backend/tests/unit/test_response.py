# backend/tests/unit/test_response.py

import pytest
from unittest.mock import AsyncMock, MagicMock

from djula.config import strings
from djula.models.actions import Action, ActionType
from djula.models.conversation import Intent, IntentType
from djula.models.domain import CustomerPreferences
from djula.services.response_service import ResponseService, build_response_prompt, suggested_replies
from djula.utils.errors import CompletionError


def make_service(generate_text):
    ai = MagicMock()
    ai.generate_text = generate_text
    return ResponseService(ai)


@pytest.mark.asyncio
async def test_compose_returns_model_text():
    generate_text = AsyncMock(return_value="  Voici nos plus beaux boubous!  ")
    text = await make_service(generate_text).compose(
        Intent(type=IntentType.CATALOG_BROWSE, confidence=0.9), CustomerPreferences(), []
    )

    assert text == "Voici nos plus beaux boubous!"
    assert generate_text.await_args.kwargs["max_tokens"] == 300


@pytest.mark.asyncio
@pytest.mark.parametrize("generate_text", [
    AsyncMock(side_effect=CompletionError("no provider")),
    AsyncMock(return_value="   "),
])
async def test_compose_falls_back_to_static_apology(generate_text):
    text = await make_service(generate_text).compose(
        Intent(type=IntentType.UNKNOWN, confidence=0.3), CustomerPreferences(preferred_language="en"), []
    )
    assert text == strings.COMPOSE_FALLBACK["en"]


def test_prompt_includes_actions_and_language(product_factory):
    actions = [Action(type=ActionType.SHOW_PRODUCTS, payload={"products": [product_factory("42")]})]
    prompt = build_response_prompt(
        Intent(type=IntentType.CATALOG_BROWSE, confidence=0.9), CustomerPreferences(preferred_language="en"), actions
    )

    assert "CATALOG_BROWSE" in prompt
    assert "SHOW_PRODUCTS" in prompt
    assert "Boubou 42" in prompt


class TestSuggestedReplies:

    def test_browse_with_products_is_refined(self, product_factory):
        actions = [Action(type=ActionType.SHOW_PRODUCTS, payload={"products": [product_factory()]})]
        assert suggested_replies(IntentType.CATALOG_BROWSE, actions) == strings.SUGGESTED_REPLIES["fr"]["CATALOG_BROWSE_WITH_PRODUCTS"]
        assert suggested_replies(IntentType.CATALOG_BROWSE, []) == strings.SUGGESTED_REPLIES["fr"]["CATALOG_BROWSE"]

    def test_detail_and_created_order_are_refined(self, product_factory, order_factory):
        detail = [Action(type=ActionType.SHOW_PRODUCT_DETAIL, payload={"product": product_factory()})]
        created = [Action(type=ActionType.CREATE_ORDER, payload={"order": order_factory()})]

        assert suggested_replies(IntentType.PRODUCT_QUERY, detail, "en") == ["Add to cart", "Buy now", "Similar products"]
        assert suggested_replies(IntentType.ORDER_PLACEMENT, created, "en") == ["Pay now", "Track order", "Keep shopping"]

    def test_at_most_three_suggestions_for_every_intent(self):
        for intent_type in IntentType:
            assert 0 < len(suggested_replies(intent_type, [])) <= 3

    def test_unsupported_language_uses_french(self):
        assert suggested_replies(IntentType.UNKNOWN, [], "wo") == strings.SUGGESTED_REPLIES["fr"]["UNKNOWN"]
