# /djula/services/ai_service.py

import json
import logging
import asyncio
from google import genai
from google.genai.types import GenerateContentConfig, HttpOptions
from openai import AsyncOpenAI
from typing import Dict, Any

from djula.config.settings import settings
from djula.config.persona import AI_SYSTEM_PROMPT
from djula.utils.circuit_breaker import CircuitBreaker
from djula.utils.errors import CompletionError
from djula.utils.metrics import ai_requests_counter


# This service encapsulates all interactions with external AI models like
# Google Gemini and OpenAI GPT. Gemini is tried first when configured and
# OpenAI is the fallback; both sit behind a circuit breaker and a timeout.

logger = logging.getLogger(__name__)

class AIService:
    def __init__(self, timeout: float = 15.0):
        self.timeout = timeout
        if settings.gemini_api_key:
            http_options = HttpOptions(api_version='v1')
            self.gemini_client = genai.Client(api_key=settings.gemini_api_key, http_options=http_options)
            self.model_name = settings.gemini_model
            logger.info(f"Using Gemini model: {self.model_name}")
        else:
            self.gemini_client = None
            self.model_name = None

        if settings.openai_api_key:
            self.openai_client = AsyncOpenAI(api_key=settings.openai_api_key, timeout=timeout)
        else:
            self.openai_client = None

        self.gemini_breaker = CircuitBreaker("gemini")
        self.openai_breaker = CircuitBreaker("openai")

    @property
    def is_configured(self) -> bool:
        return bool(self.gemini_client or self.openai_client)

    async def _with_timeout(self, breaker: CircuitBreaker, func, *args):
        return await breaker.call(lambda: asyncio.wait_for(func(*args), timeout=self.timeout))

    # --- Text completions ---

    async def generate_text(self, prompt: str, max_tokens: int = 200) -> str:
        """Generates a free-text completion. Raises CompletionError when no provider answers."""
        if self.gemini_client:
            try:
                response = await self._with_timeout(self.gemini_breaker, self._generate_gemini_text, prompt)
                if response:
                    ai_requests_counter.labels(model="gemini", status="success").inc()
                    return response
                ai_requests_counter.labels(model="gemini", status="empty").inc()
            except Exception as e:
                logger.error(f"Gemini API call failed: {e}")
                ai_requests_counter.labels(model="gemini", status="error").inc()

        if self.openai_client:
            try:
                response = await self._with_timeout(self.openai_breaker, self._generate_openai_text, prompt, max_tokens)
                if response:
                    ai_requests_counter.labels(model="openai", status="success").inc()
                    return response
                ai_requests_counter.labels(model="openai", status="empty").inc()
            except Exception as e:
                logger.error(f"OpenAI fallback failed: {e}")
                ai_requests_counter.labels(model="openai", status="error").inc()

        raise CompletionError("No AI provider produced a text response.")

    async def _generate_openai_text(self, prompt: str, max_tokens: int) -> str:
        response = await self.openai_client.chat.completions.create(
            model=settings.openai_model,
            messages=[
                {"role": "system", "content": AI_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens,
            temperature=0.7,
        )
        return (response.choices[0].message.content or "").strip()

    async def _generate_gemini_text(self, prompt: str) -> str:
        response = await asyncio.to_thread(
            self.gemini_client.models.generate_content,
            model=self.model_name,
            contents=f"{AI_SYSTEM_PROMPT}\n\n{prompt}",
        )
        return (response.text or "").strip()

    # --- JSON completions ---

    async def generate_json(self, prompt: str) -> Dict[str, Any]:
        """
        Generates a JSON object, trying Gemini first and falling back to OpenAI's
        JSON mode. Raises CompletionError when both fail; a response that is not
        valid JSON raises json.JSONDecodeError so callers can tell the two apart.
        """
        raw = await self._generate_json_text(prompt)
        parsed = json.loads(raw)
        if not isinstance(parsed, dict):
            raise json.JSONDecodeError("Expected a JSON object", raw, 0)
        return parsed

    async def _generate_json_text(self, prompt: str) -> str:
        if self.gemini_client:
            try:
                text = await self._with_timeout(self.gemini_breaker, self._generate_gemini_json, prompt)
                ai_requests_counter.labels(model="gemini-json", status="success").inc()
                return text
            except Exception as e:
                logger.error(f"Gemini JSON response generation failed: {e}. Trying OpenAI fallback.")
                ai_requests_counter.labels(model="gemini-json", status="error").inc()

        if self.openai_client:
            try:
                text = await self._with_timeout(self.openai_breaker, self._generate_openai_json, prompt)
                ai_requests_counter.labels(model="openai-json", status="success").inc()
                return text
            except Exception as e:
                logger.error(f"OpenAI JSON fallback also failed: {e}")
                ai_requests_counter.labels(model="openai-json", status="error").inc()

        raise CompletionError("Both Gemini and OpenAI failed to generate a JSON response.")

    async def _generate_gemini_json(self, prompt: str) -> str:
        response = await asyncio.to_thread(
            self.gemini_client.models.generate_content,
            model=self.model_name,
            contents=f"{prompt}\n\nPlease respond with valid JSON only.",
            config=GenerateContentConfig(temperature=0.1, response_mime_type="application/json"),
        )
        return response.text or ""

    async def _generate_openai_json(self, prompt: str) -> str:
        response = await self.openai_client.chat.completions.create(
            model=settings.openai_model,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": "You are a helpful assistant designed to output JSON."},
                {"role": "user", "content": prompt},
            ],
            temperature=0.1,
        )
        return response.choices[0].message.content or ""

# Globally accessible instance
ai_service = AIService(timeout=settings.llm_timeout_seconds)
