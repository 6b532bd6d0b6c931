# /djula/config/settings.py

import sys
import re
from typing import List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017/djula"
    max_pool_size: int = 10
    min_pool_size: int = 1
    mongo_ssl: bool = False

    # Redis
    redis_url: str = "redis://localhost:6379"

    # WhatsApp Cloud API
    whatsapp_access_token: str = ""
    whatsapp_phone_id: str = ""
    whatsapp_verify_token: str = ""
    whatsapp_app_secret: str | None = None
    whatsapp_api_version: str = "v18.0"
    whatsapp_base_url: str = "https://graph.facebook.com"

    # AI APIs
    openai_api_key: str | None = None
    openai_model: str = "gpt-4-turbo-preview"
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-1.5-flash"

    # Seller back-office (catalog, orders, payments, support)
    commerce_api_url: str = "http://localhost:3000/api"
    commerce_api_key: str | None = None
    seller_id: str = ""
    default_language: str = "fr"

    # Conversation engine
    context_cache_ttl_seconds: int = 300
    context_cache_max_size: int = 10000
    history_limit: int = 20
    classification_history_turns: int = 5
    # Above 10 results a search is shown as 3 image cards plus category filter buttons.
    catalog_search_limit: int = 5
    recommendation_limit: int = 3
    turn_worker_idle_seconds: float = 30.0
    delivery_dedup_ttl_seconds: int = 86400

    # Timeouts (seconds)
    llm_timeout_seconds: float = 15.0
    store_timeout_seconds: float = 5.0
    collaborator_timeout_seconds: float = 10.0
    send_timeout_seconds: float = 15.0

    # Outbound channel limits
    outbound_rate_limit: int = 15
    outbound_rate_window_seconds: int = 60
    send_pacing_delay: float = 0.3

    # Deployment
    environment: str = Field(default="production")
    workers: int = 1
    api_version: str = "v1"
    api_key: str | None = None
    rate_limit_per_minute: int = 100

    cors_allowed_origins: List[str] = Field(default=["https://djula.africa"])

    # ---------------- Validators ---------------- #

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def parse_cors_allowed_origins(cls, v):
        """Accepts a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("whatsapp_phone_id")
    @classmethod
    def phone_id_must_be_digits(cls, v):
        if v and not re.match(r"^\d+$", v):
            raise ValueError("WHATSAPP_PHONE_ID must contain only digits")
        return v

    @field_validator("default_language")
    @classmethod
    def language_must_be_supported(cls, v):
        if v not in ("fr", "en"):
            raise ValueError("DEFAULT_LANGUAGE must be 'fr' or 'en'")
        return v

    @field_validator("outbound_rate_limit", "outbound_rate_window_seconds", "context_cache_ttl_seconds")
    @classmethod
    def must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("Rate limit, window and cache TTL must be positive")
        return v


def validate_environment(settings_obj: Settings):
    try:
        if settings_obj.environment == "production":
            for var in ["whatsapp_verify_token", "whatsapp_access_token", "whatsapp_phone_id", "whatsapp_app_secret"]:
                if not getattr(settings_obj, var):
                    raise ValueError(f"{var.upper()} is required in production")
            if not settings_obj.gemini_api_key and not settings_obj.openai_api_key:
                raise ValueError("At least one AI API key must be provided")

        return settings_obj

    except Exception as e:
        print(f"--- [ERROR] Environment validation failed: {e}")
        sys.exit(1)


settings = Settings()
validate_environment(settings)
