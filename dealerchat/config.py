"""
Application configuration using pydantic-settings.
Every collaborator is optional: a missing database URL or AI key degrades the
chat to a null lead store and canned test-mode replies instead of failing startup.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"
    sentry_dsn: str = ""
    cors_allowed_origins: list[str] = ["http://localhost:3000", "https://salmabydriver.com"]
    # Peers whose X-Forwarded-For header is believed (e.g. the load balancer)
    trusted_proxies: list[str] = []

    # Database (empty = null lead store)
    database_url: str = ""
    database_pool_size: int = 10
    database_max_overflow: int = 5

    # Anthropic (primary)
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    anthropic_timeout_seconds: int = 30

    # OpenAI (fallback)
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_timeout_seconds: int = 30

    # Generation limits (fixed, never data-dependent)
    ai_max_tokens: int = 4096
    ai_temperature: float = 0.7
    ai_history_limit: int = 10

    # Abuse guard
    abuse_max_messages_per_minute: int = 5
    abuse_max_repeated_messages: int = 3
    abuse_min_message_length: int = 3
    abuse_block_duration_minutes: int = 30
    abuse_violations_before_block: int = 3
    abuse_fingerprint_ttl_hours: int = 24
    abuse_sweep_interval_seconds: int = 300

    # Pipeline tuning
    lead_capture_message_threshold: int = 1
    objection_follow_up_max_assistant_messages: int = 5
    handoff_min_assistant_messages: int = 2
    # Template categories that stay silent when a catalog model is named
    template_categories_yielding_to_models: list[str] = [
        "saludos",
        "horarios",
        "ubicacion",
        "modelos",
        "comparacion",
        "despedida",
        "contacto",
        "carga",
    ]

    # Dealership copy
    dealership_name: str = "BYD Lindavista CLEBER"
    assistant_name: str = "Salma AI"
    dealership_whatsapp: str = "+52 81 2027 2752"
    calculator_url: str = "salmabydriver.com/calculatusahorros"
    placeholder_email_domain: str = "noemail.salmabydriver.com"

    # Lead notifications (SMS gateway webhook)
    sms_gateway_url: str = "https://sms.lizza.com.mx"
    sms_api_key: str = ""
    sales_notification_phone: str = "+528120272752"
    analytics_url: str = "https://analytics.salmabydriver.com"
    notification_timeout_seconds: float = 5.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
