from __future__ import annotations

import secrets

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "FundBridge"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Database
    database_url: str | None = None
    database_auto_create_schema: bool = False
    db_pool_min_size: int = 1
    db_pool_max_size: int = 5

    # Commentary (generative AI)
    openai_api_key: str | None = None
    commentary_model: str = "gpt-4o-mini"
    commentary_temperature: float = 0.7
    commentary_max_output_tokens: int = 1024

    # Scoring
    projection_months: int = 12
    default_growth_rate_pct: float = 5.0

    # Payments / billing
    payment_key_secret: str | None = None
    stripe_secret_key: str | None = None
    default_currency: str = "INR"
    subscription_period_days: int = 30

    # Security
    secret_key: str = ""  # Will be generated if empty
    cors_origins: list[str] = []  # Empty by default for security

    # Sentry
    sentry_dsn: str | None = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Metrics
    metrics_backend: str = "stdout"
    metrics_namespace: str = "fundbridge"
    metrics_disable: bool = False
    metrics_sample_rate: float = 1.0
    metrics_statsd_host: str = "127.0.0.1"
    metrics_statsd_port: int = 8125
    metrics_schema_version: str = "fundbridge.v1"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Generate a random secret key if not provided
        if not self.secret_key:
            self.secret_key = secrets.token_urlsafe(32)

    model_config = ConfigDict(env_file=".env", case_sensitive=False)


settings = Settings()
