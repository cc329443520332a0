"""Configuration settings for the bill-splitting cache and retention core."""

from enum import Enum
from typing import Optional, List

from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Deployment environment.

    Only ``TEST`` relaxes consent defaults, and only because it is set
    explicitly in configuration.
    """
    PRODUCTION = "production"
    TEST = "test"


class Settings(BaseSettings):
    """Application settings."""

    # Service
    app_name: str = "Bill Splitting Assistant Core"
    app_version: str = "0.3.0"
    environment: Environment = Environment.PRODUCTION

    # Key-value backend. Unset means the explicit NullBackend is used.
    redis_url: Optional[str] = None

    # Region
    region: str = "BR"
    region_timezone: str = "America/Sao_Paulo"

    # Peak windows, inclusive local hours
    peak_morning_start: int = 7
    peak_morning_end: int = 9
    peak_lunch_start: int = 12
    peak_lunch_end: int = 14
    peak_evening_start: int = 18
    peak_evening_end: int = 21
    peak_weekend_start: int = 19
    peak_weekend_end: int = 22

    # Response cache TTL policy
    cache_base_ttl: int = 3600  # 1 hour
    top_tier_models: List[str] = ["claude-3-opus-20240229"]
    top_tier_markers: List[str] = ["opus"]
    large_response_tokens: int = 2000

    # Cost optimization
    cheap_model_threshold: int = 3
    compress_context_threshold: int = 5
    daily_budget_brl: float = 2.0
    monthly_budget_brl: float = 50.0
    audit_ttl: int = 86400  # 1 day

    # Cache warming
    warmup_concurrency: int = 4
    warmup_queue_size: int = 100
    warmup_ttl: int = 1800  # 30 minutes
    warmup_model: str = "claude-3-haiku-20240307"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    class Config:
        env_file = ".env"
        env_prefix = "BILLSPLIT_"
        case_sensitive = False
        extra = "ignore"  # Allow extra fields in .env file
