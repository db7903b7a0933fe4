"""
Configuration management for the quote generation service.

Supports configuration via environment variables and .env files.
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environments."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TEST = "test"


class AppConfig(BaseSettings):
    """
    Configuration settings for the quote generation service.

    All settings can be configured via environment variables with the QUOTEGEN_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="QUOTEGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Server settings
    app_host: str = Field(
        default="0.0.0.0",
        description="Interface the HTTP server binds to"
    )
    app_port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port the HTTP server listens on"
    )
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment"
    )

    # Record store settings
    api_version: str = Field(
        default="62.0",
        description="Data API version used when the client context does not carry one"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single record store round trip"
    )
    max_batch_operations: int = Field(
        default=25,
        ge=1,
        description="Maximum number of operations in one atomic commit"
    )

    # Pricing settings
    enable_discount_overrides: bool = Field(
        default=False,
        description="Read per-line-item discount overrides from the record store"
    )
    discount_override_field: str = Field(
        default="DiscountOverride__c",
        description="Line item field holding a discount override percentage"
    )
    default_region: str = Field(
        default="US",
        description="Region whose discount applies to generated quotes"
    )
    region_discounts: Dict[str, float] = Field(
        default_factory=lambda: {"US": 0.10, "EU": 0.15, "APAC": 0.12},
        description="Discount rate per region, as a decimal fraction"
    )
    quote_name: str = Field(
        default="New Quote",
        description="Name given to generated quotes"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
