"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

from .currency import Currency
from .storage import StorageInterface, create_storage


class DealerFinanceConfig(BaseSettings):
    """Dealer finance engine configuration"""

    model_config = SettingsConfigDict(
        env_prefix="DEALER_FINANCE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Database configuration
    database_url: str = "memory://"  # or sqlite:///dealer_finance.db

    # Business rules configuration
    default_currency: str = "USD"
    grace_period_days: int = 3  # Days past due before a payment is overdue

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr

    # Feature flags
    enable_events: bool = True

    @field_validator("grace_period_days")
    @classmethod
    def _grace_period_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("grace_period_days must be non-negative")
        return value

    @field_validator("default_currency")
    @classmethod
    def _known_currency(cls, value: str) -> str:
        code = value.upper()
        if code not in Currency.__members__:
            raise ValueError(f"Unsupported currency: {value}")
        return code

    @field_validator("log_format")
    @classmethod
    def _known_log_format(cls, value: str) -> str:
        if value not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return value

    @property
    def currency(self) -> Currency:
        return Currency[self.default_currency]

    def create_storage(self) -> StorageInterface:
        """Build the configured storage backend"""
        return create_storage(self.database_url)


# Global configuration instance
config = DealerFinanceConfig()


def get_config() -> DealerFinanceConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> DealerFinanceConfig:
    """Reload configuration from environment"""
    global config
    config = DealerFinanceConfig()
    return config
