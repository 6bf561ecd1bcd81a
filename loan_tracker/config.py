"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class LoanTrackerConfig(BaseSettings):
    """Loan tracker configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LOAN_TRACKER_",
        env_file=".env",
        case_sensitive=False,
    )

    # Storage configuration
    use_sqlite: bool = True
    database_path: str = "loan_tracker.db"
    auto_migrate: bool = True

    # Identity configuration
    default_actor_name: str = "Parent User"  # Used when a request names no actor

    # Late fee configuration
    late_fee_rate: str = "0.05"  # 5% of the term amount
    minimum_late_fee: str = "50.00"

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    @property
    def late_fee_rate_decimal(self) -> Decimal:
        return Decimal(self.late_fee_rate)

    @property
    def minimum_late_fee_decimal(self) -> Decimal:
        return Decimal(self.minimum_late_fee)


# Global configuration instance
config = LoanTrackerConfig()


def get_config() -> LoanTrackerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LoanTrackerConfig:
    """Reload configuration from environment"""
    global config
    config = LoanTrackerConfig()
    return config
