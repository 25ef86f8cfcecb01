"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class BankingDemoConfig(BaseSettings):
    """Banking demo backend configuration"""

    model_config = SettingsConfigDict(
        env_prefix="BANKING_",
        env_file=".env",
        case_sensitive=False,
    )

    # Database configuration
    database_url: str = "sqlite:///banking_demo.db"  # memory://, sqlite:///path or postgresql://...

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    cors_origins: str = "*"  # Comma separated

    # Security configuration
    jwt_secret: str = "change-me-in-production"
    jwt_expiry_hours: int = 12
    jwt_algorithm: str = "HS256"
    auth_enabled: bool = True
    test_account_id: str = ""  # Used when auth is disabled
    password_min_length: int = 6

    # Logging configuration
    log_level: str = "INFO"
    log_file: Optional[str] = None  # If None, logs to stdout

    # Business rules configuration
    max_investment_transfer: str = "1000000.00"
    max_description_length: int = 255
    maturity_warning_days: int = 30
    statement_default_limit: int = 10
    statement_max_limit: int = 100

    # Feature flags
    enable_audit_logging: bool = True


# Global configuration instance
config = BankingDemoConfig()


def get_config() -> BankingDemoConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BankingDemoConfig:
    """Reload configuration from environment"""
    global config
    config = BankingDemoConfig()
    return config
