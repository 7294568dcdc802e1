"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class LoanConfig(BaseSettings):
    """Loan management service configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LMS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Database configuration
    database_url: str = "sqlite:///loan_management.db"  # memory:// for in-memory storage

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    cors_origins: List[str] = ["*"]

    # Security configuration
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiry_hours: int = 24
    seed_default_users: bool = True

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text


# Global configuration instance
config = LoanConfig()


def get_config() -> LoanConfig:
    """Get global configuration instance"""
    return config
