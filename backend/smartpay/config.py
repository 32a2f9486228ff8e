"""
Smart Pay Configuration Module

Loads environment variables for the processor integration.
"""
from pydantic_settings import BaseSettings
from typing import Literal


# Processor environments
PRODUCTION_URL = "https://betalen.rabobank.nl/omnikassa-api/"
SANDBOX_URL = "https://betalen.rabobank.nl/omnikassa-api-sandbox/"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Notes:
    - Refresh token and signing key are issued by the processor dashboard
    - Signing key is the base64 secret exactly as shown in the dashboard
    - Demo mode routes all processor calls to the in-process fake processor
    """

    # Processor Configuration
    environment: Literal["production", "sandbox"] = "sandbox"
    refresh_token: str = ""
    signing_key: str = ""
    signature_algorithm: Literal["sha256", "sha512"] = "sha256"
    http_timeout_seconds: float = 30.0

    # Reconciliation
    slug_prefix: str = "omnikassa-2"
    max_result_pages: int = 100

    # Demo Configuration
    demo_mode: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Database
    database_url: str = "sqlite:///./smartpay.db"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = {
        "env_prefix": "SMARTPAY_",
        "env_file": ".env",
        "case_sensitive": False,
    }

    @property
    def base_url(self) -> str:
        """Processor API base URL for the configured environment."""
        if self.environment == "production":
            return PRODUCTION_URL
        return SANDBOX_URL


# Global settings instance
settings = Settings()
