"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings

# ===========================================
# Product Branding
# ===========================================
PRODUCT_NAME = "Bank Connect"
PRODUCT_TAGLINE = "Link any bank, through any aggregator."
PRODUCT_VERSION = "1.0.0"
PRODUCT_DESCRIPTION = "Institution search and provider hand-off for the finance dashboard."


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (flow telemetry only)
    database_url: str = "sqlite:///./bank_connect.db"

    # Logging
    log_level: str = "INFO"

    # Engine API (institution directory, link tokens, token exchange, usage)
    engine_api_url: str = "http://localhost:3002"
    engine_api_key: str = ""
    request_timeout_seconds: float = 10.0

    # Search
    default_country_code: str = "US"

    # Plaid Link
    plaid_env: str = "sandbox"  # sandbox, development, production
    plaid_client_name: str = "Bank Connect"
    plaid_products: str = "transactions"  # comma separated

    # Teller Connect
    teller_application_id: str = ""
    teller_environment: str = "sandbox"  # sandbox, development, production
    teller_settle_seconds: float = 1.0

    # API
    connect_rate_limit: str = "60/minute"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def plaid_product_list(self) -> List[str]:
        """Plaid products as a list."""
        return [p.strip() for p in self.plaid_products.split(",") if p.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
