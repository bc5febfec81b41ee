"""
Application configuration using pydantic-settings.
Loads from environment variables / .env file.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )
    
    # Application
    app_name: str = "omnigo"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    
    # API Server
    host: str = "0.0.0.0"
    port: int = 8000
    
    # Postgres (empty disables database features)
    database_url: str = ""
    
    # Redis (Celery broker + completion claims)
    redis_url: str = "redis://localhost:6379/0"
    
    # Pi Network
    pi_sandbox: bool = True
    pi_api_key: str = ""
    pi_webhook_secret: str = ""
    pi_wallet_private_seed: str = ""
    pi_http_max_attempts: int = 3
    pi_http_backoff_seconds: float = 1.0
    
    # Payouts
    commission_rate: Decimal = Decimal("0.05")
    payout_linkage_retry_seconds: int = 300
    payout_create_max_attempts: int = 2
    
    # Webhook / client completion race window
    completion_claim_ttl_seconds: int = 60
    
    @property
    def is_development(self) -> bool:
        return self.app_env == "development"
    
    @property
    def is_production(self) -> bool:
        return self.app_env == "production"
    
    @property
    def pi_api_base_url(self) -> str:
        if self.pi_sandbox:
            return "https://api.sandbox.minepi.com"
        return "https://api.minepi.com"
    
    @property
    def pi_horizon_url(self) -> str:
        if self.pi_sandbox:
            return "https://api.testnet.minepi.com"
        return "https://api.mainnet.minepi.com"
    
    @property
    def pi_network_passphrase(self) -> str:
        return "Pi Testnet" if self.pi_sandbox else "Pi Network"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
