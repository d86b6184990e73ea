"""
Configuration management for the A2U payment engine.

Loads settings from .env via pydantic-settings.

Security notes:
    - The app wallet private key is derived once from the mnemonic and cached
    - The payment-service API key and the wallet mnemonic are never logged
    - validate_production_settings() enforces secrets and HTTPS in production
"""
import logging
from functools import cached_property

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Blockchain (chain gateway REST API) ─────────────────────────
    chain_api_url: str = "http://localhost:8001"
    network_passphrase: str = "A2U Local Network"
    chain_timeout_seconds: float = 10.0
    submit_timeout_seconds: float = 30.0

    # ── Payment Service (ledger of record) ──────────────────────────
    payment_api_url: str = "http://localhost:8002"
    payment_api_key: str = ""
    backend_timeout_seconds: float = 15.0

    # ── App Wallet (source of A2U payments) ─────────────────────────
    app_wallet: str = ""
    app_wallet_mnemonic: str = ""

    # ── Lifecycle ───────────────────────────────────────────────────
    retry_limit: int = 3                  # retryable rejections before Failed
    retry_backoff_seconds: float = 1.0    # multiplied by the attempt number
    complete_retry_limit: int = 5         # backend /complete attempts
    complete_backoff_seconds: float = 2.0
    validity_window_seconds: int = 180
    status_poll_seconds: float = 5.0
    status_check_max_polls: int = 60

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/a2u_payments.db"

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"
    operator_api_key: str = ""
    reconcile_on_startup: bool = True

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @cached_property
    def app_private_key(self) -> str:
        """
        Derive the app wallet private key from its mnemonic (computed once, cached).

        The key is held in memory for the process lifetime and handed
        explicitly to the payment controller; nothing else reads it.
        """
        if not self.app_wallet_mnemonic:
            raise ValueError("APP_WALLET_MNEMONIC not set in .env")
        from algosdk import mnemonic
        return mnemonic.to_private_key(self.app_wallet_mnemonic)

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if not self.payment_api_key:
                raise ValueError(
                    "PAYMENT_API_KEY must be set in production. "
                    "It authenticates every call to the payment service."
                )
            if not self.app_wallet or not self.app_wallet_mnemonic:
                raise ValueError(
                    "APP_WALLET and APP_WALLET_MNEMONIC must be set in production."
                )
            if not self.operator_api_key:
                raise ValueError(
                    "OPERATOR_API_KEY must be set in production. "
                    "It guards the operator payment endpoints."
                )
            for name in ("chain_api_url", "payment_api_url"):
                if not getattr(self, name).startswith("https://"):
                    raise ValueError(f"{name.upper()} must use https:// in production")
            logger.info("Production settings validated")
        else:
            warnings = []
            if not self.payment_api_key:
                warnings.append("PAYMENT_API_KEY is empty (payment service calls will be rejected)")
            if not self.operator_api_key:
                warnings.append("OPERATOR_API_KEY is empty (operator endpoints are open)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"⚠️  {w}")


# Global settings instance
settings = Settings()
