"""Runtime settings for the ordering service, read from environment variables."""

import os
from dataclasses import dataclass, field
from functools import lru_cache


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> list[str]:
    return [part.strip() for part in os.getenv(name, default).split(",") if part.strip()]


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    debug: bool = False
    default_currency: str = "INR"
    cart_expiry_days: int = 30
    refund_window_days: int = 30
    tax_rate: float = 0.0
    low_stock_threshold: int = 10
    payment_gateway: str = "fake"
    payment_webhook_secret: str = "whsec_development"
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def load_settings() -> Settings:
    environment = os.getenv("PROTEAN_ENV", "development").lower()
    return Settings(
        environment=environment,
        debug=_env_bool("DEBUG", environment == "development"),
        default_currency=os.getenv("DEFAULT_CURRENCY", "INR").upper(),
        cart_expiry_days=int(os.getenv("CART_EXPIRY_DAYS", "30")),
        refund_window_days=int(os.getenv("REFUND_WINDOW_DAYS", "30")),
        tax_rate=float(os.getenv("TAX_RATE", "0")),
        low_stock_threshold=int(os.getenv("LOW_STOCK_THRESHOLD", "10")),
        payment_gateway=os.getenv("PAYMENT_GATEWAY", "fake").lower(),
        payment_webhook_secret=os.getenv("PAYMENT_WEBHOOK_SECRET", "whsec_development"),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
        stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
        cors_origins=_env_list("CORS_ORIGINS", "*"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings are read once per process; tests call ``get_settings.cache_clear()``."""
    return load_settings()
