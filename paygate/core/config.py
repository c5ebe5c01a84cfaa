from functools import lru_cache
from typing import Annotated, Dict, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_REGIONAL_GATEWAYS: Dict[str, str] = {
    "NG": "paystack",  # Nigeria
    "GH": "paystack",  # Ghana
    "ZA": "paystack",  # South Africa
    "KE": "paystack",  # Kenya
    "US": "stripe",
    "CA": "stripe",
    "GB": "stripe",
    "DE": "stripe",
    "FR": "stripe",
    "AU": "stripe",
}

DEFAULT_CURRENCY_GATEWAYS: Dict[str, str] = {
    "NGN": "paystack",
    "GHS": "paystack",
    "ZAR": "paystack",
    "KES": "paystack",
    "USD": "stripe",
    "EUR": "stripe",
    "GBP": "stripe",
    "CAD": "stripe",
    "AUD": "stripe",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = Field(default="Payment Gateway Service")
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True, description="Render logs as JSON; console renderer otherwise")

    # Gateway selection
    default_gateway: str = Field(default="stripe", description="Gateway used when nothing else resolves")
    enabled_gateways: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["stripe"],
        description="Comma-separated list of enabled gateways",
    )
    regional_gateways: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_REGIONAL_GATEWAYS))
    currency_gateways: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_CURRENCY_GATEWAYS))
    provider_timeout_seconds: float = Field(default=10.0, gt=0, le=10.0, description="Outbound provider call timeout")

    # Stripe
    stripe_secret_key: str = Field(default="")
    stripe_publishable_key: Optional[str] = Field(default=None)
    stripe_webhook_secret: Optional[str] = Field(default=None, description="Webhook signing secret (whsec_...)")
    stripe_webhook_tolerance_seconds: int = Field(default=300, gt=0)

    # Paystack
    paystack_secret_key: str = Field(default="")
    paystack_public_key: Optional[str] = Field(default=None)
    paystack_base_url: str = Field(default="https://api.paystack.co")
    paystack_webhook_secret: Optional[str] = Field(default=None, description="HMAC-SHA512 webhook secret")

    @field_validator("enabled_gateways", mode="before")
    @classmethod
    def split_enabled_gateways(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("default_gateway", mode="before")
    @classmethod
    def normalize_default_gateway(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("enabled_gateways")
    @classmethod
    def normalize_enabled_gateways(cls, value: List[str]) -> List[str]:
        normalized: List[str] = []
        for gateway in value:
            name = gateway.lower()
            if name not in normalized:
                normalized.append(name)
        return normalized

    @field_validator("regional_gateways", "currency_gateways")
    @classmethod
    def normalize_routing_table(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {key.strip().upper(): gateway.strip().lower() for key, gateway in value.items()}

    @model_validator(mode="after")
    def check_default_gateway_enabled(self) -> "Settings":
        """The default gateway is the routing fallback, so it must always be enabled."""
        if self.default_gateway not in self.enabled_gateways:
            raise ValueError(
                f"default_gateway '{self.default_gateway}' must be one of enabled_gateways "
                f"{self.enabled_gateways}"
            )
        return self


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Configuration is read once per process; routing changes require a restart.

    Returns:
        Settings: The cached settings instance
    """
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the cached settings instance.

    Useful for testing. After calling this function, the next call to
    get_settings() will create a new Settings instance.
    """
    get_settings.cache_clear()
