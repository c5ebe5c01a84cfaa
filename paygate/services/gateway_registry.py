from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from paygate.core.config import Settings
from paygate.core.logging import get_logger
from paygate.integrations.payment_gateways.base import ProviderId, ProviderKey
from paygate.integrations.payment_gateways.exceptions import UnsupportedProviderError

logger = get_logger(__name__)


def provider_key(value: ProviderKey) -> ProviderKey:
    """Normalize a provider name; known names become ProviderId members."""
    name = value.value if isinstance(value, ProviderId) else str(value).strip().lower()
    try:
        return ProviderId(name)
    except ValueError:
        return name


@dataclass(frozen=True)
class GatewayRegistry:
    """
    Immutable routing configuration, built once at process start.

    Routing entries may name a provider that is not enabled; such entries
    are skipped at resolve time so routing falls back to the default.
    """

    default_provider: ProviderKey
    enabled_providers: frozenset = field(default_factory=frozenset)
    country_routing: Mapping[str, ProviderKey] = field(default_factory=dict)
    currency_routing: Mapping[str, ProviderKey] = field(default_factory=dict)

    def __post_init__(self) -> None:
        enabled = frozenset(provider_key(name) for name in self.enabled_providers)
        default = provider_key(self.default_provider)
        if default not in enabled:
            raise ValueError(f"default provider '{default}' is not enabled")

        object.__setattr__(self, "default_provider", default)
        object.__setattr__(self, "enabled_providers", enabled)
        object.__setattr__(self, "country_routing", self._freeze(self.country_routing, "country"))
        object.__setattr__(self, "currency_routing", self._freeze(self.currency_routing, "currency"))

    def _freeze(self, table: Mapping[str, ProviderKey], kind: str) -> Mapping[str, ProviderKey]:
        routing = {key.strip().upper(): provider_key(name) for key, name in table.items()}
        disabled = sorted({str(name) for name in routing.values() if name not in self.enabled_providers})
        if disabled:
            logger.warning("gateway_registry.routing.disabled_provider", table=kind, providers=disabled)
        return MappingProxyType(routing)

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatewayRegistry":
        return cls(
            default_provider=settings.default_gateway,
            enabled_providers=frozenset(settings.enabled_gateways),
            country_routing=settings.regional_gateways,
            currency_routing=settings.currency_gateways,
        )

    def is_enabled(self, provider: ProviderKey) -> bool:
        return provider_key(provider) in self.enabled_providers

    def enabled(self) -> list[ProviderKey]:
        return sorted(self.enabled_providers, key=str)

    def resolve(
        self,
        explicit_choice: Optional[ProviderKey] = None,
        country: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> ProviderKey:
        """
        Pick the provider for a request.

        Precedence: explicit choice, then country, then currency, then the
        default provider. Country wins over currency because the merchant's
        compliance jurisdiction follows geography.

        Raises:
            UnsupportedProviderError: If ``explicit_choice`` is given but not enabled
        """
        if explicit_choice is not None and str(explicit_choice).strip():
            choice = provider_key(explicit_choice)
            if choice not in self.enabled_providers:
                raise UnsupportedProviderError(
                    message=f"Payment gateway '{choice}' is not enabled",
                    error_code="gateway_not_enabled",
                    provider=str(choice),
                )
            return choice

        for key, table in ((country, self.country_routing), (currency, self.currency_routing)):
            if not key:
                continue
            routed = table.get(key.strip().upper())
            if routed is not None and routed in self.enabled_providers:
                return routed

        return self.default_provider

    def recommend(self, country: Optional[str] = None, currency: Optional[str] = None) -> ProviderKey:
        return self.resolve(None, country=country, currency=currency)


def build_registry(
    default_provider: ProviderKey,
    enabled_providers: Iterable[ProviderKey],
    country_routing: Optional[Mapping[str, ProviderKey]] = None,
    currency_routing: Optional[Mapping[str, ProviderKey]] = None,
) -> GatewayRegistry:
    return GatewayRegistry(
        default_provider=default_provider,
        enabled_providers=frozenset(enabled_providers),
        country_routing=dict(country_routing or {}),
        currency_routing=dict(currency_routing or {}),
    )
