from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

from paygate.core.logging import get_logger
from paygate.integrations.payment_gateways.base import PaymentGateway, ProviderKey
from paygate.integrations.payment_gateways.exceptions import UnsupportedProviderError
from paygate.services.gateway_registry import GatewayRegistry, provider_key

logger = get_logger(__name__)


class GatewayRouter:
    """Selects the adapter that handles a request."""

    def __init__(self, registry: GatewayRegistry, adapters: Mapping[ProviderKey, PaymentGateway]):
        self.registry = registry
        self._adapters = MappingProxyType({provider_key(name): adapter for name, adapter in adapters.items()})

        missing = sorted(str(name) for name in registry.enabled_providers if name not in self._adapters)
        if missing:
            raise ValueError(f"enabled gateways without an adapter: {', '.join(missing)}")

    @property
    def adapters(self) -> Mapping[ProviderKey, PaymentGateway]:
        return self._adapters

    def get(self, provider: ProviderKey) -> PaymentGateway:
        """
        Return the adapter for an explicitly named provider.

        Raises:
            UnsupportedProviderError: If the provider is unknown or disabled
        """
        key = provider_key(provider)
        if not self.registry.is_enabled(key):
            raise UnsupportedProviderError(
                message=f"Payment gateway '{key}' is not enabled",
                error_code="gateway_not_enabled",
                provider=str(key),
            )
        return self._adapters[key]

    def select(
        self,
        explicit_choice: Optional[ProviderKey] = None,
        country: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> PaymentGateway:
        provider = self.registry.resolve(explicit_choice, country=country, currency=currency)
        logger.debug(
            "gateway_router.selected",
            provider=str(provider),
            explicit_choice=str(explicit_choice) if explicit_choice else None,
            country=country,
            currency=currency,
        )
        return self._adapters[provider]

    def enabled_adapters(self) -> list[PaymentGateway]:
        return [self._adapters[name] for name in self.registry.enabled()]
