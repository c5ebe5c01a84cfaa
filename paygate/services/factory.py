"""
Wiring of the payment services from configuration.

Adapters are created through a builder registry keyed by provider id;
supporting a new provider means registering a builder here, nothing else
dispatches on provider names.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from paygate.core.config import Settings
from paygate.core.logging import get_logger
from paygate.integrations.payment_gateways.base import PaymentGateway, ProviderId, ProviderKey
from paygate.integrations.payment_gateways.paystack_adapter import PaystackAdapter
from paygate.integrations.payment_gateways.stripe_adapter import StripeAdapter
from paygate.services.gateway_registry import GatewayRegistry, provider_key
from paygate.services.gateway_router import GatewayRouter
from paygate.services.payment_orchestrator import PaymentOrchestrator
from paygate.services.webhook_dispatcher import (
    LoggingSettlementHandler,
    SettlementHandler,
    WebhookDispatcher,
)

logger = get_logger(__name__)

GatewayBuilder = Callable[[Settings], PaymentGateway]


def _build_stripe(settings: Settings) -> PaymentGateway:
    return StripeAdapter(
        api_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        publishable_key=settings.stripe_publishable_key,
        timeout_seconds=settings.provider_timeout_seconds,
        webhook_tolerance_seconds=settings.stripe_webhook_tolerance_seconds,
    )


def _build_paystack(settings: Settings) -> PaymentGateway:
    return PaystackAdapter(
        secret_key=settings.paystack_secret_key,
        public_key=settings.paystack_public_key,
        webhook_secret=settings.paystack_webhook_secret,
        base_url=settings.paystack_base_url,
        timeout_seconds=settings.provider_timeout_seconds,
    )


_BUILDERS: Dict[ProviderKey, GatewayBuilder] = {
    ProviderId.STRIPE: _build_stripe,
    ProviderId.PAYSTACK: _build_paystack,
}


def register_gateway(provider: ProviderKey, builder: GatewayBuilder) -> None:
    """Register an adapter builder for a provider id."""
    _BUILDERS[provider_key(provider)] = builder
    logger.info("gateway.registered", provider=str(provider_key(provider)))


def build_adapters(settings: Settings, registry: GatewayRegistry) -> Dict[ProviderKey, PaymentGateway]:
    """
    Instantiate an adapter for every enabled provider.

    Raises:
        ValueError: If an enabled provider has no registered builder
    """
    adapters: Dict[ProviderKey, PaymentGateway] = {}
    for provider in registry.enabled():
        builder = _BUILDERS.get(provider)
        if builder is None:
            available = ", ".join(sorted(str(name) for name in _BUILDERS))
            raise ValueError(f"Unknown gateway: {provider}. Available gateways: {available}")
        adapters[provider] = builder(settings)
    return adapters


@dataclass(frozen=True)
class PaymentServices:
    registry: GatewayRegistry
    router: GatewayRouter
    orchestrator: PaymentOrchestrator
    dispatcher: WebhookDispatcher

    async def close(self) -> None:
        await self.orchestrator.close()


def build_payment_services(
    settings: Settings,
    handler: Optional[SettlementHandler] = None,
    adapters: Optional[Dict[ProviderKey, PaymentGateway]] = None,
) -> PaymentServices:
    """Build registry, router, orchestrator and dispatcher once per process."""
    registry = GatewayRegistry.from_settings(settings)
    if adapters is None:
        adapters = build_adapters(settings, registry)
    router = GatewayRouter(registry, adapters)
    dispatcher = WebhookDispatcher(
        endpoints=[adapter.webhook_endpoint() for adapter in router.enabled_adapters()],
        handler=handler or LoggingSettlementHandler(),
    )
    logger.info(
        "payment_services.built",
        default_gateway=str(registry.default_provider),
        enabled_gateways=[str(name) for name in registry.enabled()],
    )
    return PaymentServices(
        registry=registry,
        router=router,
        orchestrator=PaymentOrchestrator(router),
        dispatcher=dispatcher,
    )
