"""
Service wiring tests.
"""

import pytest

from paygate.core.config import Settings
from paygate.integrations.payment_gateways.base import ProviderId
from paygate.integrations.payment_gateways.paystack_adapter import PaystackAdapter
from paygate.integrations.payment_gateways.stripe_adapter import StripeAdapter
from paygate.services import factory
from paygate.services.factory import build_adapters, build_payment_services, register_gateway
from paygate.services.gateway_registry import build_registry
from paygate.services.webhook_dispatcher import LoggingSettlementHandler


class TestBuildAdapters:

    def test_builds_enabled_adapters_from_settings(self, settings):
        registry = build_registry("stripe", ["stripe", "paystack"])

        adapters = build_adapters(settings, registry)

        assert isinstance(adapters[ProviderId.STRIPE], StripeAdapter)
        assert isinstance(adapters[ProviderId.PAYSTACK], PaystackAdapter)
        assert adapters[ProviderId.STRIPE].webhook_secret == "whsec_test_123"
        assert adapters[ProviderId.PAYSTACK].secret_key == "sk_test_paystack"
        assert adapters[ProviderId.PAYSTACK].timeout_seconds == settings.provider_timeout_seconds

    def test_only_enabled_adapters_built(self, settings):
        adapters = build_adapters(settings, build_registry("stripe", ["stripe"]))

        assert list(adapters) == [ProviderId.STRIPE]

    def test_unknown_gateway_rejected(self, settings):
        with pytest.raises(ValueError, match="Unknown gateway: flutterwave"):
            build_adapters(settings, build_registry("stripe", ["stripe", "flutterwave"]))

    def test_register_gateway(self, settings, paystack_adapter, monkeypatch):
        monkeypatch.setattr(factory, "_BUILDERS", dict(factory._BUILDERS))
        register_gateway("Flutterwave", lambda _settings: paystack_adapter)

        adapters = build_adapters(settings, build_registry("stripe", ["stripe", "flutterwave"]))

        assert adapters["flutterwave"] is paystack_adapter


class TestBuildPaymentServices:

    def test_wires_shared_registry(self, payment_services):
        assert payment_services.router.registry is payment_services.registry
        assert payment_services.orchestrator.router is payment_services.router

    def test_dispatcher_has_endpoint_per_enabled_gateway(self, payment_services):
        dispatcher = payment_services.dispatcher
        assert dispatcher.endpoint_for("stripe") is not None
        assert dispatcher.endpoint_for("paystack") is not None

    def test_default_handler_logs(self, stripe_adapter):
        settings = Settings(_env_file=None, stripe_secret_key="sk_test_123")

        services = build_payment_services(settings, adapters={ProviderId.STRIPE: stripe_adapter})

        assert isinstance(services.dispatcher.handler, LoggingSettlementHandler)
        assert services.registry.enabled() == [ProviderId.STRIPE]
        assert services.dispatcher.endpoint_for("paystack") is None

    @pytest.mark.asyncio
    async def test_close(self, payment_services, paystack_adapter):
        client = paystack_adapter.http_client
        await payment_services.close()
        assert client.is_closed
