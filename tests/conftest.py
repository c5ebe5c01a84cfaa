"""
Shared test configuration and fixtures for the payment gateway test suite.

Stripe is exercised through a mocked StripeClient returning plain dicts;
Paystack through an httpx.MockTransport serving canned API envelopes.
"""

import hashlib
import hmac
import time
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from paygate.core.config import Settings, clear_settings_cache
from paygate.integrations.payment_gateways.base import ProviderId
from paygate.integrations.payment_gateways.paystack_adapter import PaystackAdapter
from paygate.integrations.payment_gateways.stripe_adapter import StripeAdapter
from paygate.integrations.payment_gateways.webhooks import SettlementEvent
from paygate.services.factory import build_payment_services
from paygate.services.webhook_dispatcher import SettlementHandler


STRIPE_SECRET_KEY = "sk_test_123"
STRIPE_WEBHOOK_SECRET = "whsec_test_123"
PAYSTACK_SECRET_KEY = "sk_test_paystack"
PAYSTACK_WEBHOOK_SECRET = "paystack_webhook_secret"
PAYSTACK_BASE_URL = "https://api.paystack.co"


class PaystackStub:
    """Serves canned Paystack responses per (method, path) and records requests."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self._routes: Dict[tuple, List[tuple]] = {}

    def add(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        status_code: int = 200,
        error: Optional[Exception] = None,
    ) -> None:
        """Queue a response; the last queued response for a route repeats."""
        self._routes.setdefault((method, path), []).append((status_code, body, error))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(500, json={"status": False, "message": "Unexpected route in test"})
        status_code, body, error = queue.pop(0) if len(queue) > 1 else queue[0]
        if error is not None:
            raise error
        return httpx.Response(status_code, json=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=PAYSTACK_BASE_URL, transport=httpx.MockTransport(self.handler))


class RecordingSettlementHandler(SettlementHandler):
    """Settlement handler that records every event it is given."""

    def __init__(self, error: Optional[Exception] = None):
        self.events: List[SettlementEvent] = []
        self.error = error

    async def apply_settlement(self, event: SettlementEvent) -> None:
        self.events.append(event)
        if self.error is not None:
            raise self.error


def sign_stripe_payload(payload: bytes, secret: str = STRIPE_WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a ``Stripe-Signature`` header the way Stripe signs deliveries."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed_payload = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def sign_paystack_payload(payload: bytes, secret: str = PAYSTACK_WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha512).hexdigest()


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        default_gateway="stripe",
        enabled_gateways=["stripe", "paystack"],
        stripe_secret_key=STRIPE_SECRET_KEY,
        stripe_publishable_key="pk_test_123",
        stripe_webhook_secret=STRIPE_WEBHOOK_SECRET,
        paystack_secret_key=PAYSTACK_SECRET_KEY,
        paystack_public_key="pk_test_paystack",
        paystack_webhook_secret=PAYSTACK_WEBHOOK_SECRET,
    )


@pytest.fixture
def stripe_client() -> Mock:
    client = Mock()
    client.v1.payment_intents.create_async = AsyncMock(return_value={
        "id": "pi_test_123",
        "status": "requires_payment_method",
        "amount": 1000,
        "currency": "usd",
        "client_secret": "pi_test_123_secret_abc",
        "metadata": {},
    })
    client.v1.payment_intents.retrieve_async = AsyncMock()
    client.v1.payment_intents.search_async = AsyncMock()
    client.v1.customers.create_async = AsyncMock(return_value={"id": "cus_test_123", "email": "customer@example.com"})
    client.v1.customers.retrieve_async = AsyncMock(return_value={
        "id": "cus_test_123",
        "email": "customer@example.com",
        "name": "Ada Obi",
        "phone": None,
    })
    client.v1.products.create_async = AsyncMock(return_value={"id": "prod_test_123"})
    client.v1.products.retrieve_async = AsyncMock(return_value={"id": "prod_test_123", "default_price": "price_test_123"})
    client.v1.subscriptions.create_async = AsyncMock(return_value={
        "id": "sub_test_123",
        "status": "incomplete",
        "customer": "cus_test_123",
    })
    client.v1.balance.retrieve_async = AsyncMock(return_value={"object": "balance"})
    return client


@pytest.fixture
def stripe_adapter(stripe_client) -> StripeAdapter:
    return StripeAdapter(
        api_key=STRIPE_SECRET_KEY,
        webhook_secret=STRIPE_WEBHOOK_SECRET,
        publishable_key="pk_test_123",
        client=stripe_client,
    )


@pytest.fixture
def paystack_stub() -> PaystackStub:
    return PaystackStub()


@pytest.fixture
def paystack_adapter(paystack_stub) -> PaystackAdapter:
    return PaystackAdapter(
        secret_key=PAYSTACK_SECRET_KEY,
        public_key="pk_test_paystack",
        webhook_secret=PAYSTACK_WEBHOOK_SECRET,
        base_url=PAYSTACK_BASE_URL,
        http_client=paystack_stub.client(),
    )


@pytest.fixture
def settlement_handler() -> RecordingSettlementHandler:
    return RecordingSettlementHandler()


@pytest.fixture
def payment_services(settings, stripe_adapter, paystack_adapter, settlement_handler):
    return build_payment_services(
        settings,
        handler=settlement_handler,
        adapters={ProviderId.STRIPE: stripe_adapter, ProviderId.PAYSTACK: paystack_adapter},
    )
