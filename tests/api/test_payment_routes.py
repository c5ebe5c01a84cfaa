"""
HTTP API tests for the payment and webhook routes.
"""

import json
from typing import Generator

import pytest
import stripe
from fastapi.testclient import TestClient

from conftest import sign_paystack_payload, sign_stripe_payload
from paygate.integrations.payment_gateways.webhooks import SettlementOutcome
from paygate.main import create_application


PAYSTACK_INIT_RESPONSE = {
    "status": True,
    "message": "Authorization URL created",
    "data": {
        "authorization_url": "https://checkout.paystack.com/xyz",
        "access_code": "xyz",
        "reference": "ref_ng_001",
    },
}


@pytest.fixture
def test_client(settings, payment_services) -> Generator[TestClient, None, None]:
    application = create_application(settings=settings, services=payment_services)
    with TestClient(application) as client:
        yield client


class TestGatewayRoutes:

    def test_list_gateways(self, test_client):
        response = test_client.get("/int/v1/payments/gateways")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "gateway": "stripe",
            "data": {
                "default_gateway": "stripe",
                "enabled_gateways": ["paystack", "stripe"],
                "gateways": [
                    {
                        "name": "paystack",
                        "public_key": "pk_test_paystack",
                        "currencies": ["GHS", "KES", "NGN", "ZAR"],
                        "supports_subscriptions": True,
                    },
                    {
                        "name": "stripe",
                        "public_key": "pk_test_123",
                        "currencies": ["AUD", "CAD", "EUR", "GBP", "USD"],
                        "supports_subscriptions": True,
                    },
                ],
            },
        }

    def test_recommended_gateway(self, test_client):
        response = test_client.get("/int/v1/payments/recommended-gateway", params={"country": "NG"})

        assert response.status_code == 200
        assert response.json()["data"] == {"recommended_gateway": "paystack"}

    def test_recommended_gateway_defaults(self, test_client):
        response = test_client.get("/int/v1/payments/recommended-gateway")

        assert response.json()["data"] == {"recommended_gateway": "stripe"}

    def test_test_gateway(self, test_client, stripe_client):
        response = test_client.get("/int/v1/payments/test/stripe")

        assert response.status_code == 200
        assert response.json() == {"success": True, "gateway": "stripe", "data": {"healthy": True}}
        stripe_client.v1.balance.retrieve_async.assert_awaited_once()

    def test_test_disabled_gateway(self, test_client):
        response = test_client.get("/int/v1/payments/test/flutterwave")

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["error"] == "gateway_not_enabled"


class TestPaymentRoutes:

    def test_initialize_usd_with_stripe(self, test_client, stripe_client):
        response = test_client.post("/int/v1/payments/initialize", json={
            "email": "customer@example.com",
            "amount": "10.00",
            "currency": "USD",
            "reference": "order-1001",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["gateway"] == "stripe"
        assert body["data"]["provider_native_id"] == "pi_test_123"
        assert body["data"]["reference"] == "order-1001"
        assert body["data"]["status"] == "pending"
        assert body["data"]["client_secret"] == "pi_test_123_secret_abc"
        assert stripe_client.v1.payment_intents.create_async.await_args.kwargs["params"]["amount"] == 1000

    def test_initialize_routes_by_country(self, test_client, paystack_stub):
        paystack_stub.add("POST", "/transaction/initialize", PAYSTACK_INIT_RESPONSE)

        response = test_client.post("/int/v1/payments/initialize", json={
            "email": "buyer@example.ng",
            "amount": 5000,
            "currency": "NGN",
            "country": "NG",
        })

        assert response.status_code == 200
        assert response.json()["gateway"] == "paystack"
        assert response.json()["data"]["authorization_url"] == "https://checkout.paystack.com/xyz"

    def test_initialize_request_validation(self, test_client):
        response = test_client.post("/int/v1/payments/initialize", json={
            "email": "not-an-email",
            "amount": -1,
            "currency": "US",
        })

        assert response.status_code == 422

    def test_initialize_excess_precision(self, test_client):
        response = test_client.post("/int/v1/payments/initialize", json={
            "email": "customer@example.com",
            "amount": "10.005",
            "currency": "USD",
        })

        assert response.status_code == 422
        assert response.json()["error"] == "amount_precision"

    def test_initialize_disabled_gateway(self, test_client):
        response = test_client.post("/int/v1/payments/initialize", json={
            "email": "customer@example.com",
            "amount": "10.00",
            "currency": "USD",
            "gateway": "flutterwave",
        })

        assert response.status_code == 400

    def test_provider_failure_is_generic(self, test_client, stripe_client):
        stripe_client.v1.payment_intents.create_async.side_effect = stripe.CardError(
            "Your card was declined. (secret detail)", param="card", code="card_declined"
        )

        response = test_client.post("/int/v1/payments/initialize", json={
            "email": "customer@example.com",
            "amount": "10.00",
            "currency": "USD",
        })

        assert response.status_code == 502
        assert response.json()["message"] == "Payment provider request failed"
        assert "secret detail" not in response.text

    def test_verify(self, test_client, paystack_stub):
        paystack_stub.add("GET", "/transaction/verify/ref_ng_001", {
            "status": True,
            "data": {"id": 42, "status": "success", "reference": "ref_ng_001", "amount": 500000, "currency": "NGN"},
        })

        response = test_client.post("/int/v1/payments/verify", json={"reference": "ref_ng_001", "gateway": "paystack"})

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "succeeded"
        assert response.json()["data"]["amount"] == "5000.00"

    def test_verify_requires_gateway(self, test_client):
        response = test_client.post("/int/v1/payments/verify", json={"reference": "ref_ng_001"})

        assert response.status_code == 422

    def test_create_customer(self, test_client):
        response = test_client.post("/int/v1/payments/customers", json={
            "email": "customer@example.com",
            "first_name": "Ada",
            "last_name": "Obi",
        })

        assert response.status_code == 201
        assert response.json()["data"]["provider_customer_id"] == "cus_test_123"

    def test_create_plan(self, test_client, stripe_client):
        response = test_client.post("/int/v1/payments/plans", json={
            "name": "Pro",
            "amount": "49.99",
            "interval": "monthly",
            "currency": "USD",
        })

        assert response.status_code == 201
        assert response.json()["data"]["provider_plan_id"] == "prod_test_123"
        assert response.json()["data"]["interval"] == "monthly"

    def test_create_plan_rejects_unknown_interval(self, test_client):
        response = test_client.post("/int/v1/payments/plans", json={
            "name": "Pro",
            "amount": "49.99",
            "interval": "hourly",
            "currency": "USD",
        })

        assert response.status_code == 422

    def test_get_customer(self, test_client, stripe_client):
        response = test_client.get("/int/v1/payments/customers/cus_test_123", params={"gateway": "stripe"})

        assert response.status_code == 200
        assert response.json()["gateway"] == "stripe"
        assert response.json()["data"]["email"] == "customer@example.com"
        stripe_client.v1.customers.retrieve_async.assert_awaited_once_with("cus_test_123")

    def test_get_customer_requires_gateway(self, test_client):
        response = test_client.get("/int/v1/payments/customers/cus_test_123")

        assert response.status_code == 422

    def test_create_subscription(self, test_client, paystack_stub):
        paystack_stub.add("POST", "/subscription", {
            "status": True,
            "data": {"subscription_code": "SUB_vsyqdmlzble3uii", "status": "active"},
        })

        response = test_client.post("/int/v1/payments/subscriptions", json={
            "customer": "CUS_xnxdt6s1zg1f4nx",
            "plan": "PLN_gx2wn530m0i3w3m",
            "gateway": "paystack",
        })

        assert response.status_code == 201
        assert response.json() == {
            "success": True,
            "gateway": "paystack",
            "data": {
                "provider_subscription_id": "SUB_vsyqdmlzble3uii",
                "customer_id": "CUS_xnxdt6s1zg1f4nx",
                "plan_id": "PLN_gx2wn530m0i3w3m",
                "status": "active",
            },
        }

    def test_create_subscription_disabled_gateway(self, test_client):
        response = test_client.post("/int/v1/payments/subscriptions", json={
            "customer": "CUS_1",
            "plan": "PLN_1",
            "gateway": "flutterwave",
        })

        assert response.status_code == 400
        assert response.json()["error"] == "gateway_not_enabled"


class TestErrorHandlers:

    def test_unexpected_error_is_json_500(self, settings, payment_services, monkeypatch):
        def fail():
            raise RuntimeError("registry exploded")

        monkeypatch.setattr(payment_services.orchestrator, "list_gateways", fail)
        application = create_application(settings=settings, services=payment_services)

        with TestClient(application, raise_server_exceptions=False) as client:
            response = client.get("/int/v1/payments/gateways")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Internal server error", "error": None}
        assert "registry exploded" not in response.text

    def test_payment_errors_share_one_body_shape(self, test_client):
        response = test_client.post("/int/v1/payments/verify", json={"reference": "  ", "gateway": "stripe"})

        assert response.status_code == 422
        assert response.json() == {
            "success": False,
            "message": "Payment reference is required",
            "error": "invalid_reference",
        }


class TestWebhookRoutes:

    CHARGE_SUCCESS = json.dumps({"event": "charge.success", "data": {"reference": "ref_ng_001"}}).encode("utf-8")

    def test_paystack_webhook(self, test_client, settlement_handler):
        response = test_client.post(
            "/int/v1/webhooks/paystack",
            content=self.CHARGE_SUCCESS,
            headers={"X-Paystack-Signature": sign_paystack_payload(self.CHARGE_SUCCESS), "Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.text == "OK"
        assert settlement_handler.events[0].outcome is SettlementOutcome.COMPLETED

    def test_invalid_signature(self, test_client, settlement_handler):
        response = test_client.post(
            "/int/v1/webhooks/paystack",
            content=self.CHARGE_SUCCESS,
            headers={"X-Paystack-Signature": "bad"},
        )

        assert response.status_code == 401
        assert response.text == "Invalid signature"
        assert settlement_handler.events == []

    @pytest.mark.parametrize("provider,header", [
        ("paystack", "X-Paystack-Signature"),
        ("stripe", "Stripe-Signature"),
    ])
    def test_non_ascii_signature_header(self, test_client, settlement_handler, provider, header):
        response = test_client.post(
            f"/int/v1/webhooks/{provider}",
            content=self.CHARGE_SUCCESS,
            headers={header: "café".encode("latin-1")},
        )

        assert response.status_code == 401
        assert response.text == "Invalid signature"
        assert settlement_handler.events == []

    def test_stripe_webhook(self, test_client, settlement_handler):
        body = json.dumps({
            "id": "evt_1",
            "type": "payment_intent.payment_failed",
            "data": {"object": {"id": "pi_1", "metadata": {"reference": "order-1001"}}},
        }).encode("utf-8")

        response = test_client.post(
            "/int/v1/webhooks/stripe",
            content=body,
            headers={"Stripe-Signature": sign_stripe_payload(body)},
        )

        assert response.status_code == 200
        assert settlement_handler.events[0].outcome is SettlementOutcome.FAILED
        assert settlement_handler.events[0].reference == "order-1001"

    def test_unknown_provider(self, test_client):
        response = test_client.post("/int/v1/webhooks/flutterwave", content=b"{}")

        assert response.status_code == 404
        assert response.text == "Unknown gateway"
