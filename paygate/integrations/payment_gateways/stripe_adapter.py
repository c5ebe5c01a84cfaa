"""
Stripe Payment Gateway Adapter

Card-network provider. Payments are Payment Intents confirmed on the
client with the returned client secret; plans are Products carrying a
recurring default price.
"""

import logging
from typing import Any, Dict, FrozenSet, Optional

import stripe
from stripe import APIConnectionError, InvalidRequestError, StripeClient, StripeError

from .base import (
    CustomerDetails,
    CustomerRecord,
    PaymentGateway,
    PaymentRequest,
    PaymentResult,
    PaymentStatus,
    PlanDetails,
    PlanInterval,
    PlanRecord,
    ProviderId,
    SubscriptionDetails,
    SubscriptionRecord,
    from_minor_units,
    to_minor_units,
)
from .exceptions import ProviderRequestError
from .signatures import StripeSignatureVerifier
from .webhooks import StripeEventNormalizer, WebhookEndpoint

logger = logging.getLogger(__name__)

# https://docs.stripe.com/currencies#zero-decimal
ZERO_DECIMAL_CURRENCIES = frozenset({
    "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
})

STRIPE_INTERVALS: Dict[PlanInterval, tuple] = {
    PlanInterval.DAILY: ("day", 1),
    PlanInterval.WEEKLY: ("week", 1),
    PlanInterval.MONTHLY: ("month", 1),
    PlanInterval.QUARTERLY: ("month", 3),
    PlanInterval.BIANNUALLY: ("month", 6),
    PlanInterval.ANNUALLY: ("year", 1),
}


def _escape_query(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class StripeAdapter(PaymentGateway):
    """Stripe payment gateway adapter."""

    supports_subscriptions = True

    def __init__(
        self,
        api_key: str,
        webhook_secret: Optional[str] = None,
        publishable_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
        webhook_tolerance_seconds: int = 300,
        client: Optional[StripeClient] = None,
        **config
    ):
        """
        Initialize Stripe adapter.

        Args:
            api_key: Stripe secret API key
            webhook_secret: Stripe webhook signing secret, distinct from the API key
            publishable_key: Stripe publishable key for the frontend
            timeout_seconds: Bound on every outbound call
            webhook_tolerance_seconds: Maximum webhook age accepted
            client: Preconfigured StripeClient (tests)
            **config: Additional configuration
        """
        super().__init__(
            api_key=api_key,
            webhook_secret=webhook_secret,
            publishable_key=publishable_key,
            timeout_seconds=timeout_seconds,
            **config
        )
        self.webhook_secret = webhook_secret
        self.publishable_key = publishable_key
        self.timeout_seconds = timeout_seconds
        self.webhook_tolerance_seconds = webhook_tolerance_seconds
        # Retries belong to the caller: a blind retry of a payment could double-charge
        self.client = client or StripeClient(
            api_key,
            http_client=stripe.HTTPXClient(timeout=timeout_seconds),
            max_network_retries=0,
        )

    def _get_provider_id(self) -> ProviderId:
        return ProviderId.STRIPE

    def minor_unit_factor(self, currency: str) -> int:
        return 1 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 100

    async def initialize_payment(self, request: PaymentRequest) -> PaymentResult:
        """
        Create a Payment Intent for the request.

        The payment reference doubles as the Stripe idempotency key, so a
        retried initialization returns the same intent instead of a new one.
        """
        factor = self.minor_unit_factor(request.currency)
        metadata = {"reference": request.reference}
        if request.callback_url:
            metadata["callback_url"] = request.callback_url
        if request.metadata:
            metadata.update({key: str(value) for key, value in request.metadata.items()})

        params: Dict[str, Any] = {
            "amount": to_minor_units(request.amount, factor),
            "currency": request.currency.lower(),
            "receipt_email": request.customer_email,
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
        }

        try:
            payment_intent = await self.client.v1.payment_intents.create_async(
                params=params,
                options={"idempotency_key": request.reference},
            )
        except StripeError as e:
            raise self._translate_error(e, "initialize_payment")

        return self._payment_result(payment_intent, request.reference)

    async def verify_payment(self, reference: str) -> PaymentResult:
        """
        Retrieve a Payment Intent.

        Accepts either the intent id (``pi_...``) or the reference stored in
        the intent metadata at initialization.
        """
        try:
            if reference.startswith("pi_"):
                payment_intent = await self.client.v1.payment_intents.retrieve_async(reference)
            else:
                found = await self.client.v1.payment_intents.search_async(
                    params={"query": f"metadata['reference']:'{_escape_query(reference)}'", "limit": 1}
                )
                matches = found["data"]
                if not matches:
                    # Search indexing lags intent creation, so a fresh reference can miss
                    raise ProviderRequestError(
                        message=f"Unknown payment reference: {reference}",
                        error_code="reference_not_found",
                        provider=self.provider_id.value,
                        transient=True,
                    )
                payment_intent = matches[0]
        except StripeError as e:
            raise self._translate_error(e, "verify_payment")

        metadata = payment_intent.get("metadata") or {}
        return self._payment_result(payment_intent, metadata.get("reference") or reference)

    async def create_customer(self, customer: CustomerDetails) -> CustomerRecord:
        params: Dict[str, Any] = {"email": customer.email}
        if customer.full_name:
            params["name"] = customer.full_name
        if customer.phone:
            params["phone"] = customer.phone

        try:
            stripe_customer = await self.client.v1.customers.create_async(params=params)
        except StripeError as e:
            raise self._translate_error(e, "create_customer")

        return CustomerRecord(
            email=customer.email,
            provider=self.provider_id,
            provider_customer_id=stripe_customer["id"],
            first_name=customer.first_name,
            last_name=customer.last_name,
            phone=customer.phone,
            raw=dict(stripe_customer),
        )

    async def get_customer(self, customer_id: str) -> CustomerRecord:
        try:
            stripe_customer = await self.client.v1.customers.retrieve_async(customer_id)
        except StripeError as e:
            raise self._translate_error(e, "get_customer")

        if stripe_customer.get("deleted"):
            raise ProviderRequestError(
                message=f"Customer {customer_id} has been deleted",
                error_code="customer_not_found",
                provider=self.provider_id.value,
            )

        # Stripe keeps a single display name
        first_name, _, last_name = (stripe_customer.get("name") or "").partition(" ")
        return CustomerRecord(
            email=stripe_customer.get("email") or "",
            provider=self.provider_id,
            provider_customer_id=stripe_customer["id"],
            first_name=first_name or None,
            last_name=last_name or None,
            phone=stripe_customer.get("phone"),
            raw=dict(stripe_customer),
        )

    async def create_plan(self, plan: PlanDetails) -> PlanRecord:
        """Create a Product whose default price recurs on the plan interval."""
        interval, interval_count = STRIPE_INTERVALS[plan.interval]
        params = {
            "name": plan.name,
            "default_price_data": {
                "currency": plan.currency.lower(),
                "unit_amount": to_minor_units(plan.amount, self.minor_unit_factor(plan.currency)),
                "recurring": {"interval": interval, "interval_count": interval_count},
            },
        }

        try:
            product = await self.client.v1.products.create_async(params=params)
        except StripeError as e:
            raise self._translate_error(e, "create_plan")

        return PlanRecord(
            provider=self.provider_id,
            provider_plan_id=product["id"],
            name=plan.name,
            amount=plan.amount,
            currency=plan.currency.upper(),
            interval=plan.interval,
            raw=dict(product),
        )

    async def create_subscription(self, subscription: SubscriptionDetails) -> SubscriptionRecord:
        """
        Subscribe a customer to a plan.

        Plans are Products, so a ``prod_...`` id is resolved to its default
        price first; a ``price_...`` id is used as is. ``authorization`` is
        taken as the payment method to charge.
        """
        try:
            price_id = await self._resolve_price(subscription.plan_id)
            params: Dict[str, Any] = {
                "customer": subscription.customer_id,
                "items": [{"price": price_id}],
                "metadata": {"plan": subscription.plan_id},
            }
            if subscription.authorization:
                params["default_payment_method"] = subscription.authorization
            stripe_subscription = await self.client.v1.subscriptions.create_async(params=params)
        except StripeError as e:
            raise self._translate_error(e, "create_subscription")

        return SubscriptionRecord(
            provider=self.provider_id,
            provider_subscription_id=stripe_subscription["id"],
            customer_id=subscription.customer_id,
            plan_id=subscription.plan_id,
            status=stripe_subscription.get("status"),
            raw=dict(stripe_subscription),
        )

    async def _resolve_price(self, plan_id: str) -> str:
        if plan_id.startswith("price_"):
            return plan_id
        product = await self.client.v1.products.retrieve_async(plan_id)
        default_price = product.get("default_price")
        if isinstance(default_price, dict):
            default_price = default_price.get("id")
        if not default_price:
            raise ProviderRequestError(
                message=f"Plan {plan_id} has no recurring price",
                error_code="plan_without_price",
                provider=self.provider_id.value,
            )
        return default_price

    async def health_check(self) -> bool:
        try:
            await self.client.v1.balance.retrieve_async()
        except StripeError as e:
            raise self._translate_error(e, "health_check")
        return True

    def webhook_endpoint(self) -> WebhookEndpoint:
        return WebhookEndpoint(
            provider=self.provider_id,
            verifier=StripeSignatureVerifier(tolerance_seconds=self.webhook_tolerance_seconds),
            shared_secret=self.webhook_secret,
            normalizer=StripeEventNormalizer(),
            signature_header="Stripe-Signature",
        )

    def get_supported_currencies(self) -> FrozenSet[str]:
        return frozenset({"USD", "EUR", "GBP", "CAD", "AUD"})

    def get_public_key(self) -> Optional[str]:
        return self.publishable_key

    def _payment_result(self, payment_intent, reference: str) -> PaymentResult:
        currency = (payment_intent.get("currency") or "").upper()
        amount = payment_intent.get("amount")
        return PaymentResult(
            provider=self.provider_id,
            provider_native_id=payment_intent["id"],
            reference=reference,
            status=self._map_stripe_status(payment_intent),
            amount=from_minor_units(amount, self.minor_unit_factor(currency)) if amount is not None else None,
            currency=currency or None,
            client_secret=payment_intent.get("client_secret"),
            raw=dict(payment_intent),
        )

    def _map_stripe_status(self, payment_intent) -> PaymentStatus:
        """Map Stripe intent status to our PaymentStatus enum."""
        stripe_status = payment_intent.get("status")
        if stripe_status == "succeeded":
            return PaymentStatus.SUCCEEDED
        if stripe_status == "canceled":
            return PaymentStatus.FAILED
        if stripe_status == "requires_payment_method" and payment_intent.get("last_payment_error"):
            return PaymentStatus.FAILED
        return PaymentStatus.PENDING

    def _translate_error(self, e: StripeError, operation: str) -> ProviderRequestError:
        logger.error(f"Stripe {operation} error: {e}")
        error_code = getattr(e, "code", None) or "stripe_api_error"
        if isinstance(e, InvalidRequestError) and error_code == "resource_missing":
            error_code = "reference_not_found"
        return ProviderRequestError(
            message=getattr(e, "user_message", None) or str(e) or "Stripe request failed",
            error_code=error_code,
            provider=self.provider_id.value,
            gateway_response={"error": str(e), "http_status": getattr(e, "http_status", None)},
            transient=isinstance(e, APIConnectionError),
        )
