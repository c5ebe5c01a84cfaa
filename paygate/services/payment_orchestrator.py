from __future__ import annotations

import secrets
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from email_validator import EmailNotValidError, validate_email

from paygate.core.logging import get_logger
from paygate.integrations.payment_gateways.base import (
    CustomerDetails,
    CustomerRecord,
    PaymentGateway,
    PaymentRequest,
    PaymentResult,
    PlanDetails,
    PlanInterval,
    PlanRecord,
    ProviderKey,
    SubscriptionDetails,
    SubscriptionRecord,
)
from paygate.integrations.payment_gateways.exceptions import (
    PaymentError,
    ProviderRequestError,
    UnsupportedProviderError,
    ValidationError,
)
from paygate.services.gateway_router import GatewayRouter

logger = get_logger(__name__)

REFERENCE_BYTES = 16


def generate_reference() -> str:
    """Opaque payment reference: 16 random bytes, 22 URL-safe characters."""
    return secrets.token_urlsafe(REFERENCE_BYTES)


def _validate_email(email: Optional[str]) -> str:
    if not email:
        raise ValidationError("Email is required", error_code="invalid_email")
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email address: {e}", error_code="invalid_email")


def _validate_amount(amount: Any) -> Decimal:
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {amount!r}", error_code="invalid_amount")
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be greater than zero", error_code="invalid_amount")
    return value


def _validate_currency(currency: Optional[str]) -> str:
    if not currency or len(currency) != 3 or not currency.isalpha() or not currency.isascii():
        raise ValidationError(
            f"Currency must be a 3-letter ISO 4217 code, got {currency!r}",
            error_code="invalid_currency",
        )
    return currency.upper()


def _require_id(value: Optional[str], label: str, error_code: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{label} is required", error_code=error_code)
    return value.strip()


class PaymentOrchestrator:
    """
    Provider-independent payment API.

    Each operation validates its input, resolves a provider through the
    router and delegates to that provider's adapter. Provider failures are
    logged with their native detail and re-raised as ProviderRequestError.
    """

    def __init__(self, router: GatewayRouter):
        self.router = router
        self.registry = router.registry

    def validate_payment_request(self, request: PaymentRequest) -> PaymentRequest:
        """
        Check a payment request and fill in a reference when none was given.

        Raises:
            ValidationError: For a bad email, amount or currency
        """
        reference = request.reference.strip() if request.reference else None
        return PaymentRequest(
            customer_email=_validate_email(request.customer_email),
            amount=_validate_amount(request.amount),
            currency=_validate_currency(request.currency),
            reference=reference or generate_reference(),
            callback_url=request.callback_url,
            metadata=request.metadata,
        )

    async def initialize_payment(
        self,
        request: PaymentRequest,
        provider_override: Optional[ProviderKey] = None,
        country: Optional[str] = None,
    ) -> PaymentResult:
        """
        Start a payment with the provider chosen for this request.

        Not retried here: a repeated initialization could double-charge, so
        retry policy stays with the caller, who can reuse the reference.

        Raises:
            ValidationError: If the request is malformed
            UnsupportedProviderError: If ``provider_override`` is not enabled
            ProviderRequestError: If the provider call fails
        """
        request = self.validate_payment_request(request)
        adapter = self.router.select(provider_override, country=country, currency=request.currency)
        log = logger.bind(provider=adapter.provider_id.value, reference=request.reference)
        log.info("payment.initialize.started", amount=str(request.amount), currency=request.currency)

        result = await self._call(adapter, "initialize_payment", log, request)
        log.info("payment.initialize.completed", provider_native_id=result.provider_native_id)
        return result

    async def verify_payment(self, reference: str, provider: ProviderKey) -> PaymentResult:
        """
        Ask the provider that processed a payment for its authoritative state.

        Verification is idempotent, so a transient network failure is
        retried once.

        Raises:
            ValidationError: If the reference is empty
            UnsupportedProviderError: If ``provider`` is not enabled
            ProviderRequestError: If the provider does not know the reference
        """
        reference = _require_id(reference, "Payment reference", "invalid_reference")
        adapter = self._named_adapter(provider)
        log = logger.bind(provider=adapter.provider_id.value, reference=reference)

        try:
            result = await self._call(adapter, "verify_payment", log, reference)
        except ProviderRequestError as e:
            if not e.transient:
                raise
            log.warning("payment.verify.retrying", error=e.error_message)
            result = await self._call(adapter, "verify_payment", log, reference)

        log.info("payment.verify.completed", status=result.status.value)
        return result

    async def create_customer(
        self,
        details: CustomerDetails,
        provider_override: Optional[ProviderKey] = None,
    ) -> CustomerRecord:
        details = CustomerDetails(
            email=_validate_email(details.email),
            first_name=details.first_name,
            last_name=details.last_name,
            phone=details.phone,
        )
        adapter = self.router.select(provider_override)
        log = logger.bind(provider=adapter.provider_id.value)

        record = await self._call(adapter, "create_customer", log, details)
        log.info("customer.created", provider_customer_id=record.provider_customer_id)
        return record

    async def get_customer(self, customer_id: str, provider: ProviderKey) -> CustomerRecord:
        """
        Look up a customer on the provider that holds it.

        Raises:
            ValidationError: If the customer id or gateway is missing
            UnsupportedProviderError: If ``provider`` is not enabled
            ProviderRequestError: If the provider does not know the customer
        """
        customer_id = _require_id(customer_id, "Customer id", "invalid_customer")
        adapter = self._named_adapter(provider)
        log = logger.bind(provider=adapter.provider_id.value, customer_id=customer_id)
        return await self._call(adapter, "get_customer", log, customer_id)

    async def create_plan(
        self,
        details: PlanDetails,
        provider_override: Optional[ProviderKey] = None,
    ) -> PlanRecord:
        if not details.name or not details.name.strip():
            raise ValidationError("Plan name is required", error_code="invalid_plan_name")
        try:
            interval = PlanInterval(details.interval)
        except ValueError:
            raise ValidationError(f"Unsupported plan interval: {details.interval!r}", error_code="invalid_interval")

        details = PlanDetails(
            name=details.name.strip(),
            amount=_validate_amount(details.amount),
            interval=interval,
            currency=_validate_currency(details.currency),
        )
        adapter = self.router.select(provider_override, currency=details.currency)
        log = logger.bind(provider=adapter.provider_id.value)

        record = await self._call(adapter, "create_plan", log, details)
        log.info("plan.created", provider_plan_id=record.provider_plan_id)
        return record

    async def create_subscription(self, details: SubscriptionDetails, provider: ProviderKey) -> SubscriptionRecord:
        """
        Subscribe a customer to a plan on the provider that holds both.

        Customer and plan ids are provider-native, so the gateway is required
        rather than routed.

        Raises:
            ValidationError: If an id or the gateway is missing
            UnsupportedProviderError: If ``provider`` is not enabled or has no subscriptions
            ProviderRequestError: If the provider rejects the subscription
        """
        details = SubscriptionDetails(
            customer_id=_require_id(details.customer_id, "Customer id", "invalid_customer"),
            plan_id=_require_id(details.plan_id, "Plan id", "invalid_plan"),
            authorization=(details.authorization or "").strip() or None,
        )
        adapter = self._named_adapter(provider)
        if not adapter.supports_subscriptions:
            raise UnsupportedProviderError(
                f"Gateway {adapter.provider_id} does not support subscriptions",
                error_code="subscriptions_not_supported",
                provider=adapter.provider_id.value,
            )
        log = logger.bind(provider=adapter.provider_id.value, customer_id=details.customer_id, plan_id=details.plan_id)

        record = await self._call(adapter, "create_subscription", log, details)
        log.info("subscription.created", provider_subscription_id=record.provider_subscription_id)
        return record

    def list_gateways(self) -> Dict[str, Any]:
        return {
            "default_gateway": str(self.registry.default_provider),
            "enabled_gateways": [str(name) for name in self.registry.enabled()],
            "gateways": [adapter.gateway_info() for adapter in self.router.enabled_adapters()],
        }

    def recommend_gateway(self, country: Optional[str] = None, currency: Optional[str] = None) -> ProviderKey:
        return self.registry.recommend(country=country, currency=currency)

    async def test_gateway(self, provider: ProviderKey) -> bool:
        """
        Check connectivity and credentials of an enabled gateway.

        Raises:
            UnsupportedProviderError: If ``provider`` is not enabled
            ProviderRequestError: If the provider cannot be reached
        """
        adapter = self.router.get(provider)
        log = logger.bind(provider=adapter.provider_id.value)
        return await self._call(adapter, "health_check", log)

    async def close(self) -> None:
        for adapter in self.router.adapters.values():
            await adapter.close()

    def _named_adapter(self, provider: Optional[ProviderKey]) -> PaymentGateway:
        """Adapter for a gateway the caller must name, never routed."""
        if provider is None or not str(provider).strip():
            raise ValidationError("Gateway is required for this operation", error_code="gateway_required")
        return self.router.get(provider)

    async def _call(self, adapter: PaymentGateway, operation: str, log, *args):
        """Run one adapter operation, logging and normalizing its failures."""
        try:
            return await getattr(adapter, operation)(*args)
        except ProviderRequestError as e:
            log.error(
                f"payment.{operation}.provider_error",
                error=e.error_message,
                error_code=e.error_code,
                gateway_response=e.gateway_response,
                transient=e.transient,
            )
            raise
        except PaymentError:
            raise
        except Exception as e:
            log.exception(f"payment.{operation}.unexpected_error", error=str(e))
            raise ProviderRequestError(
                message=f"Unexpected error: {e}",
                error_code="unexpected_error",
                provider=adapter.provider_id.value,
            ) from e
