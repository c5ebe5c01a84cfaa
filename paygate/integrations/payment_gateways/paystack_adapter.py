"""
Paystack Payment Gateway Adapter

Africa-focused provider. Payments are initialized server-side and completed
on Paystack's hosted checkout (authorization_url) or inline popup
(access_code).
"""

import logging
from typing import Any, Dict, FrozenSet, Optional
from urllib.parse import quote

import httpx

from .base import (
    CustomerDetails,
    CustomerRecord,
    PaymentGateway,
    PaymentRequest,
    PaymentResult,
    PaymentStatus,
    PlanDetails,
    PlanRecord,
    ProviderId,
    SubscriptionDetails,
    SubscriptionRecord,
    from_minor_units,
    to_minor_units,
)
from .exceptions import ProviderRequestError
from .signatures import HmacSignatureVerifier
from .webhooks import PaystackEventNormalizer, WebhookEndpoint

logger = logging.getLogger(__name__)

PAYSTACK_STATUS_MAP = {
    "success": PaymentStatus.SUCCEEDED,
    "failed": PaymentStatus.FAILED,
    "abandoned": PaymentStatus.FAILED,
    "reversed": PaymentStatus.FAILED,
}


class PaystackAdapter(PaymentGateway):
    """Paystack payment gateway adapter."""

    supports_subscriptions = True

    def __init__(
        self,
        secret_key: str,
        public_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        base_url: str = "https://api.paystack.co",
        timeout_seconds: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **config
    ):
        """
        Initialize Paystack adapter.

        Args:
            secret_key: Paystack secret key, sent as a bearer token
            public_key: Paystack public key for the inline checkout
            webhook_secret: Secret for HMAC-SHA512 webhook signatures
            base_url: Paystack API base URL
            timeout_seconds: Bound on every outbound call
            http_client: Preconfigured client (tests)
            transport: Transport for the adapter-built client (tests)
            **config: Additional configuration
        """
        super().__init__(
            secret_key=secret_key,
            public_key=public_key,
            webhook_secret=webhook_secret,
            base_url=base_url,
            timeout_seconds=timeout_seconds,
            **config
        )
        self.secret_key = secret_key
        self.public_key = public_key
        self.webhook_secret = webhook_secret
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

        # One client per adapter, closed once on shutdown and never recreated
        self._http_client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout_seconds),
            headers={
                "Authorization": f"Bearer {self.secret_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            transport=transport,
        )

    def _get_provider_id(self) -> ProviderId:
        return ProviderId.PAYSTACK

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http_client

    async def close(self) -> None:
        if not self._http_client.is_closed:
            await self._http_client.aclose()

    async def initialize_payment(self, request: PaymentRequest) -> PaymentResult:
        """Initialize a transaction; amounts are sent in kobo/pesewas/cents."""
        body: Dict[str, Any] = {
            "email": request.customer_email,
            "amount": to_minor_units(request.amount, self.minor_unit_factor(request.currency)),
            "currency": request.currency.upper(),
            "reference": request.reference,
        }
        if request.callback_url:
            body["callback_url"] = request.callback_url
        if request.metadata:
            body["metadata"] = request.metadata

        response = await self._request("POST", "/transaction/initialize", "initialize_payment", json=body)
        data = response.get("data") or {}

        return PaymentResult(
            provider=self.provider_id,
            provider_native_id=data.get("reference") or request.reference,
            reference=data.get("reference") or request.reference,
            status=PaymentStatus.PENDING,
            amount=request.amount,
            currency=request.currency.upper(),
            authorization_url=data.get("authorization_url"),
            access_code=data.get("access_code"),
            raw=response,
        )

    async def verify_payment(self, reference: str) -> PaymentResult:
        response = await self._request(
            "GET",
            f"/transaction/verify/{quote(reference, safe='')}",
            "verify_payment",
        )
        data = response.get("data") or {}
        currency = (data.get("currency") or "").upper()
        amount = data.get("amount")

        return PaymentResult(
            provider=self.provider_id,
            provider_native_id=str(data.get("id") or reference),
            reference=data.get("reference") or reference,
            status=PAYSTACK_STATUS_MAP.get(data.get("status"), PaymentStatus.PENDING),
            amount=from_minor_units(amount, self.minor_unit_factor(currency)) if amount is not None else None,
            currency=currency or None,
            raw=response,
        )

    async def create_customer(self, customer: CustomerDetails) -> CustomerRecord:
        body = {
            "email": customer.email,
            "first_name": customer.first_name,
            "last_name": customer.last_name,
            "phone": customer.phone,
        }
        response = await self._request(
            "POST",
            "/customer",
            "create_customer",
            json={key: value for key, value in body.items() if value is not None},
        )
        data = response.get("data") or {}

        return CustomerRecord(
            email=customer.email,
            provider=self.provider_id,
            provider_customer_id=data.get("customer_code") or str(data.get("id", "")),
            first_name=customer.first_name,
            last_name=customer.last_name,
            phone=customer.phone,
            raw=response,
        )

    async def get_customer(self, customer_id: str) -> CustomerRecord:
        """Fetch a customer by customer code (``CUS_...``), id or email."""
        response = await self._request(
            "GET",
            f"/customer/{quote(customer_id, safe='@')}",
            "get_customer",
        )
        data = response.get("data") or {}

        return CustomerRecord(
            email=data.get("email") or "",
            provider=self.provider_id,
            provider_customer_id=data.get("customer_code") or customer_id,
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            phone=data.get("phone"),
            raw=response,
        )

    async def create_plan(self, plan: PlanDetails) -> PlanRecord:
        body = {
            "name": plan.name,
            "amount": to_minor_units(plan.amount, self.minor_unit_factor(plan.currency)),
            "interval": plan.interval.value,
            "currency": plan.currency.upper(),
        }
        response = await self._request("POST", "/plan", "create_plan", json=body)
        data = response.get("data") or {}

        return PlanRecord(
            provider=self.provider_id,
            provider_plan_id=data.get("plan_code") or str(data.get("id", "")),
            name=plan.name,
            amount=plan.amount,
            currency=plan.currency.upper(),
            interval=plan.interval,
            raw=response,
        )

    async def create_subscription(self, subscription: SubscriptionDetails) -> SubscriptionRecord:
        """
        Subscribe a customer to a plan.

        Without ``authorization`` Paystack charges the customer's most recent
        reusable authorization.
        """
        body = {"customer": subscription.customer_id, "plan": subscription.plan_id}
        if subscription.authorization:
            body["authorization"] = subscription.authorization
        response = await self._request("POST", "/subscription", "create_subscription", json=body)
        data = response.get("data") or {}

        return SubscriptionRecord(
            provider=self.provider_id,
            provider_subscription_id=data.get("subscription_code") or str(data.get("id", "")),
            customer_id=subscription.customer_id,
            plan_id=subscription.plan_id,
            status=data.get("status"),
            raw=response,
        )

    async def list_transactions(self, per_page: int = 50, page: int = 1, customer: Optional[str] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"perPage": per_page, "page": page}
        if customer:
            params["customer"] = customer
        return await self._request("GET", "/transaction", "list_transactions", params=params)

    async def health_check(self) -> bool:
        await self.list_transactions(per_page=1, page=1)
        return True

    def webhook_endpoint(self) -> WebhookEndpoint:
        return WebhookEndpoint(
            provider=self.provider_id,
            verifier=HmacSignatureVerifier("sha512"),
            shared_secret=self.webhook_secret,
            normalizer=PaystackEventNormalizer(),
            signature_header="X-Paystack-Signature",
        )

    def get_supported_currencies(self) -> FrozenSet[str]:
        return frozenset({"NGN", "GHS", "ZAR", "KES"})

    def get_public_key(self) -> Optional[str]:
        return self.public_key

    async def _request(self, method: str, path: str, operation: str, **kwargs) -> Dict[str, Any]:
        """
        Call the Paystack API and unwrap its ``{"status", "message", "data"}`` envelope.

        Raises:
            ProviderRequestError: On transport failure, non-2xx status or a
                ``status: false`` envelope
        """
        try:
            response = await self.http_client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.error(f"Paystack {operation} transport error: {e}")
            raise ProviderRequestError(
                message=f"Paystack unreachable: {e}",
                error_code="paystack_transport_error",
                provider=self.provider_id.value,
                gateway_response={"error": str(e)},
                transient=True,
            )

        try:
            payload = response.json()
        except ValueError:
            payload = {"message": response.text}
        if not isinstance(payload, dict):
            payload = {"data": payload}

        if response.is_success and payload.get("status", True):
            return payload

        message = payload.get("message") or f"HTTP {response.status_code}"
        logger.error(f"Paystack {operation} error ({response.status_code}): {message}")
        error_code = "reference_not_found" if "not found" in message.lower() else f"paystack_http_{response.status_code}"
        raise ProviderRequestError(
            message=message,
            error_code=error_code,
            provider=self.provider_id.value,
            gateway_response={"status_code": response.status_code, "body": payload},
            transient=response.status_code >= 500,
        )
