"""
Payment Gateway Base Classes and Interfaces

Defines the uniform contract every payment provider adapter implements,
the value objects exchanged with the orchestrator, and the minor-unit
conversion helpers shared by the adapters.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Optional, Union

from .exceptions import ValidationError

if TYPE_CHECKING:
    from .webhooks import WebhookEndpoint


class ProviderId(str, Enum):
    """Supported payment providers."""
    STRIPE = "stripe"
    PAYSTACK = "paystack"

    def __str__(self) -> str:
        return self.value


ProviderKey = Union[ProviderId, str]


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PlanInterval(str, Enum):
    """Billing intervals for subscription plans."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BIANNUALLY = "biannually"
    ANNUALLY = "annually"


@dataclass(frozen=True)
class PaymentRequest:
    """Canonical payment initialization request, amounts in major units."""
    customer_email: str
    amount: Decimal
    currency: str
    reference: Optional[str] = None
    callback_url: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class PaymentResult:
    """Result of a payment initialization or verification."""
    provider: ProviderId
    provider_native_id: str
    reference: str
    status: PaymentStatus
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    authorization_url: Optional[str] = None
    access_code: Optional[str] = None
    client_secret: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CustomerDetails:
    """Customer information for customer creation."""
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

    @property
    def full_name(self) -> Optional[str]:
        parts = [part for part in (self.first_name, self.last_name) if part]
        return " ".join(parts) or None


@dataclass
class CustomerRecord:
    """Customer as created on a provider."""
    email: str
    provider: ProviderId
    provider_customer_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PlanDetails:
    """Recurring plan definition, amount in major units."""
    name: str
    amount: Decimal
    interval: PlanInterval
    currency: str


@dataclass
class PlanRecord:
    """Plan as created on a provider."""
    provider: ProviderId
    provider_plan_id: str
    name: str
    amount: Decimal
    currency: str
    interval: PlanInterval
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SubscriptionDetails:
    """Subscription of an existing customer to an existing plan, both provider-native ids."""
    customer_id: str
    plan_id: str
    authorization: Optional[str] = None


@dataclass
class SubscriptionRecord:
    """Subscription as created on a provider."""
    provider: ProviderId
    provider_subscription_id: str
    customer_id: str
    plan_id: str
    status: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


DEFAULT_MINOR_UNIT_FACTOR = 100


def to_minor_units(amount: Decimal, factor: int = DEFAULT_MINOR_UNIT_FACTOR) -> int:
    """
    Convert a major-unit amount into the provider's integer minor unit.

    The conversion is exact: an amount that does not map onto a whole number
    of minor units (e.g. 10.005 with a factor of 100) is rejected instead of
    being truncated.

    Raises:
        ValidationError: If the amount is not a finite positive number or is
            not representable in minor units
    """
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {amount!r}", error_code="invalid_amount")

    if not value.is_finite() or value <= 0:
        raise ValidationError(f"Amount must be a positive number, got {amount}", error_code="invalid_amount")

    # Enough precision that the multiplication never rounds
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(value.as_tuple().digits) + len(str(factor)))
        minor = value * factor
    if minor != minor.to_integral_value():
        raise ValidationError(
            f"Amount {amount} has more precision than the currency's minor unit allows",
            error_code="amount_precision",
        )
    return int(minor)


def from_minor_units(minor_amount: int, factor: int = DEFAULT_MINOR_UNIT_FACTOR) -> Decimal:
    """Convert a provider minor-unit amount back into major units."""
    if factor == 1:
        return Decimal(minor_amount)
    sign, digits, exponent = Decimal(minor_amount).as_tuple()
    return Decimal((sign, digits, exponent - (len(str(factor)) - 1)))


class PaymentGateway(ABC):
    """Abstract base class for payment provider adapters."""

    supports_subscriptions: bool = False

    def __init__(self, **config):
        """Initialize the payment gateway with configuration."""
        self.config = config
        self.provider_id = self._get_provider_id()

    @abstractmethod
    def _get_provider_id(self) -> ProviderId:
        """Return the provider identifier."""
        pass

    @abstractmethod
    async def initialize_payment(self, request: PaymentRequest) -> PaymentResult:
        """
        Start a payment with the provider.

        Args:
            request: Validated payment request carrying a reference

        Returns:
            PaymentResult in PENDING state with the provider's checkout handle

        Raises:
            ValidationError: If the amount cannot be expressed in minor units
            ProviderRequestError: If the provider rejects the call
        """
        pass

    @abstractmethod
    async def verify_payment(self, reference: str) -> PaymentResult:
        """
        Fetch the authoritative state of a payment.

        Args:
            reference: Payment reference known to the provider

        Returns:
            PaymentResult with the provider-reported status

        Raises:
            ProviderRequestError: If the provider does not know the reference
        """
        pass

    @abstractmethod
    async def create_customer(self, customer: CustomerDetails) -> CustomerRecord:
        """
        Create a customer in the payment gateway.

        Raises:
            ProviderRequestError: If customer creation fails
        """
        pass

    @abstractmethod
    async def get_customer(self, customer_id: str) -> CustomerRecord:
        """
        Fetch a customer by its provider-native id.

        Raises:
            ProviderRequestError: If the provider does not know the customer
        """
        pass

    @abstractmethod
    async def create_plan(self, plan: PlanDetails) -> PlanRecord:
        """
        Create a recurring billing plan.

        Raises:
            ValidationError: If the plan amount cannot be expressed in minor units
            ProviderRequestError: If plan creation fails
        """
        pass

    @abstractmethod
    async def create_subscription(self, subscription: SubscriptionDetails) -> SubscriptionRecord:
        """
        Subscribe a customer to a plan.

        Raises:
            ProviderRequestError: If the customer or plan is unknown or the
                provider rejects the subscription
        """
        pass

    @abstractmethod
    def webhook_endpoint(self) -> "WebhookEndpoint":
        """Return the verifier, secret and normalizer for this provider's webhooks."""
        pass

    async def health_check(self) -> bool:
        """
        Check if the payment gateway is reachable with the configured credentials.

        Raises:
            ProviderRequestError: If the provider cannot be reached
        """
        return True

    async def close(self) -> None:
        """Release network resources held by the adapter."""
        return None

    def minor_unit_factor(self, currency: str) -> int:
        """Multiplier between major and minor units for ``currency``."""
        return DEFAULT_MINOR_UNIT_FACTOR

    def get_supported_currencies(self) -> FrozenSet[str]:
        """Currencies the provider settles in."""
        return frozenset()

    def get_public_key(self) -> Optional[str]:
        """Client-side key handed to checkout frontends; never the secret key."""
        return None

    def gateway_info(self) -> Dict[str, Any]:
        """Public description of the gateway for client configuration."""
        return {
            "name": str(self.provider_id),
            "public_key": self.get_public_key(),
            "currencies": sorted(self.get_supported_currencies()),
            "supports_subscriptions": self.supports_subscriptions,
        }
