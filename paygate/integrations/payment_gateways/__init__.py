"""
Payment gateway integration modules

Provides adapters for the supported payment providers behind one
interface, plus webhook signature verification and event normalization.
"""

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
from .exceptions import (
    MalformedPayloadError,
    PaymentError,
    ProviderRequestError,
    UnsupportedProviderError,
    ValidationError,
)
from .webhooks import (
    InboundWebhookEvent,
    SettlementEvent,
    SettlementOutcome,
    WebhookEndpoint,
)

__all__ = [
    "CustomerDetails",
    "CustomerRecord",
    "PaymentGateway",
    "PaymentRequest",
    "PaymentResult",
    "PaymentStatus",
    "PlanDetails",
    "PlanInterval",
    "PlanRecord",
    "ProviderId",
    "SubscriptionDetails",
    "SubscriptionRecord",
    "from_minor_units",
    "to_minor_units",
    "MalformedPayloadError",
    "PaymentError",
    "ProviderRequestError",
    "UnsupportedProviderError",
    "ValidationError",
    "InboundWebhookEvent",
    "SettlementEvent",
    "SettlementOutcome",
    "WebhookEndpoint",
]
