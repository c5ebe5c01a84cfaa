"""
Webhook event normalization.

Providers describe the same payment lifecycle with different vocabularies.
Normalizers decode a verified delivery and collapse the provider-native event
type into one SettlementOutcome.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional

from .base import ProviderId
from .exceptions import MalformedPayloadError
from .signatures import SignatureVerifier


class SettlementOutcome(str, Enum):
    """Provider-independent outcome of a webhook event."""
    COMPLETED = "completed"
    FAILED = "failed"
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_DISABLED = "subscription_disabled"
    SUBSCRIPTION_ENABLED = "subscription_enabled"
    INVOICE_CREATED = "invoice_created"
    INVOICE_PAYMENT_FAILED = "invoice_payment_failed"
    # Informational: logged and acknowledged, no settlement change
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_DELETED = "subscription_deleted"
    INVOICE_PAYMENT_SUCCEEDED = "invoice_payment_succeeded"
    UNHANDLED = "unhandled"


INFORMATIONAL_OUTCOMES: FrozenSet[SettlementOutcome] = frozenset({
    SettlementOutcome.SUBSCRIPTION_UPDATED,
    SettlementOutcome.SUBSCRIPTION_DELETED,
    SettlementOutcome.INVOICE_PAYMENT_SUCCEEDED,
})


@dataclass(frozen=True)
class InboundWebhookEvent:
    """One decoded webhook delivery."""
    provider: ProviderId
    raw_body: bytes
    signature_header: Optional[str]
    event_type: str
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SettlementEvent:
    """Normalized webhook event handed to the settlement handler."""
    reference: Optional[str]
    provider: ProviderId
    outcome: SettlementOutcome
    event_type: str
    raw_payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def requires_settlement(self) -> bool:
        return self.outcome is not SettlementOutcome.UNHANDLED and self.outcome not in INFORMATIONAL_OUTCOMES


class EventNormalizer(ABC):
    """Decodes a provider's webhook body and maps its event vocabulary."""

    event_type_field: str = "event"
    outcome_map: Mapping[str, SettlementOutcome] = {}

    def __init__(self, provider: ProviderId):
        self.provider = provider

    def parse(self, raw_body: bytes, signature_header: Optional[str] = None) -> InboundWebhookEvent:
        """
        Decode a verified delivery.

        Raises:
            MalformedPayloadError: If the body is not a JSON object with a
                string event-type field
        """
        try:
            payload = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedPayloadError(
                message=f"Invalid webhook JSON: {e}",
                error_code="webhook_json_invalid",
                provider=self.provider.value,
            )

        if not isinstance(payload, dict):
            raise MalformedPayloadError(
                message="Webhook body is not a JSON object",
                error_code="webhook_payload_invalid",
                provider=self.provider.value,
            )

        event_type = payload.get(self.event_type_field)
        if not isinstance(event_type, str) or not event_type:
            raise MalformedPayloadError(
                message=f"Webhook body has no '{self.event_type_field}' field",
                error_code="webhook_event_type_missing",
                provider=self.provider.value,
            )

        return InboundWebhookEvent(
            provider=self.provider,
            raw_body=raw_body,
            signature_header=signature_header,
            event_type=event_type,
            payload=payload,
        )

    def normalize(self, event: InboundWebhookEvent) -> SettlementEvent:
        outcome = self.outcome_map.get(event.event_type, SettlementOutcome.UNHANDLED)
        return SettlementEvent(
            reference=self.extract_reference(event, outcome),
            provider=self.provider,
            outcome=outcome,
            event_type=event.event_type,
            raw_payload=event.payload,
        )

    @abstractmethod
    def extract_reference(self, event: InboundWebhookEvent, outcome: SettlementOutcome) -> Optional[str]:
        """Return the key the settlement handler applies the event to."""
        pass


class PaystackEventNormalizer(EventNormalizer):
    """Paystack events: ``{"event": "charge.success", "data": {...}}``."""

    event_type_field = "event"
    outcome_map = {
        "charge.success": SettlementOutcome.COMPLETED,
        "charge.failed": SettlementOutcome.FAILED,
        "subscription.create": SettlementOutcome.SUBSCRIPTION_CREATED,
        "subscription.disable": SettlementOutcome.SUBSCRIPTION_DISABLED,
        "subscription.enable": SettlementOutcome.SUBSCRIPTION_ENABLED,
        "invoice.create": SettlementOutcome.INVOICE_CREATED,
        "invoice.payment_failed": SettlementOutcome.INVOICE_PAYMENT_FAILED,
    }

    def __init__(self):
        super().__init__(ProviderId.PAYSTACK)

    def extract_reference(self, event: InboundWebhookEvent, outcome: SettlementOutcome) -> Optional[str]:
        data = event.payload.get("data")
        if not isinstance(data, dict):
            return None
        for key in ("reference", "subscription_code", "invoice_code"):
            if data.get(key):
                return str(data[key])
        return None


class StripeEventNormalizer(EventNormalizer):
    """Stripe events: ``{"type": "payment_intent.succeeded", "data": {"object": {...}}}``."""

    event_type_field = "type"
    outcome_map = {
        "payment_intent.succeeded": SettlementOutcome.COMPLETED,
        "payment_intent.payment_failed": SettlementOutcome.FAILED,
        "charge.succeeded": SettlementOutcome.COMPLETED,
        "charge.failed": SettlementOutcome.FAILED,
        "customer.subscription.created": SettlementOutcome.SUBSCRIPTION_CREATED,
        "customer.subscription.paused": SettlementOutcome.SUBSCRIPTION_DISABLED,
        "customer.subscription.resumed": SettlementOutcome.SUBSCRIPTION_ENABLED,
        "customer.subscription.updated": SettlementOutcome.SUBSCRIPTION_UPDATED,
        "customer.subscription.deleted": SettlementOutcome.SUBSCRIPTION_DELETED,
        "invoice.created": SettlementOutcome.INVOICE_CREATED,
        "invoice.payment_failed": SettlementOutcome.INVOICE_PAYMENT_FAILED,
        "invoice.payment_succeeded": SettlementOutcome.INVOICE_PAYMENT_SUCCEEDED,
    }

    def __init__(self):
        super().__init__(ProviderId.STRIPE)

    def extract_reference(self, event: InboundWebhookEvent, outcome: SettlementOutcome) -> Optional[str]:
        data = event.payload.get("data")
        obj = data.get("object") if isinstance(data, dict) else None
        if not isinstance(obj, dict):
            return None
        # Payments initialized here carry our reference in metadata
        metadata = obj.get("metadata")
        if isinstance(metadata, dict) and metadata.get("reference"):
            return str(metadata["reference"])
        return str(obj["id"]) if obj.get("id") else None


@dataclass(frozen=True)
class WebhookEndpoint:
    """Everything needed to authenticate and normalize one provider's webhooks."""
    provider: ProviderId
    verifier: SignatureVerifier
    shared_secret: Optional[str]
    normalizer: EventNormalizer
    signature_header: str
