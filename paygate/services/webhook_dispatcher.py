from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Optional

from paygate.core.logging import get_logger
from paygate.integrations.payment_gateways.base import ProviderKey
from paygate.integrations.payment_gateways.exceptions import MalformedPayloadError
from paygate.integrations.payment_gateways.webhooks import (
    InboundWebhookEvent,
    SettlementEvent,
    WebhookEndpoint,
)
from paygate.services.gateway_registry import provider_key

logger = get_logger(__name__)


class WebhookState(str, Enum):
    RECEIVED = "received"
    VERIFIED = "verified"
    NORMALIZED = "normalized"
    DISPATCHED = "dispatched"
    REJECTED = "rejected"


ALLOWED_TRANSITIONS: dict[WebhookState, tuple[WebhookState, ...]] = {
    WebhookState.RECEIVED: (WebhookState.VERIFIED, WebhookState.REJECTED),
    WebhookState.VERIFIED: (WebhookState.NORMALIZED, WebhookState.REJECTED),
    WebhookState.NORMALIZED: (WebhookState.DISPATCHED,),
    WebhookState.DISPATCHED: (),
    WebhookState.REJECTED: (),
}


class SettlementHandler(ABC):
    """
    Applies settlement events to order and subscription state.

    Deliveries are at-least-once: providers redeliver webhooks, so
    implementations must be idempotent on ``event.reference``.
    """

    @abstractmethod
    async def apply_settlement(self, event: SettlementEvent) -> None:
        pass


class LoggingSettlementHandler(SettlementHandler):
    """Default handler when no persistence layer is wired in: records the event only."""

    async def apply_settlement(self, event: SettlementEvent) -> None:
        logger.info(
            "settlement.applied",
            reference=event.reference,
            provider=event.provider.value,
            outcome=event.outcome.value,
            event_type=event.event_type,
        )


@dataclass
class WebhookDelivery:
    """Tracks one delivery through the dispatcher's state machine."""
    provider: str
    state: WebhookState = WebhookState.RECEIVED
    status_code: int = 200
    message: str = "OK"
    event: Optional[InboundWebhookEvent] = None
    settlement: Optional[SettlementEvent] = None
    history: list[WebhookState] = field(default_factory=lambda: [WebhookState.RECEIVED])

    def advance(self, target: WebhookState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"webhook transition {self.state.value} -> {target.value} not permitted")
        self.state = target
        self.history.append(target)

    def reject(self, status_code: int, message: str) -> "WebhookDelivery":
        self.advance(WebhookState.REJECTED)
        self.status_code = status_code
        self.message = message
        return self


class WebhookDispatcher:
    """
    Authenticates, normalizes and forwards provider webhook deliveries.

    ``dispatch`` never raises: every delivery ends with an HTTP status.
    4xx for authentication or payload failures, 500 when the settlement
    handler fails so the provider redelivers, 200 otherwise (including
    unrecognized event types, which must be acknowledged to stop retries).
    """

    def __init__(self, endpoints: Iterable[WebhookEndpoint], handler: SettlementHandler):
        self._endpoints: Mapping[ProviderKey, WebhookEndpoint] = {
            provider_key(endpoint.provider): endpoint for endpoint in endpoints
        }
        self.handler = handler

    def endpoint_for(self, provider: ProviderKey) -> Optional[WebhookEndpoint]:
        return self._endpoints.get(provider_key(provider))

    async def dispatch(
        self,
        provider: ProviderKey,
        raw_body: bytes,
        signature_header: Optional[str],
    ) -> WebhookDelivery:
        delivery = WebhookDelivery(provider=str(provider_key(provider)))
        log = logger.bind(provider=delivery.provider)

        endpoint = self.endpoint_for(provider)
        if endpoint is None:
            log.warning("webhook.rejected.unknown_provider")
            return delivery.reject(404, "Unknown gateway")

        # Authenticate the raw bytes before anything looks inside them
        if not endpoint.verifier.verify(raw_body, signature_header, endpoint.shared_secret):
            log.warning("webhook.rejected.invalid_signature")
            return delivery.reject(401, "Invalid signature")
        delivery.advance(WebhookState.VERIFIED)

        try:
            delivery.event = endpoint.normalizer.parse(raw_body, signature_header)
        except MalformedPayloadError as e:
            log.warning("webhook.rejected.malformed_payload", error=e.error_message)
            return delivery.reject(400, "Invalid payload")

        settlement = endpoint.normalizer.normalize(delivery.event)
        delivery.settlement = settlement
        delivery.advance(WebhookState.NORMALIZED)
        log = log.bind(event_type=settlement.event_type, outcome=settlement.outcome.value, reference=settlement.reference)
        log.info("webhook.received")

        if settlement.requires_settlement:
            try:
                await self.handler.apply_settlement(settlement)
            except Exception as e:
                log.exception("webhook.settlement_failed", error=str(e))
                delivery.advance(WebhookState.DISPATCHED)
                delivery.status_code = 500
                delivery.message = "Webhook processing failed"
                return delivery
        else:
            log.info("webhook.acknowledged_without_settlement")

        delivery.advance(WebhookState.DISPATCHED)
        return delivery
