from paygate.services.factory import PaymentServices, build_payment_services, register_gateway
from paygate.services.gateway_registry import GatewayRegistry
from paygate.services.gateway_router import GatewayRouter
from paygate.services.payment_orchestrator import PaymentOrchestrator
from paygate.services.webhook_dispatcher import (
    LoggingSettlementHandler,
    SettlementHandler,
    WebhookDelivery,
    WebhookDispatcher,
    WebhookState,
)

__all__ = [
    "GatewayRegistry",
    "GatewayRouter",
    "LoggingSettlementHandler",
    "PaymentOrchestrator",
    "PaymentServices",
    "SettlementHandler",
    "WebhookDelivery",
    "WebhookDispatcher",
    "WebhookState",
    "build_payment_services",
    "register_gateway",
]
