from fastapi import Request

from paygate.services.factory import PaymentServices
from paygate.services.payment_orchestrator import PaymentOrchestrator
from paygate.services.webhook_dispatcher import WebhookDispatcher


def get_payment_services(request: Request) -> PaymentServices:
    return request.app.state.payment_services


def get_orchestrator(request: Request) -> PaymentOrchestrator:
    return get_payment_services(request).orchestrator


def get_webhook_dispatcher(request: Request) -> WebhookDispatcher:
    return get_payment_services(request).dispatcher
