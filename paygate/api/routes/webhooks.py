from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from paygate.api.dependencies.gateways import get_webhook_dispatcher
from paygate.core.logging import get_logger
from paygate.services.webhook_dispatcher import WebhookDispatcher

logger = get_logger(__name__)

router = APIRouter(prefix="/int/v1/webhooks", tags=["webhooks"])


@router.post("/{provider}", response_class=PlainTextResponse)
async def receive_webhook_endpoint(
    provider: str,
    request: Request,
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> PlainTextResponse:
    """Acknowledge a provider webhook; the status code tells the provider whether to redeliver."""
    # Signatures are computed over the exact bytes received, never a re-serialized body
    raw_body = await request.body()
    endpoint = dispatcher.endpoint_for(provider)
    signature_header = request.headers.get(endpoint.signature_header) if endpoint else None

    try:
        delivery = await dispatcher.dispatch(provider, raw_body, signature_header)
    except Exception as exc:
        logger.exception("webhooks.dispatch.failed", provider=provider, error=str(exc))
        return PlainTextResponse("Webhook processing failed", status_code=500)
    return PlainTextResponse(delivery.message, status_code=delivery.status_code)
