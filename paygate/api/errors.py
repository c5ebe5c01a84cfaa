from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from paygate.core.logging import get_logger
from paygate.integrations.payment_gateways.exceptions import (
    PaymentError,
    ProviderRequestError,
    UnsupportedProviderError,
    ValidationError,
)
from paygate.schemas.payment import ErrorResponse

logger = get_logger(__name__)

PROVIDER_FAILURE_MESSAGE = "Payment provider request failed"


def error_response(status_code: int, message: str, error_code: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=error_code).model_dump(),
    )


async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    """Translate a gateway-layer failure into the public error body."""
    if isinstance(exc, ValidationError):
        return error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc.error_message, exc.error_code)
    if isinstance(exc, UnsupportedProviderError):
        return error_response(status.HTTP_400_BAD_REQUEST, exc.error_message, exc.error_code)
    if isinstance(exc, ProviderRequestError):
        # Provider detail has already been logged by the orchestrator
        return error_response(status.HTTP_502_BAD_GATEWAY, PROVIDER_FAILURE_MESSAGE, exc.error_code)
    logger.error("api.payment_error", path=request.url.path, error=exc.error_message, error_code=exc.error_code)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("api.unhandled_error", path=request.url.path, error=str(exc))
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_exception_handlers(application: FastAPI) -> None:
    application.add_exception_handler(PaymentError, payment_error_handler)
    application.add_exception_handler(Exception, unhandled_error_handler)
