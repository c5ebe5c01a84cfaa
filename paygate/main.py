from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from paygate.api.errors import register_exception_handlers
from paygate.api.routes import payments, webhooks
from paygate.core.config import Settings, get_settings
from paygate.core.logging import configure_logging, get_logger
from paygate.services.factory import PaymentServices, build_payment_services

logger = get_logger(__name__)


def create_application(
    settings: Optional[Settings] = None,
    services: Optional[PaymentServices] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level, format_as_json=settings.log_json)

    @asynccontextmanager
    async def lifespan(application: FastAPI) -> AsyncIterator[None]:
        application.state.payment_services = services or build_payment_services(settings)
        logger.info("application.startup", environment=settings.environment)
        try:
            yield
        finally:
            await application.state.payment_services.close()
            logger.info("application.shutdown")

    application = FastAPI(title=settings.app_name, lifespan=lifespan)
    application.include_router(payments.router)
    application.include_router(webhooks.router)
    register_exception_handlers(application)
    return application


app = create_application()
