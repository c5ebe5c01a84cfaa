from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status

from paygate.api.dependencies.gateways import get_orchestrator
from paygate.integrations.payment_gateways import (
    CustomerDetails,
    PaymentRequest,
    PlanDetails,
    SubscriptionDetails,
)
from paygate.schemas.payment import (
    CreateCustomerRequest,
    CreatePlanRequest,
    CreateSubscriptionRequest,
    CustomerRead,
    GatewaysRead,
    InitializePaymentRequest,
    PaymentRead,
    PlanRead,
    RecommendedGatewayRead,
    SubscriptionRead,
    VerifyPaymentRequest,
)
from paygate.services.payment_orchestrator import PaymentOrchestrator

router = APIRouter(prefix="/int/v1/payments", tags=["payments"])


def _success(gateway: Any, data: Any) -> dict[str, Any]:
    return {"success": True, "gateway": str(gateway), "data": data}


@router.get("/gateways")
async def list_gateways_endpoint(
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> Any:
    gateways = GatewaysRead(**orchestrator.list_gateways())
    return _success(gateways.default_gateway, gateways.model_dump())


@router.get("/recommended-gateway")
async def recommended_gateway_endpoint(
    country: Optional[str] = Query(default=None, min_length=2, max_length=2),
    currency: Optional[str] = Query(default=None, min_length=3, max_length=3),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> Any:
    gateway = orchestrator.recommend_gateway(country=country, currency=currency)
    return _success(gateway, RecommendedGatewayRead(recommended_gateway=str(gateway)).model_dump())


@router.post("/initialize")
async def initialize_payment_endpoint(
    payload: InitializePaymentRequest,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> Any:
    request = PaymentRequest(
        customer_email=payload.email,
        amount=payload.amount,
        currency=payload.currency,
        reference=payload.reference,
        callback_url=payload.callback_url,
    )
    result = await orchestrator.initialize_payment(
        request,
        provider_override=payload.gateway,
        country=payload.country,
    )
    return _success(result.provider, PaymentRead.model_validate(result).model_dump(mode="json"))


@router.post("/verify")
async def verify_payment_endpoint(
    payload: VerifyPaymentRequest,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> Any:
    result = await orchestrator.verify_payment(payload.reference, payload.gateway)
    return _success(result.provider, PaymentRead.model_validate(result).model_dump(mode="json"))


@router.post("/customers", status_code=status.HTTP_201_CREATED)
async def create_customer_endpoint(
    payload: CreateCustomerRequest,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> Any:
    details = CustomerDetails(
        email=payload.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
    )
    record = await orchestrator.create_customer(details, provider_override=payload.gateway)
    return _success(record.provider, CustomerRead.model_validate(record).model_dump(mode="json"))


@router.get("/customers/{customer_id}")
async def get_customer_endpoint(
    customer_id: str,
    gateway: str = Query(min_length=1),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> Any:
    record = await orchestrator.get_customer(customer_id, gateway)
    return _success(record.provider, CustomerRead.model_validate(record).model_dump(mode="json"))


@router.post("/plans", status_code=status.HTTP_201_CREATED)
async def create_plan_endpoint(
    payload: CreatePlanRequest,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> Any:
    details = PlanDetails(
        name=payload.name,
        amount=payload.amount,
        interval=payload.interval,
        currency=payload.currency,
    )
    record = await orchestrator.create_plan(details, provider_override=payload.gateway)
    return _success(record.provider, PlanRead.model_validate(record).model_dump(mode="json"))


@router.post("/subscriptions", status_code=status.HTTP_201_CREATED)
async def create_subscription_endpoint(
    payload: CreateSubscriptionRequest,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> Any:
    details = SubscriptionDetails(
        customer_id=payload.customer,
        plan_id=payload.plan,
        authorization=payload.authorization,
    )
    record = await orchestrator.create_subscription(details, payload.gateway)
    return _success(record.provider, SubscriptionRead.model_validate(record).model_dump(mode="json"))


@router.get("/test/{gateway}")
async def test_gateway_endpoint(
    gateway: str,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> Any:
    healthy = await orchestrator.test_gateway(gateway)
    return _success(gateway.lower(), {"healthy": bool(healthy)})
