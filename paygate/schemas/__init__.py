from paygate.schemas.payment import (
    CreateCustomerRequest,
    CreatePlanRequest,
    CreateSubscriptionRequest,
    CustomerRead,
    ErrorResponse,
    GatewayInfoRead,
    GatewaysRead,
    InitializePaymentRequest,
    PaymentRead,
    PlanRead,
    RecommendedGatewayRead,
    SubscriptionRead,
    VerifyPaymentRequest,
)

__all__ = [
    "CreateCustomerRequest",
    "CreatePlanRequest",
    "CreateSubscriptionRequest",
    "CustomerRead",
    "ErrorResponse",
    "GatewayInfoRead",
    "GatewaysRead",
    "InitializePaymentRequest",
    "PaymentRead",
    "PlanRead",
    "RecommendedGatewayRead",
    "SubscriptionRead",
    "VerifyPaymentRequest",
]
