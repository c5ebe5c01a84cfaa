from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from paygate.integrations.payment_gateways.base import PaymentStatus, PlanInterval


class InitializePaymentRequest(BaseModel):
    email: EmailStr
    amount: Decimal = Field(gt=0)
    currency: str = Field(min_length=3, max_length=3)
    gateway: Optional[str] = None
    country: Optional[str] = Field(default=None, min_length=2, max_length=2)
    reference: Optional[str] = Field(default=None, max_length=100)
    callback_url: Optional[str] = None


class VerifyPaymentRequest(BaseModel):
    reference: str = Field(min_length=1, max_length=100)
    gateway: str


class CreateCustomerRequest(BaseModel):
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    gateway: Optional[str] = None


class CreatePlanRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    amount: Decimal = Field(gt=0)
    interval: PlanInterval
    currency: str = Field(min_length=3, max_length=3)
    gateway: Optional[str] = None


class CreateSubscriptionRequest(BaseModel):
    customer: str = Field(min_length=1, max_length=100)
    plan: str = Field(min_length=1, max_length=100)
    authorization: Optional[str] = Field(default=None, max_length=100)
    gateway: str


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    provider_native_id: str
    reference: str
    status: PaymentStatus
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    authorization_url: Optional[str] = None
    access_code: Optional[str] = None
    client_secret: Optional[str] = None


class CustomerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    email: str
    provider_customer_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class PlanRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    provider_plan_id: str
    name: str
    amount: Decimal
    currency: str
    interval: PlanInterval


class SubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    provider_subscription_id: str
    customer_id: str
    plan_id: str
    status: Optional[str] = None


class GatewayInfoRead(BaseModel):
    name: str
    public_key: Optional[str] = None
    currencies: list[str]
    supports_subscriptions: bool


class GatewaysRead(BaseModel):
    default_gateway: str
    enabled_gateways: list[str]
    gateways: list[GatewayInfoRead]


class RecommendedGatewayRead(BaseModel):
    recommended_gateway: str


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: Optional[str] = None
