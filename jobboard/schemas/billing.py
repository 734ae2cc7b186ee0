"""
Pydantic schemas for candidate plan and payment endpoints.
"""
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field


class CandidatePlanCreate(BaseModel):
    """Request schema for creating a candidate plan."""
    name: str = Field(..., description="Plan name", min_length=1, max_length=255)
    description: Optional[str] = Field(None, description="Plan description")
    price: Decimal = Field(..., description="One-time price in major currency units", ge=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(None, description="ISO currency code (defaults to usd)", min_length=3, max_length=3)
    daily_application_limit: int = Field(..., description="Applications allowed per day", ge=1)
    skip_external_billing: bool = Field(False, description="Grant without charging through Stripe")

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Basic Plan",
                "description": "Apply for up to 15 jobs per day",
                "price": "9.99",
                "currency": "usd",
                "daily_application_limit": 15,
                "skip_external_billing": False
            }
        }


class CandidatePlanUpdate(BaseModel):
    """Request schema for updating a candidate plan. Only provided fields change."""
    name: Optional[str] = Field(None, description="Plan name", min_length=1, max_length=255)
    description: Optional[str] = Field(None, description="Plan description")
    price: Optional[Decimal] = Field(None, description="One-time price", ge=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(None, description="ISO currency code", min_length=3, max_length=3)
    daily_application_limit: Optional[int] = Field(None, description="Applications allowed per day", ge=1)
    skip_external_billing: Optional[bool] = Field(None, description="Grant without charging through Stripe")


class CandidatePlanResponse(BaseModel):
    """Response schema for a candidate plan."""
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    currency: str
    daily_application_limit: int
    billing_mode: str = Field(..., description="free | bypass | external")
    skip_external_billing: bool
    stripe_product_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CandidatePlanListResponse(BaseModel):
    plans: List[CandidatePlanResponse]
    total: int
    page: int = 1
    limit: int = 10


class CreatePaymentIntentRequest(BaseModel):
    """Request schema for purchasing a plan."""
    plan_id: int = Field(..., description="Candidate plan ID", ge=1)

    class Config:
        json_schema_extra = {"example": {"plan_id": 1}}


class PlanSummary(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    currency: str

    class Config:
        from_attributes = True


class CreatePaymentIntentResponse(BaseModel):
    """
    Response schema for a purchase.

    client_secret is null when the plan was activated without Stripe.
    """
    client_secret: Optional[str] = Field(None, description="Stripe client secret to confirm payment")
    order_id: int
    order_status: str
    activated: bool = Field(..., description="True when the plan was granted immediately")
    plan: PlanSummary


class OrderResponse(BaseModel):
    """Response schema for a candidate order."""
    id: int
    user_id: int
    plan_id: int
    amount: Decimal
    currency: str
    status: str
    stripe_payment_intent_id: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    payment_date: Optional[datetime] = None
    created_at: datetime
    plan: Optional[PlanSummary] = None

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    total: int
    page: int = 1
    limit: int = 10


class ReconciliationResponse(BaseModel):
    """Outcome of a payment confirmation."""
    result: str = Field(..., description="completed | already_completed | unmatched | ignored")
    order_id: Optional[int] = None


class PaymentStatusResponse(BaseModel):
    has_paid: bool


class PaymentHistoryEntry(BaseModel):
    order_id: int
    amount: Decimal
    currency: str
    payment_date: Optional[datetime] = None
    plan_name: str


class PaymentStatsResponse(BaseModel):
    """Response schema for GET /candidate-payments/payment-stats."""
    has_paid: bool
    daily_limit: int
    applications_used_today: int
    remaining_applications: int
    last_reset_date: Optional[date] = None
    total_spent: Decimal
    orders_count: int
    last_payment: Optional[datetime] = None
    payment_history: List[PaymentHistoryEntry]


class WebhookAck(BaseModel):
    received: bool = True
