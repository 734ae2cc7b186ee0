"""
Pydantic schemas for application limit endpoints.
"""
from typing import Optional
from datetime import date
from pydantic import BaseModel, Field


class ApplicationLimitCheckResponse(BaseModel):
    """Response schema for GET /candidate-payments/application-limit."""
    can_apply: bool = Field(..., description="Whether another application is allowed today")
    remaining: int = Field(..., description="Applications left today")
    has_paid: Optional[bool] = Field(None, description="Null when the limit could not be read")
    daily_limit: Optional[int] = Field(None, description="Null when the limit could not be read")
    applications_used_today: Optional[int] = Field(None, description="Null when the limit could not be read")

    class Config:
        json_schema_extra = {
            "example": {
                "can_apply": True,
                "remaining": 12,
                "has_paid": True,
                "daily_limit": 15,
                "applications_used_today": 3
            }
        }


class ApplicationLimitResponse(BaseModel):
    user_id: int
    daily_limit: int
    applications_used_today: int
    last_reset_date: date
    has_paid: bool

    class Config:
        from_attributes = True


class UpdateDailyLimitRequest(BaseModel):
    daily_limit: int = Field(..., description="New daily application allowance", ge=1)


class ManualPaymentStatusRequest(BaseModel):
    user_id: int = Field(..., ge=1)
    has_paid: bool
