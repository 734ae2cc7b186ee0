"""
Candidate payment endpoints.

Purchase of plans, payment confirmation, order administration and
application quota queries for authenticated users.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from jobboard.db.models.user import User
from jobboard.core.auth_dependency import get_db, get_current_user_obj, require_admin
from jobboard.core.errors import BillingError, to_http_exception
from jobboard.services import order_service
from jobboard.services import quota_service
from jobboard.services import reconciliation_service
from jobboard.schemas.billing import (
    CreatePaymentIntentRequest,
    CreatePaymentIntentResponse,
    PlanSummary,
    OrderResponse,
    OrderListResponse,
    ReconciliationResponse,
    PaymentStatusResponse,
    PaymentStatsResponse,
)
from jobboard.schemas.quota import (
    ApplicationLimitCheckResponse,
    ApplicationLimitResponse,
    UpdateDailyLimitRequest,
    ManualPaymentStatusRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/candidate-payments", tags=["Candidate Payments"])


def _internal_error(action: str, error: Exception) -> HTTPException:
    logger.error(f"Failed to {action}: {error}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}"
    )


@router.post("/create-payment-intent", status_code=status.HTTP_200_OK, response_model=CreatePaymentIntentResponse)
def create_payment_intent(
    request: CreatePaymentIntentRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Purchase a candidate plan.

    Free and bypass plans are granted immediately and return no client
    secret. Paid plans return the Stripe client secret of a pending order.
    """
    try:
        result = reconciliation_service.create_payment_intent(db, user.id, request.plan_id)
    except BillingError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise _internal_error("create payment intent", e)

    order = result["order"]
    return CreatePaymentIntentResponse(
        client_secret=result["client_secret"],
        order_id=order.id,
        order_status=order.status,
        activated=result["activated"],
        plan=PlanSummary.model_validate(result["plan"]),
    )


@router.get("/payment-status", status_code=status.HTTP_200_OK, response_model=PaymentStatusResponse)
def check_payment_status(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    return PaymentStatusResponse(has_paid=quota_service.check_user_payment_status(db, user.id))


@router.get("/application-limit", status_code=status.HTTP_200_OK, response_model=ApplicationLimitCheckResponse)
def check_application_limit(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Check whether the authenticated user can apply for another job today.

    If the limit cannot be read the user is told they cannot apply and the
    quota fields are null (unknown) rather than guessed.
    """
    try:
        return ApplicationLimitCheckResponse(**quota_service.check_application_limit(db, user.id))
    except Exception as e:
        logger.error(f"Application limit check failed: user_id={user.id}, error={e}", exc_info=True)
        return ApplicationLimitCheckResponse(can_apply=False, remaining=0)


@router.get("/payment-stats", status_code=status.HTTP_200_OK, response_model=PaymentStatsResponse)
def get_payment_stats(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    return PaymentStatsResponse(**order_service.get_user_payment_stats(db, user.id))


@router.post("/confirm-payment/{payment_intent_id}", status_code=status.HTTP_200_OK, response_model=ReconciliationResponse)
def confirm_payment(
    payment_intent_id: str,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Confirm a succeeded payment without waiting for the webhook.

    Runs the same reconciliation as the webhook; confirming twice is harmless.
    """
    try:
        return ReconciliationResponse(
            **reconciliation_service.confirm_payment_intent(db, user.id, payment_intent_id)
        )
    except BillingError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise _internal_error("confirm payment", e)


@router.post("/orders/{order_id}/confirm", status_code=status.HTTP_200_OK, response_model=ReconciliationResponse)
def confirm_order(
    order_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        result = reconciliation_service.confirm_order(db, order_id)
    except BillingError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise _internal_error("confirm order", e)

    logger.info(f"Order confirmed by admin: order_id={order_id}, admin_id={admin.id}, result={result['result']}")
    return ReconciliationResponse(**result)


@router.get("/orders", status_code=status.HTTP_200_OK, response_model=OrderListResponse)
def list_orders(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Items per page"),
    order_status: Optional[str] = Query(None, alias="status", pattern="^(pending|completed)$"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    orders, total = order_service.list_orders(db, page=page, limit=limit, status=order_status)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        page=page,
        limit=limit
    )


@router.get("/orders/{order_id}", status_code=status.HTTP_200_OK, response_model=OrderResponse)
def get_order(
    order_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        return OrderResponse.model_validate(order_service.get_order(db, order_id))
    except BillingError as e:
        raise to_http_exception(e)


@router.patch("/user-limit/{user_id}", status_code=status.HTTP_200_OK, response_model=ApplicationLimitResponse)
def update_user_limit(
    user_id: int,
    request: UpdateDailyLimitRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Override a user's daily application allowance.

    The user must already have an application limit. The next completed
    order replaces the override with that plan's allowance.
    """
    try:
        limit = quota_service.update_user_daily_limit(db, user_id, request.daily_limit)
        return ApplicationLimitResponse.model_validate(limit)
    except BillingError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise _internal_error("update user limit", e)


@router.patch("/manual-payment-status", status_code=status.HTTP_200_OK, response_model=ApplicationLimitResponse)
def manual_payment_status(
    request: ManualPaymentStatusRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        order_service.get_user(db, request.user_id)
        limit = quota_service.set_payment_status(db, request.user_id, request.has_paid)
        return ApplicationLimitResponse.model_validate(limit)
    except BillingError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise _internal_error("update payment status", e)
