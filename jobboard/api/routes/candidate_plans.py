"""
Candidate plan endpoints.

Listing and reading plans is public; creating, updating and deactivating
plans is admin only.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from jobboard.db.models.user import User
from jobboard.core.auth_dependency import get_db, require_admin
from jobboard.core.errors import BillingError, to_http_exception
from jobboard.services import plan_service
from jobboard.schemas.billing import (
    CandidatePlanCreate,
    CandidatePlanUpdate,
    CandidatePlanResponse,
    CandidatePlanListResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/candidate-payments/plans", tags=["Candidate Plans"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=CandidatePlanResponse)
def create_plan(
    plan_data: CandidatePlanCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Create a candidate plan.

    Paid plans get a Stripe product and one-time price unless
    skip_external_billing is set; free plans never touch Stripe.
    """
    try:
        plan = plan_service.create_plan(db, plan_data.model_dump())
        return CandidatePlanResponse.model_validate(plan)
    except BillingError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create candidate plan: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create candidate plan"
        )


@router.get("", status_code=status.HTTP_200_OK, response_model=CandidatePlanListResponse)
def list_plans(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Items per page"),
    db: Session = Depends(get_db)
):
    """List active candidate plans, newest first."""
    plans, total = plan_service.list_active_plans(db, page=page, limit=limit)
    return CandidatePlanListResponse(
        plans=[CandidatePlanResponse.model_validate(plan) for plan in plans],
        total=total,
        page=page,
        limit=limit
    )


@router.get("/{plan_id}", status_code=status.HTTP_200_OK, response_model=CandidatePlanResponse)
def get_plan(plan_id: int, db: Session = Depends(get_db)):
    try:
        return CandidatePlanResponse.model_validate(plan_service.get_plan(db, plan_id))
    except BillingError as e:
        raise to_http_exception(e)


@router.patch("/{plan_id}", status_code=status.HTTP_200_OK, response_model=CandidatePlanResponse)
def update_plan(
    plan_id: int,
    plan_data: CandidatePlanUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Update a candidate plan.

    Stripe product name/description sync is best effort. Changes that would
    move the plan between free, bypass and Stripe billing are rejected.
    """
    try:
        plan = plan_service.update_plan(db, plan_id, plan_data.model_dump(exclude_unset=True))
        return CandidatePlanResponse.model_validate(plan)
    except BillingError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to update candidate plan: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update candidate plan"
        )


@router.delete("/{plan_id}", status_code=status.HTTP_200_OK, response_model=CandidatePlanResponse)
def deactivate_plan(
    plan_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Archive the plan's Stripe product/price and mark it inactive."""
    try:
        plan = plan_service.deactivate_plan(db, plan_id)
        return CandidatePlanResponse.model_validate(plan)
    except BillingError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to deactivate candidate plan: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to deactivate candidate plan"
        )
