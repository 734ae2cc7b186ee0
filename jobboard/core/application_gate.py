"""
Application limit enforcement dependency.

This module provides require_application_slot() dependency that:
1. Authenticates the user
2. Reserves one of today's application slots atomically
3. Raises HTTPException if the user has not paid or the daily limit is reached
"""
import logging
from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from jobboard.db.models.user import User
from jobboard.core.auth_dependency import get_db, get_current_user_obj
from jobboard.services.quota_service import reserve_application_slot

logger = logging.getLogger(__name__)


def require_application_slot(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency that consumes one application slot before an application is saved.

    Returns:
        User object if a slot was reserved

    Raises:
        HTTPException 402: No completed purchase, or daily limit reached
        HTTPException 503: Limit could not be verified (never fails open)
    """
    try:
        result = reserve_application_slot(db, user.id)
    except SQLAlchemyError as e:
        logger.error(f"Application limit check failed, denying: user_id={user.id}, error={e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to verify application limit, please try again"
        )

    if not result["has_paid"]:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": "payment_required",
                "detail": "Purchase a candidate plan to start applying for jobs.",
                "remaining": 0,
            }
        )

    if not result["reserved"]:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": "application_limit_reached",
                "detail": "Daily application limit reached. Try again tomorrow or upgrade your plan.",
                "daily_limit": result["daily_limit"],
                "remaining": 0,
            }
        )

    logger.debug(f"Application slot granted: user_id={user.id}, remaining={result['remaining']}")
    return user
