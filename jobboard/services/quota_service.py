"""
Quota service for daily job-application limits.

Tracks per-user application allowance, resets the daily counter on calendar
date change, and enforces the limit for the job-application flow.
All writes to an ApplicationLimit row go through single UPDATE statements
targeting that row, so concurrent writers for the same user serialize on the
row lock and writers for different users never contend.
"""
import logging
from datetime import date
from typing import Dict, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from jobboard.db.models.application_limit import ApplicationLimit
from jobboard.db.models.candidate_order import CandidateOrder, OrderStatus
from jobboard.db.models.candidate_plan import CandidatePlan
from jobboard.core.config import DEFAULT_DAILY_APPLICATION_LIMIT
from jobboard.core.errors import NotFoundError

logger = logging.getLogger(__name__)


def _today() -> date:
    # Calendar day in server-local time, not a rolling 24h window
    return date.today()


def _latest_completed_allowance(db: Session, user_id: int) -> Optional[int]:
    """Daily allowance of the plan on the user's most recently completed order."""
    row = (
        db.query(CandidatePlan.daily_application_limit)
        .join(CandidateOrder, CandidateOrder.plan_id == CandidatePlan.id)
        .filter(
            CandidateOrder.user_id == user_id,
            CandidateOrder.status == OrderStatus.COMPLETED,
        )
        .order_by(CandidateOrder.payment_date.desc(), CandidateOrder.id.desc())
        .first()
    )
    return row[0] if row else None


def get_limit(db: Session, user_id: int, lock: bool = False) -> Optional[ApplicationLimit]:
    query = db.query(ApplicationLimit).filter(ApplicationLimit.user_id == user_id)
    if lock:
        query = query.with_for_update()
    return query.first()


def get_or_create_limit(db: Session, user_id: int) -> ApplicationLimit:
    """
    Fetch the user's ApplicationLimit, creating it with defaults if absent.

    Defaults take the allowance of the most recently completed order's plan
    (falling back to DEFAULT_DAILY_APPLICATION_LIMIT) and has_paid only when
    such an order exists. Creation is committed on its own.
    """
    limit = get_limit(db, user_id)
    if limit:
        return limit

    allowance = _latest_completed_allowance(db, user_id)
    limit = ApplicationLimit(
        user_id=user_id,
        daily_limit=allowance or DEFAULT_DAILY_APPLICATION_LIMIT,
        applications_used_today=0,
        last_reset_date=_today(),
        has_paid=allowance is not None,
    )
    try:
        db.add(limit)
        db.commit()
        db.refresh(limit)
        logger.info(f"Application limit created: user_id={user_id}, daily_limit={limit.daily_limit}, has_paid={limit.has_paid}")
        return limit
    except IntegrityError:
        # A concurrent request created the row first
        db.rollback()
        limit = get_limit(db, user_id)
        if not limit:
            raise
        return limit


def _reset_if_stale(db: Session, user_id: int, today: date) -> bool:
    """
    Zero the counter when the stored reset date is before today.

    A reset date ahead of today (clock skew between servers) is left alone so
    the date never moves backward.

    The date condition is part of the UPDATE so two concurrent resets cannot
    wipe out an increment made in between.
    """
    updated = (
        db.query(ApplicationLimit)
        .filter(
            ApplicationLimit.user_id == user_id,
            ApplicationLimit.last_reset_date < today,
        )
        .update(
            {
                ApplicationLimit.applications_used_today: 0,
                ApplicationLimit.last_reset_date: today,
            },
            synchronize_session=False,
        )
    )
    return updated > 0


def check_application_limit(db: Session, user_id: int) -> Dict:
    """
    Check whether a user may submit another application today.

    Unpaid users can never apply. For paid users the counter is reset first
    when the stored reset date is before today.

    Returns:
        {"can_apply": bool, "remaining": int, "has_paid": bool,
         "daily_limit": int, "applications_used_today": int}
    """
    get_or_create_limit(db, user_id)
    try:
        limit = get_limit(db, user_id, lock=True)
        if not limit.has_paid:
            db.commit()
            return {
                "can_apply": False,
                "remaining": 0,
                "has_paid": False,
                "daily_limit": limit.daily_limit,
                "applications_used_today": limit.applications_used_today,
            }

        today = _today()
        if _reset_if_stale(db, user_id, today):
            logger.info(f"Daily application count reset: user_id={user_id}, date={today.isoformat()}")
        db.commit()
    except Exception:
        db.rollback()
        raise

    limit = get_limit(db, user_id)
    used = limit.applications_used_today
    return {
        "can_apply": used < limit.daily_limit,
        "remaining": max(0, limit.daily_limit - used),
        "has_paid": True,
        "daily_limit": limit.daily_limit,
        "applications_used_today": used,
    }


def increment_application_count(db: Session, user_id: int) -> None:
    """
    Record one submitted application.

    Intended to follow a check_application_limit() that returned can_apply.
    The check and this increment are separate transactions; prefer
    reserve_application_slot() which does both under one row lock.

    Raises:
        NotFoundError: User has no ApplicationLimit
    """
    try:
        updated = (
            db.query(ApplicationLimit)
            .filter(ApplicationLimit.user_id == user_id)
            .update(
                {ApplicationLimit.applications_used_today: ApplicationLimit.applications_used_today + 1},
                synchronize_session=False,
            )
        )
        if not updated:
            raise NotFoundError("Application limit not found for user")
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Application count incremented: user_id={user_id}")


def reserve_application_slot(db: Session, user_id: int) -> Dict:
    """
    Check and consume one application slot atomically.

    The increment is a conditional UPDATE (has_paid, used < daily_limit,
    reset date is not behind today), so concurrent submissions from the same user can
    never push the counter past the daily limit.

    Returns:
        {"reserved": bool, "has_paid": bool, "remaining": int, "daily_limit": int}
    """
    get_or_create_limit(db, user_id)
    today = _today()
    try:
        limit = get_limit(db, user_id, lock=True)
        if not limit.has_paid:
            db.commit()
            return {"reserved": False, "has_paid": False, "remaining": 0, "daily_limit": limit.daily_limit}

        _reset_if_stale(db, user_id, today)
        reserved = (
            db.query(ApplicationLimit)
            .filter(
                ApplicationLimit.user_id == user_id,
                ApplicationLimit.has_paid.is_(True),
                ApplicationLimit.last_reset_date >= today,
                ApplicationLimit.applications_used_today < ApplicationLimit.daily_limit,
            )
            .update(
                {ApplicationLimit.applications_used_today: ApplicationLimit.applications_used_today + 1},
                synchronize_session=False,
            )
        ) > 0
        db.commit()
    except Exception:
        db.rollback()
        raise

    limit = get_limit(db, user_id)
    result = {
        "reserved": reserved,
        "has_paid": True,
        "remaining": limit.remaining,
        "daily_limit": limit.daily_limit,
    }
    if reserved:
        logger.info(f"Application slot reserved: user_id={user_id}, remaining={result['remaining']}")
    else:
        logger.warning(f"Application limit reached: user_id={user_id}, daily_limit={limit.daily_limit}")
    return result


def release_application_slot(db: Session, user_id: int) -> None:
    """Give back a reserved slot when the application could not be persisted."""
    try:
        (
            db.query(ApplicationLimit)
            .filter(
                ApplicationLimit.user_id == user_id,
                ApplicationLimit.applications_used_today > 0,
            )
            .update(
                {ApplicationLimit.applications_used_today: ApplicationLimit.applications_used_today - 1},
                synchronize_session=False,
            )
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Application slot released: user_id={user_id}")


def grant_application_limit(db: Session, user_id: int, daily_limit: int) -> ApplicationLimit:
    """
    Mark a user as paid with the given daily allowance.

    Does not commit: the caller owns the transaction so the grant lands
    together with the order completion that triggered it. The used counter
    is left alone.
    """
    limit = get_limit(db, user_id, lock=True)
    if not limit:
        limit = ApplicationLimit(
            user_id=user_id,
            daily_limit=daily_limit,
            applications_used_today=0,
            last_reset_date=_today(),
            has_paid=True,
        )
        db.add(limit)
        db.flush()
        return limit

    limit.has_paid = True
    limit.daily_limit = daily_limit
    db.flush()
    return limit


def update_user_daily_limit(db: Session, user_id: int, daily_limit: int) -> ApplicationLimit:
    """
    Administrative override of a user's daily allowance.

    Raises:
        NotFoundError: User has no ApplicationLimit yet
    """
    try:
        limit = get_limit(db, user_id, lock=True)
        if not limit:
            raise NotFoundError("Application limit not found for user")
        limit.daily_limit = daily_limit
        db.commit()
        db.refresh(limit)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Daily application limit overridden: user_id={user_id}, daily_limit={daily_limit}")
    return limit


def set_payment_status(db: Session, user_id: int, has_paid: bool) -> ApplicationLimit:
    """Administrative toggle of has_paid, creating the limit with defaults if needed."""
    get_or_create_limit(db, user_id)
    try:
        limit = get_limit(db, user_id, lock=True)
        limit.has_paid = has_paid
        db.commit()
        db.refresh(limit)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Payment status manually updated: user_id={user_id}, has_paid={has_paid}")
    return limit


def check_user_payment_status(db: Session, user_id: int) -> bool:
    limit = get_limit(db, user_id)
    return bool(limit and limit.has_paid)
