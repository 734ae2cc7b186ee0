"""
Reconciliation of candidate plan purchases.

The single place that turns a purchase into quota: completing an order and
granting the user's ApplicationLimit happen in one database transaction.
Invoked by the Stripe webhook, by manual confirmation and by free/bypass
plan activation.
"""
import logging
from typing import Dict, Any, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from jobboard.db.models.candidate_order import CandidateOrder
from jobboard.core.errors import NotFoundError, PlanStateError
from jobboard.core.plan_billing import BillingMode
from jobboard.services import order_service
from jobboard.services import plan_service
from jobboard.services import quota_service
from jobboard.services import stripe_service

logger = logging.getLogger(__name__)

RESULT_COMPLETED = "completed"
RESULT_ALREADY_COMPLETED = "already_completed"
RESULT_UNMATCHED = "unmatched"
RESULT_IGNORED = "ignored"


def _complete_and_grant(db: Session, order: CandidateOrder) -> str:
    """
    Complete a pending order and grant its plan's allowance, atomically.

    A second call for the same order finds nothing to update and changes
    nothing. A lost race creating the ApplicationLimit row is retried once.
    """
    if order.is_completed:
        logger.info(f"Order already completed, nothing to do: order_id={order.id}")
        return RESULT_ALREADY_COMPLETED

    for attempt in range(2):
        try:
            if not order_service.mark_completed(db, order):
                db.rollback()
                logger.info(f"Order already completed, nothing to do: order_id={order.id}")
                return RESULT_ALREADY_COMPLETED

            limit = quota_service.grant_application_limit(db, order.user_id, order.plan.daily_application_limit)
            db.commit()
            logger.info(
                f"Order reconciled: order_id={order.id}, user_id={order.user_id}, "
                f"daily_limit={limit.daily_limit}"
            )
            return RESULT_COMPLETED
        except IntegrityError:
            db.rollback()
            if attempt:
                raise
            logger.warning(f"Concurrent application limit creation, retrying: order_id={order.id}")
        except Exception:
            db.rollback()
            raise
    return RESULT_ALREADY_COMPLETED


def reconcile_payment_intent(db: Session, intent_id: str) -> Dict[str, Any]:
    """
    Reconcile a succeeded Stripe payment intent with its order.

    An intent with no matching order is logged and reported as unmatched,
    never raised, so Stripe does not keep redelivering it.
    """
    order = order_service.find_by_external_intent(db, intent_id)
    if not order:
        logger.warning(f"No order found for payment intent: intent_id={intent_id}")
        return {"result": RESULT_UNMATCHED, "order_id": None}

    result = _complete_and_grant(db, order)
    return {"result": result, "order_id": order.id}


def confirm_order(db: Session, order_id: int) -> Dict[str, Any]:
    """Administrative confirmation of an order by its ID."""
    order = order_service.get_order(db, order_id)
    result = _complete_and_grant(db, order)
    return {"result": result, "order_id": order.id}


def confirm_payment_intent(db: Session, user_id: int, intent_id: str) -> Dict[str, Any]:
    """
    User-initiated confirmation of a payment intent.

    The intent is fetched from Stripe and must have succeeded; the matching
    order must belong to the caller. Then the same reconciliation as the
    webhook runs.

    Raises:
        PaymentProcessorError: Stripe lookup failed
        PlanStateError: Payment not succeeded, or order owned by another user
        NotFoundError: No order for this intent
    """
    intent = stripe_service.retrieve_payment_intent(intent_id)
    if intent["status"] != "succeeded":
        raise PlanStateError("Payment has not succeeded")

    order = order_service.find_by_external_intent(db, intent_id)
    if not order:
        raise NotFoundError(f"No order found for payment intent {intent_id}")
    if order.user_id != user_id:
        logger.warning(f"User ID mismatch for payment intent: intent_id={intent_id}, user_id={user_id}")
        raise PlanStateError("Payment intent does not belong to this user")

    result = _complete_and_grant(db, order)
    return {"result": result, "order_id": order.id}


def activate_free_plan(db: Session, user_id: int, plan_id: int) -> CandidateOrder:
    """
    Grant a free or bypass plan without Stripe.

    The order is created already completed and the quota grant commits with it.

    Raises:
        NotFoundError: Plan or user missing
        PlanStateError: Plan is inactive or is billed through Stripe
    """
    plan = plan_service.get_plan(db, plan_id)
    if plan.status != plan_service.PLAN_ACTIVE:
        raise PlanStateError(f"Candidate plan with ID {plan_id} is no longer available")
    if plan.billing.mode == BillingMode.EXTERNAL:
        raise PlanStateError(f"Candidate plan with ID {plan_id} is not eligible for free activation")
    order_service.get_user(db, user_id)

    try:
        order = order_service.create_completed_order(db, user_id, plan)
        quota_service.grant_application_limit(db, user_id, plan.daily_application_limit)
        db.commit()
        db.refresh(order)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Free plan activated: user_id={user_id}, plan_id={plan_id}, order_id={order.id}")
    return order


def create_payment_intent(db: Session, user_id: int, plan_id: int) -> Dict[str, Any]:
    """
    Purchase entry point: branches on the plan's billing mode.

    Free and bypass plans are activated immediately (no client secret).
    Stripe-billed plans get a pending order and the client secret the
    frontend needs to complete payment.

    Returns:
        {"client_secret": Optional[str], "order": CandidateOrder, "plan": CandidatePlan, "activated": bool}
    """
    plan = plan_service.get_plan(db, plan_id)
    if plan.status != plan_service.PLAN_ACTIVE:
        raise PlanStateError(f"Candidate plan with ID {plan_id} is no longer available")

    if plan.billing.mode != BillingMode.EXTERNAL:
        order = activate_free_plan(db, user_id, plan_id)
        return {"client_secret": None, "order": order, "plan": plan, "activated": True}

    user = order_service.get_user(db, user_id)
    try:
        order, client_secret = order_service.create_order(db, user, plan)
        db.commit()
        db.refresh(order)
    except Exception:
        db.rollback()
        raise

    return {"client_secret": client_secret, "order": order, "plan": plan, "activated": False}


def _intent_id_from_session(session: Dict[str, Any]) -> Optional[str]:
    payment_intent = session.get("payment_intent")
    if isinstance(payment_intent, dict):
        return payment_intent.get("id")
    return payment_intent


def handle_webhook_event(db: Session, event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Dispatch a verified Stripe event.

    Handles payment_intent.succeeded and paid checkout.session.completed;
    every other type is ignored.
    """
    event_type = event.get("type")
    data_object = (event.get("data") or {}).get("object") or {}

    if event_type == "payment_intent.succeeded":
        return reconcile_payment_intent(db, data_object["id"])

    if event_type == "checkout.session.completed":
        if data_object.get("payment_status") != "paid":
            logger.info(f"Checkout session not paid yet: session_id={data_object.get('id')}")
            return {"result": RESULT_IGNORED, "order_id": None}
        intent_id = _intent_id_from_session(data_object)
        if not intent_id:
            logger.warning(f"Checkout session without payment intent: session_id={data_object.get('id')}")
            return {"result": RESULT_UNMATCHED, "order_id": None}
        return reconcile_payment_intent(db, intent_id)

    logger.info(f"Unhandled webhook event type: {event_type}")
    return {"result": RESULT_IGNORED, "order_id": None}
