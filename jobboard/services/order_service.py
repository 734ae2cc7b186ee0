"""
Order ledger for candidate plan purchases.

Functions here write through the caller's session and only flush; the
reconciliation service owns commit and rollback so an order and the quota
grant it triggers are committed together.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Dict, Any, List, Tuple
from sqlalchemy.orm import Session, joinedload

from jobboard.db.models.user import User
from jobboard.db.models.candidate_plan import CandidatePlan
from jobboard.db.models.candidate_order import CandidateOrder, OrderStatus
from jobboard.core.errors import NotFoundError
from jobboard.services import stripe_service
from jobboard.services import quota_service
from jobboard.core.config import DEFAULT_DAILY_APPLICATION_LIMIT

logger = logging.getLogger(__name__)

# Stripe intent states that can no longer be paid
CLOSED_INTENT_STATUSES = ("succeeded", "canceled")


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User with ID {user_id} not found")
    return user


def ensure_stripe_customer(db: Session, user: User) -> str:
    """Return the user's Stripe customer ID, creating and storing one if absent."""
    if user.stripe_customer_id:
        return user.stripe_customer_id

    customer_id = stripe_service.create_customer(user.id, user.email, user.full_name)
    user.stripe_customer_id = customer_id
    db.flush()
    return customer_id


def create_completed_order(db: Session, user_id: int, plan: CandidatePlan) -> CandidateOrder:
    """Record a free or bypass purchase; no Stripe identifiers are attached."""
    order = CandidateOrder(
        user_id=user_id,
        plan_id=plan.id,
        amount=plan.price,
        currency=plan.currency,
        status=OrderStatus.COMPLETED,
        payment_date=datetime.now(timezone.utc),
    )
    db.add(order)
    db.flush()
    logger.info(f"Completed order recorded without Stripe: order_id={order.id}, user_id={user_id}, plan_id={plan.id}")
    return order


def find_pending_order(db: Session, user_id: int, plan_id: int) -> Optional[CandidateOrder]:
    return (
        db.query(CandidateOrder)
        .filter(
            CandidateOrder.user_id == user_id,
            CandidateOrder.plan_id == plan_id,
            CandidateOrder.status == OrderStatus.PENDING,
        )
        .order_by(CandidateOrder.created_at.desc(), CandidateOrder.id.desc())
        .first()
    )


def create_order(db: Session, user: User, plan: CandidatePlan) -> Tuple[CandidateOrder, str]:
    """
    Start a paid purchase: make sure the user is a Stripe customer, create a
    payment intent for the plan price and record a pending order.

    A pending order for the same plan whose intent is still open is reused
    and its client secret returned instead. A pending order whose intent was
    canceled is re-pointed at a fresh intent; one whose intent already
    succeeded is left for its webhook and a new order is created.

    Returns:
        Tuple of (pending order, client secret)

    Raises:
        PaymentProcessorError: Stripe failed; nothing is committed
    """
    pending = find_pending_order(db, user.id, plan.id)
    if pending and pending.stripe_payment_intent_id:
        existing = stripe_service.retrieve_payment_intent(pending.stripe_payment_intent_id)
        if existing["status"] not in CLOSED_INTENT_STATUSES:
            logger.info(f"Reusing open payment intent: order_id={pending.id}, intent_id={existing['id']}")
            return pending, existing["client_secret"]
        if existing["status"] == "succeeded":
            # Awaiting reconciliation; do not detach it from its intent
            pending = None

    customer_id = ensure_stripe_customer(db, user)
    intent = stripe_service.create_payment_intent(
        amount=plan.price,
        currency=plan.currency,
        customer_id=customer_id,
        metadata={"user_id": str(user.id), "plan_id": str(plan.id)},
    )

    if pending:
        pending.stripe_payment_intent_id = intent["id"]
        pending.stripe_customer_id = customer_id
        pending.amount = plan.price
        pending.currency = plan.currency
        order = pending
    else:
        order = CandidateOrder(
            user_id=user.id,
            plan_id=plan.id,
            amount=plan.price,
            currency=plan.currency,
            status=OrderStatus.PENDING,
            stripe_payment_intent_id=intent["id"],
            stripe_customer_id=customer_id,
        )
        db.add(order)
    db.flush()

    logger.info(f"Pending order recorded: order_id={order.id}, user_id={user.id}, intent_id={intent['id']}")
    return order, intent["client_secret"]


def find_by_external_intent(db: Session, intent_id: str) -> Optional[CandidateOrder]:
    return db.query(CandidateOrder).filter(CandidateOrder.stripe_payment_intent_id == intent_id).first()


def get_order(db: Session, order_id: int) -> CandidateOrder:
    order = (
        db.query(CandidateOrder)
        .options(joinedload(CandidateOrder.plan), joinedload(CandidateOrder.user))
        .filter(CandidateOrder.id == order_id)
        .first()
    )
    if not order:
        raise NotFoundError(f"Order with ID {order_id} not found")
    return order


def mark_completed(db: Session, order: CandidateOrder) -> bool:
    """
    Move an order from pending to completed.

    Implemented as a conditional UPDATE on status = 'pending' so the database
    applies the transition at most once no matter how many webhook deliveries
    or manual confirmations race for the same order.

    Returns:
        True if this call completed the order, False if it was already completed
    """
    updated = (
        db.query(CandidateOrder)
        .filter(
            CandidateOrder.id == order.id,
            CandidateOrder.status == OrderStatus.PENDING,
        )
        .update(
            {
                CandidateOrder.status: OrderStatus.COMPLETED,
                CandidateOrder.payment_date: datetime.now(timezone.utc),
            },
            synchronize_session=False,
        )
    )
    db.refresh(order)
    return updated > 0


def list_orders(
    db: Session,
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
) -> Tuple[List[CandidateOrder], int]:
    query = db.query(CandidateOrder).options(joinedload(CandidateOrder.plan), joinedload(CandidateOrder.user))
    if status:
        query = query.filter(CandidateOrder.status == status)
    total = query.count()
    orders = (
        query.order_by(CandidateOrder.created_at.desc(), CandidateOrder.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return orders, total


def get_user_payment_stats(db: Session, user_id: int) -> Dict[str, Any]:
    """
    Payment and quota summary for a user.

    Returns:
        Dictionary with has_paid, quota numbers, total_spent, orders_count,
        last_payment and payment_history (completed orders, newest first)
    """
    orders = (
        db.query(CandidateOrder)
        .options(joinedload(CandidateOrder.plan))
        .filter(
            CandidateOrder.user_id == user_id,
            CandidateOrder.status == OrderStatus.COMPLETED,
        )
        .order_by(CandidateOrder.payment_date.desc(), CandidateOrder.id.desc())
        .all()
    )
    limit = quota_service.get_limit(db, user_id)

    total_spent = sum((Decimal(str(order.amount)) for order in orders), Decimal("0"))

    return {
        "has_paid": bool(limit and limit.has_paid),
        "daily_limit": limit.daily_limit if limit else DEFAULT_DAILY_APPLICATION_LIMIT,
        "applications_used_today": limit.applications_used_today if limit else 0,
        "remaining_applications": limit.remaining if limit and limit.has_paid else 0,
        "last_reset_date": limit.last_reset_date if limit else None,
        "total_spent": total_spent,
        "orders_count": len(orders),
        "last_payment": orders[0].payment_date if orders else None,
        "payment_history": [
            {
                "order_id": order.id,
                "amount": order.amount,
                "currency": order.currency,
                "payment_date": order.payment_date,
                "plan_name": order.plan.name if order.plan else "Unknown Plan",
            }
            for order in orders
        ],
    }
