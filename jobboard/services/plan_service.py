"""
Plan catalog service.

Owns candidate plan definitions and their mirrored Stripe product/price.
Free and bypass plans never touch Stripe.
"""
import logging
from decimal import Decimal
from typing import Dict, Any, List, Tuple
from sqlalchemy.orm import Session

from jobboard.db.models.candidate_plan import CandidatePlan
from jobboard.core.config import DEFAULT_CURRENCY
from jobboard.core.errors import NotFoundError, PlanStateError, PaymentProcessorError
from jobboard.core.plan_billing import BillingMode, resolve_billing_mode, currency_exponent
from jobboard.services import stripe_service

logger = logging.getLogger(__name__)

PLAN_ACTIVE = "active"
PLAN_INACTIVE = "inactive"


def create_plan(db: Session, data: Dict[str, Any]) -> CandidatePlan:
    """
    Create a candidate plan, provisioning a Stripe product and one-time price
    for externally billed plans.

    Stripe is called before anything is written locally. If Stripe fails the
    plan is not created; a product whose price could not be created is archived.

    Args:
        db: Database session
        data: name, description, price, currency, daily_application_limit,
              skip_external_billing

    Returns:
        The persisted plan

    Raises:
        PaymentProcessorError: Stripe rejected the product or price
        PlanStateError: Fractional price in a zero-decimal currency
    """
    price = Decimal(str(data["price"]))
    currency = (data.get("currency") or DEFAULT_CURRENCY).lower()
    _check_price_precision(price, currency)
    skip = bool(data.get("skip_external_billing", False))
    mode = resolve_billing_mode(price, skip)

    product_id = None
    price_id = None
    if mode == BillingMode.EXTERNAL:
        product_id = stripe_service.create_product(data["name"], data.get("description"))
        try:
            price_id = stripe_service.create_one_time_price(product_id, price, currency)
        except PaymentProcessorError:
            _archive_orphaned_product(product_id)
            raise

    plan = CandidatePlan(
        name=data["name"],
        description=data.get("description"),
        price=price,
        currency=currency,
        daily_application_limit=data["daily_application_limit"],
        billing_mode=mode.value,
        skip_external_billing=skip,
        stripe_product_id=product_id,
        stripe_price_id=price_id,
        status=PLAN_ACTIVE,
    )

    try:
        db.add(plan)
        db.commit()
        db.refresh(plan)
    except Exception:
        db.rollback()
        if product_id:
            _archive_orphaned_product(product_id)
        raise

    logger.info(f"Candidate plan created: plan_id={plan.id}, mode={mode.value}, price={price} {currency}")
    return plan


def _check_price_precision(price: Decimal, currency: str) -> None:
    if currency_exponent(currency) == 0 and price != price.to_integral_value():
        raise PlanStateError(f"Price {price} has fractional units but {currency} has no minor unit")


def _archive_orphaned_product(product_id: str) -> None:
    try:
        stripe_service.archive_product(product_id)
    except PaymentProcessorError as e:
        logger.error(f"Could not archive orphaned Stripe product: product_id={product_id}, error={e}")


def list_active_plans(db: Session, page: int = 1, limit: int = 10) -> Tuple[List[CandidatePlan], int]:
    """
    List active plans, newest first.

    Returns:
        Tuple of (plans on this page, total active plans)
    """
    query = db.query(CandidatePlan).filter(CandidatePlan.status == PLAN_ACTIVE)
    total = query.count()
    offset = (page - 1) * limit
    plans = (
        query.order_by(CandidatePlan.created_at.desc(), CandidatePlan.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return plans, total


def get_plan(db: Session, plan_id: int) -> CandidatePlan:
    plan = db.query(CandidatePlan).filter(CandidatePlan.id == plan_id).first()
    if not plan:
        raise NotFoundError(f"Candidate plan with ID {plan_id} not found")
    return plan


def update_plan(db: Session, plan_id: int, patch: Dict[str, Any]) -> CandidatePlan:
    """
    Update a plan in place.

    The billing mode chosen at creation is fixed: a patch that would move the
    plan between free, bypass and external is rejected. Name/description
    changes are mirrored to Stripe on a best-effort basis. Stripe prices are
    immutable, so a price change only affects the local amount charged on
    new payment intents.

    Raises:
        NotFoundError: Plan does not exist
        PlanStateError: Patch would change the billing mode
    """
    plan = get_plan(db, plan_id)
    current_mode = BillingMode(plan.billing_mode)

    new_price = Decimal(str(patch["price"])) if patch.get("price") is not None else Decimal(str(plan.price))
    new_skip = patch.get("skip_external_billing")
    if new_skip is None:
        new_skip = plan.skip_external_billing
    _check_price_precision(new_price, (patch.get("currency") or plan.currency).lower())
    new_mode = resolve_billing_mode(new_price, new_skip)
    if new_mode != current_mode:
        raise PlanStateError(
            f"Plan {plan_id} is billed as '{current_mode.value}' and cannot become '{new_mode.value}'; "
            f"create a new plan instead"
        )

    if current_mode == BillingMode.EXTERNAL and ("name" in patch or "description" in patch):
        try:
            stripe_service.update_product(
                plan.stripe_product_id,
                name=patch.get("name") or plan.name,
                description=patch.get("description") if "description" in patch else plan.description,
            )
        except PaymentProcessorError as e:
            logger.warning(f"Stripe product sync failed, updating locally only: plan_id={plan_id}, error={e}")

    if current_mode == BillingMode.EXTERNAL and patch.get("price") is not None and new_price != plan.price:
        logger.warning(
            f"Plan price changed locally; Stripe price {plan.stripe_price_id} was not re-issued: "
            f"plan_id={plan_id}, old={plan.price}, new={new_price}"
        )

    # An explicit null clears the description, here and on the Stripe product
    if "description" in patch:
        plan.description = patch["description"]
    for field in ("name", "currency", "daily_application_limit", "skip_external_billing"):
        if field in patch and patch[field] is not None:
            setattr(plan, field, patch[field].lower() if field == "currency" else patch[field])
    if patch.get("price") is not None:
        plan.price = new_price

    try:
        db.commit()
        db.refresh(plan)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Candidate plan updated: plan_id={plan.id}")
    return plan


def deactivate_plan(db: Session, plan_id: int) -> CandidatePlan:
    """
    Hide a plan from new purchases.

    The Stripe product and price are archived first; the local status only
    flips to inactive once archival succeeded. Calling this on an already
    inactive plan is a no-op.

    Raises:
        NotFoundError: Plan does not exist
        PaymentProcessorError: Stripe archival failed (plan stays active, safe to retry)
    """
    plan = get_plan(db, plan_id)
    if plan.status == PLAN_INACTIVE:
        logger.info(f"Candidate plan already inactive: plan_id={plan_id}")
        return plan

    billing = plan.billing
    if billing.is_external:
        if billing.product_id:
            stripe_service.archive_product(billing.product_id)
        if billing.price_id:
            stripe_service.archive_price(billing.price_id)

    plan.status = PLAN_INACTIVE
    try:
        db.commit()
        db.refresh(plan)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Candidate plan deactivated: plan_id={plan_id}")
    return plan
