"""
Script to seed the default candidate plans.
Run: python -m scripts.seed_candidate_plans

Skips seeding when any active plan already exists. Paid plans are
provisioned in Stripe, so STRIPE_SECRET_KEY must be set.
"""
import logging
from decimal import Decimal

from jobboard.db.session import SessionLocal
from jobboard.core.errors import BillingError
from jobboard.services import plan_service

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_PLANS = [
    {
        "name": "Basic Plan",
        "description": "Apply for up to 15 jobs per day",
        "price": Decimal("9.99"),
        "currency": "usd",
        "daily_application_limit": 15,
    },
    {
        "name": "Standard Plan",
        "description": "Apply for up to 30 jobs per day",
        "price": Decimal("19.99"),
        "currency": "usd",
        "daily_application_limit": 30,
    },
    {
        "name": "Premium Plan",
        "description": "Apply for up to 50 jobs per day",
        "price": Decimal("29.99"),
        "currency": "usd",
        "daily_application_limit": 50,
    },
]


def seed_candidate_plans() -> int:
    """Create the default plans. Returns how many were created."""
    db = SessionLocal()
    try:
        _, total = plan_service.list_active_plans(db, page=1, limit=1)
        if total:
            logger.info(f"Skipping candidate plan seeding. {total} active plans already exist.")
            return 0

        created = 0
        for plan_data in DEFAULT_PLANS:
            try:
                plan = plan_service.create_plan(db, plan_data)
                created += 1
                logger.info(f"Seeded plan: id={plan.id}, name={plan.name}")
            except BillingError as e:
                logger.error(f"Failed to seed plan {plan_data['name']}: {e}")
        return created
    finally:
        db.close()


if __name__ == "__main__":
    count = seed_candidate_plans()
    print(f"Seeded {count} candidate plans")
