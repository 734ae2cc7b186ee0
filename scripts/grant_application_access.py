"""
Script to mark a candidate as paid without a purchase.
Run: python -m scripts.grant_application_access <email> [--revoke]

Goes through the same service call as PATCH /candidate-payments/manual-payment-status.
"""
import argparse
import logging
import sys

from jobboard.db.session import SessionLocal
from jobboard.db.models.user import User
from jobboard.services import quota_service

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def grant_application_access(email: str, has_paid: bool = True) -> bool:
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.lower()).first()
        if not user:
            logger.error(f"User {email} not found")
            return False

        limit = quota_service.set_payment_status(db, user.id, has_paid)
        logger.info(
            f"Updated {email}: has_paid={limit.has_paid}, daily_limit={limit.daily_limit}, "
            f"used_today={limit.applications_used_today}"
        )
        return True
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Grant or revoke job application access")
    parser.add_argument("email")
    parser.add_argument("--revoke", action="store_true", help="Set has_paid to false")
    args = parser.parse_args()

    ok = grant_application_access(args.email, has_paid=not args.revoke)
    sys.exit(0 if ok else 1)
