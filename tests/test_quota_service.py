"""
Unit tests for quota service.
Tests daily application limits, resets and slot reservation.
"""
import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from jobboard.db.base import Base
from jobboard.db.models import User, CandidatePlan, CandidateOrder, ApplicationLimit
from jobboard.core.errors import NotFoundError
from jobboard.services.quota_service import (
    check_application_limit,
    increment_application_count,
    reserve_application_slot,
    release_application_slot,
    update_user_daily_limit,
    set_payment_status,
    check_user_payment_status,
    get_limit,
)


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def test_user(db):
    """Create a test candidate."""
    user = User(full_name="Test User", email="test@example.com", role="candidate")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_limit(db, user, used=0, daily_limit=15, has_paid=True, last_reset=None):
    limit = ApplicationLimit(
        user_id=user.id,
        daily_limit=daily_limit,
        applications_used_today=used,
        last_reset_date=last_reset or date.today(),
        has_paid=has_paid,
    )
    db.add(limit)
    db.commit()
    return limit


def test_check_creates_unpaid_limit_with_defaults(db, test_user):
    """First check creates the row and denies an unpaid user."""
    result = check_application_limit(db, test_user.id)

    assert result["can_apply"] is False
    assert result["remaining"] == 0

    limit = get_limit(db, test_user.id)
    assert limit is not None
    assert limit.daily_limit == 15
    assert limit.applications_used_today == 0
    assert limit.has_paid is False
    assert limit.last_reset_date == date.today()


def test_unpaid_user_never_applies_regardless_of_counter(db, test_user):
    make_limit(db, test_user, used=0, daily_limit=50, has_paid=False, last_reset=date.today() - timedelta(days=3))

    result = check_application_limit(db, test_user.id)

    assert result["can_apply"] is False
    assert result["remaining"] == 0


def test_paid_user_under_limit(db, test_user):
    make_limit(db, test_user, used=3)

    result = check_application_limit(db, test_user.id)

    assert result["can_apply"] is True
    assert result["remaining"] == 12


def test_paid_user_at_limit(db, test_user):
    make_limit(db, test_user, used=15)

    result = check_application_limit(db, test_user.id)

    assert result["can_apply"] is False
    assert result["remaining"] == 0


def test_check_resets_counter_on_new_day(db, test_user):
    """A limit exhausted yesterday is fully available today."""
    make_limit(db, test_user, used=15, last_reset=date.today() - timedelta(days=1))

    result = check_application_limit(db, test_user.id)

    assert result["can_apply"] is True
    assert result["remaining"] == 15

    db.expire_all()
    limit = get_limit(db, test_user.id)
    assert limit.applications_used_today == 0
    assert limit.last_reset_date == date.today()


def test_check_does_not_reset_same_day(db, test_user):
    make_limit(db, test_user, used=5)

    check_application_limit(db, test_user.id)

    db.expire_all()
    assert get_limit(db, test_user.id).applications_used_today == 5


def test_lazy_limit_uses_latest_completed_order_plan(db, test_user):
    """A user with a completed order but no limit row gets that plan's allowance."""
    plan = CandidatePlan(
        name="Standard Plan",
        price=Decimal("19.99"),
        currency="usd",
        daily_application_limit=30,
        billing_mode="external",
        stripe_product_id="prod_1",
        stripe_price_id="price_1",
    )
    db.add(plan)
    db.commit()
    db.add(CandidateOrder(
        user_id=test_user.id,
        plan_id=plan.id,
        amount=plan.price,
        currency="usd",
        status="completed",
        stripe_payment_intent_id="pi_1",
        payment_date=datetime.now(timezone.utc),
    ))
    db.commit()

    result = check_application_limit(db, test_user.id)

    assert result["can_apply"] is True
    assert result["remaining"] == 30
    assert result["has_paid"] is True


def test_increment_application_count(db, test_user):
    make_limit(db, test_user, used=2)

    increment_application_count(db, test_user.id)

    db.expire_all()
    assert get_limit(db, test_user.id).applications_used_today == 3


def test_increment_without_limit_raises_not_found(db, test_user):
    with pytest.raises(NotFoundError):
        increment_application_count(db, test_user.id)


def test_reserve_slot_never_exceeds_daily_limit(db, test_user):
    make_limit(db, test_user, used=0, daily_limit=2)

    first = reserve_application_slot(db, test_user.id)
    second = reserve_application_slot(db, test_user.id)
    third = reserve_application_slot(db, test_user.id)

    assert first["reserved"] is True
    assert first["remaining"] == 1
    assert second["reserved"] is True
    assert second["remaining"] == 0
    assert third["reserved"] is False

    db.expire_all()
    assert get_limit(db, test_user.id).applications_used_today == 2


def test_reserve_slot_denies_unpaid_user(db, test_user):
    make_limit(db, test_user, used=0, has_paid=False)

    result = reserve_application_slot(db, test_user.id)

    assert result["reserved"] is False
    assert result["has_paid"] is False
    db.expire_all()
    assert get_limit(db, test_user.id).applications_used_today == 0


def test_reserve_slot_resets_stale_day_first(db, test_user):
    make_limit(db, test_user, used=15, last_reset=date.today() - timedelta(days=2))

    result = reserve_application_slot(db, test_user.id)

    assert result["reserved"] is True
    assert result["remaining"] == 14
    db.expire_all()
    limit = get_limit(db, test_user.id)
    assert limit.applications_used_today == 1
    assert limit.last_reset_date == date.today()


def test_release_slot_does_not_go_negative(db, test_user):
    make_limit(db, test_user, used=1)

    release_application_slot(db, test_user.id)
    release_application_slot(db, test_user.id)

    db.expire_all()
    assert get_limit(db, test_user.id).applications_used_today == 0


def test_update_daily_limit_requires_existing_limit(db, test_user):
    """Admin override fails for a user who never checked or purchased."""
    with pytest.raises(NotFoundError):
        update_user_daily_limit(db, test_user.id, 5)

    assert get_limit(db, test_user.id) is None


def test_update_daily_limit_overrides_allowance(db, test_user):
    make_limit(db, test_user, used=4, daily_limit=15)

    limit = update_user_daily_limit(db, test_user.id, 5)

    assert limit.daily_limit == 5
    assert limit.applications_used_today == 4


def test_set_payment_status_creates_limit(db, test_user):
    assert check_user_payment_status(db, test_user.id) is False

    limit = set_payment_status(db, test_user.id, True)

    assert limit.has_paid is True
    assert limit.daily_limit == 15
    assert check_user_payment_status(db, test_user.id) is True


def test_future_reset_date_is_never_moved_back(db, test_user):
    """A reset date ahead of today (clock skew) keeps its date and counter."""
    tomorrow = date.today() + timedelta(days=1)
    make_limit(db, test_user, used=5, last_reset=tomorrow)

    result = check_application_limit(db, test_user.id)

    assert result["can_apply"] is True
    assert result["remaining"] == 10

    reserved = reserve_application_slot(db, test_user.id)
    assert reserved["reserved"] is True

    db.expire_all()
    limit = get_limit(db, test_user.id)
    assert limit.last_reset_date == tomorrow
    assert limit.applications_used_today == 6
