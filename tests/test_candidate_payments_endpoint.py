"""
Integration tests for candidate payment, webhook and application endpoints.
"""
import hashlib
import hmac
import json
import time
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from jobboard.main import app
from jobboard.db.base import Base
from jobboard.db.models import User, CandidatePlan, CandidateOrder, OrderStatus, ApplicationLimit, Application
from jobboard.core.security import create_access_token
from jobboard.core.auth_dependency import get_db


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function", autouse=True)
def setup_db():
    """Create and drop tables for each test."""
    app.dependency_overrides[get_db] = override_get_db
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def db_session():
    """Provide a database session for tests."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    return TestClient(app)


def make_user(db_session, email, role="candidate"):
    user = User(full_name=email.split("@")[0].title(), email=email, role=role)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def auth(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}


@pytest.fixture
def candidate(db_session):
    return make_user(db_session, "candidate@example.com")


@pytest.fixture
def admin(db_session):
    return make_user(db_session, "admin@example.com", role="admin")


@pytest.fixture
def free_plan(db_session):
    plan = CandidatePlan(
        name="Free Plan",
        price=Decimal("0"),
        currency="usd",
        daily_application_limit=15,
        billing_mode="free",
        status="active",
    )
    db_session.add(plan)
    db_session.commit()
    db_session.refresh(plan)
    return plan


@pytest.fixture
def pending_order(db_session, candidate):
    plan = CandidatePlan(
        name="Standard Plan",
        price=Decimal("19.99"),
        currency="usd",
        daily_application_limit=30,
        billing_mode="external",
        stripe_product_id="prod_123",
        stripe_price_id="price_123",
        status="active",
    )
    db_session.add(plan)
    db_session.commit()
    order = CandidateOrder(
        user_id=candidate.id,
        plan_id=plan.id,
        amount=plan.price,
        currency="usd",
        status=OrderStatus.PENDING,
        stripe_payment_intent_id="pi_123",
        stripe_customer_id="cus_123",
    )
    db_session.add(order)
    db_session.commit()
    db_session.refresh(order)
    return order


def give_limit(db_session, user, daily_limit=15, used=0, has_paid=True):
    db_session.add(ApplicationLimit(
        user_id=user.id,
        daily_limit=daily_limit,
        applications_used_today=used,
        last_reset_date=date.today(),
        has_paid=has_paid,
    ))
    db_session.commit()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200


def test_list_plans_is_public(client, free_plan):
    response = client.get("/candidate-payments/plans")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["plans"][0]["name"] == "Free Plan"
    assert data["plans"][0]["billing_mode"] == "free"


def test_get_missing_plan_returns_404(client):
    response = client.get("/candidate-payments/plans/999")
    assert response.status_code == 404


def test_create_plan_requires_admin(client, candidate, admin):
    payload = {"name": "Free Plan", "price": "0", "daily_application_limit": 15}

    response = client.post("/candidate-payments/plans", json=payload)
    assert response.status_code == 401

    response = client.post("/candidate-payments/plans", json=payload, headers=auth(candidate))
    assert response.status_code == 403

    response = client.post("/candidate-payments/plans", json=payload, headers=auth(admin))
    assert response.status_code == 201
    assert response.json()["billing_mode"] == "free"
    assert response.json()["stripe_product_id"] is None


def test_free_plan_purchase_activates_immediately(client, candidate, free_plan):
    response = client.post(
        "/candidate-payments/create-payment-intent",
        json={"plan_id": free_plan.id},
        headers=auth(candidate),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["client_secret"] is None
    assert data["activated"] is True
    assert data["order_status"] == "completed"

    response = client.get("/candidate-payments/application-limit", headers=auth(candidate))
    assert response.json()["can_apply"] is True
    assert response.json()["remaining"] == 15

    response = client.get("/candidate-payments/payment-status", headers=auth(candidate))
    assert response.json() == {"has_paid": True}


def test_purchase_of_unknown_plan_returns_404(client, candidate):
    response = client.post(
        "/candidate-payments/create-payment-intent",
        json={"plan_id": 999},
        headers=auth(candidate),
    )
    assert response.status_code == 404


def test_application_limit_for_new_user(client, candidate):
    response = client.get("/candidate-payments/application-limit", headers=auth(candidate))

    assert response.status_code == 200
    data = response.json()
    assert data["can_apply"] is False
    assert data["remaining"] == 0
    assert data["has_paid"] is False


def test_admin_limit_override_requires_existing_limit(client, admin, candidate, db_session):
    response = client.patch(
        f"/candidate-payments/user-limit/{candidate.id}",
        json={"daily_limit": 5},
        headers=auth(admin),
    )
    assert response.status_code == 404

    give_limit(db_session, candidate)
    response = client.patch(
        f"/candidate-payments/user-limit/{candidate.id}",
        json={"daily_limit": 5},
        headers=auth(admin),
    )
    assert response.status_code == 200
    assert response.json()["daily_limit"] == 5


def test_admin_limit_override_forbidden_for_candidates(client, candidate):
    response = client.patch(
        f"/candidate-payments/user-limit/{candidate.id}",
        json={"daily_limit": 5},
        headers=auth(candidate),
    )
    assert response.status_code == 403


def test_manual_payment_status(client, admin, candidate):
    response = client.patch(
        "/candidate-payments/manual-payment-status",
        json={"user_id": candidate.id, "has_paid": True},
        headers=auth(admin),
    )

    assert response.status_code == 200
    assert response.json()["has_paid"] is True

    response = client.patch(
        "/candidate-payments/manual-payment-status",
        json={"user_id": 999, "has_paid": True},
        headers=auth(admin),
    )
    assert response.status_code == 404


def test_webhook_with_bad_signature_still_acknowledged(client, db_session, pending_order):
    with patch("jobboard.services.stripe_service.verify_webhook", side_effect=ValueError("bad signature")):
        response = client.post(
            "/candidate-payments/webhook",
            content=b"{}",
            headers={"stripe-signature": "t=1,v1=bad"},
        )

    assert response.status_code == 200
    assert response.json() == {"received": True}

    db_session.expire_all()
    assert db_session.get(CandidateOrder, pending_order.id).status == OrderStatus.PENDING


def test_webhook_duplicate_delivery_applied_once(client, db_session, candidate, pending_order):
    event = {
        "id": "evt_123",
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": "pi_123", "status": "succeeded"}},
    }

    with patch("jobboard.services.stripe_service.verify_webhook", return_value=event):
        first = client.post("/candidate-payments/webhook", content=b"{}", headers={"stripe-signature": "sig"})
        db_session.expire_all()
        paid_at = db_session.get(CandidateOrder, pending_order.id).payment_date
        second = client.post("/candidate-payments/webhook", content=b"{}", headers={"stripe-signature": "sig"})

    assert first.status_code == 200
    assert second.status_code == 200

    db_session.expire_all()
    order = db_session.get(CandidateOrder, pending_order.id)
    assert order.status == OrderStatus.COMPLETED
    assert order.payment_date == paid_at

    limit = db_session.query(ApplicationLimit).filter(ApplicationLimit.user_id == candidate.id).one()
    assert limit.has_paid is True
    assert limit.daily_limit == 30


def test_admin_confirm_order(client, admin, pending_order):
    response = client.post(f"/candidate-payments/orders/{pending_order.id}/confirm", headers=auth(admin))
    assert response.status_code == 200
    assert response.json()["result"] == "completed"

    response = client.post(f"/candidate-payments/orders/{pending_order.id}/confirm", headers=auth(admin))
    assert response.json()["result"] == "already_completed"

    response = client.get("/candidate-payments/orders?status=completed", headers=auth(admin))
    assert response.status_code == 200
    assert response.json()["total"] == 1


def test_payment_stats(client, candidate, free_plan):
    client.post(
        "/candidate-payments/create-payment-intent",
        json={"plan_id": free_plan.id},
        headers=auth(candidate),
    )

    response = client.get("/candidate-payments/payment-stats", headers=auth(candidate))

    assert response.status_code == 200
    data = response.json()
    assert data["has_paid"] is True
    assert data["orders_count"] == 1
    assert data["payment_history"][0]["plan_name"] == "Free Plan"


def test_application_requires_payment(client, candidate, db_session):
    response = client.post("/applications", json={"job_id": 1}, headers=auth(candidate))

    assert response.status_code == 402
    assert response.json()["detail"]["error"] == "payment_required"
    assert db_session.query(Application).count() == 0


def test_application_consumes_daily_slot(client, candidate, db_session):
    give_limit(db_session, candidate, daily_limit=1)

    first = client.post("/applications", json={"job_id": 1}, headers=auth(candidate))
    second = client.post("/applications", json={"job_id": 2}, headers=auth(candidate))

    assert first.status_code == 201
    assert first.json()["job_id"] == 1
    assert second.status_code == 402
    assert second.json()["detail"]["error"] == "application_limit_reached"
    assert second.json()["detail"]["daily_limit"] == 1

    response = client.get("/applications/my", headers=auth(candidate))
    assert len(response.json()) == 1


WEBHOOK_SECRET = "whsec_test_secret"


def signed_headers(payload: bytes, secret: str = WEBHOOK_SECRET) -> dict:
    """Build a Stripe-Signature header the way Stripe signs webhook deliveries."""
    timestamp = int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return {"stripe-signature": f"t={timestamp},v1={signature}", "content-type": "application/json"}


def test_signed_webhook_completes_order(client, db_session, candidate, pending_order):
    payload = json.dumps({
        "id": "evt_signed",
        "object": "event",
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": "pi_123", "object": "payment_intent", "status": "succeeded"}},
    }).encode("utf-8")

    with patch("jobboard.services.stripe_service.STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET):
        response = client.post("/candidate-payments/webhook", content=payload, headers=signed_headers(payload))

    assert response.status_code == 200
    db_session.expire_all()
    assert db_session.get(CandidateOrder, pending_order.id).status == OrderStatus.COMPLETED


def test_webhook_signed_with_wrong_secret_is_ignored(client, db_session, pending_order):
    payload = json.dumps({
        "id": "evt_forged",
        "object": "event",
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": "pi_123", "object": "payment_intent", "status": "succeeded"}},
    }).encode("utf-8")

    with patch("jobboard.services.stripe_service.STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET):
        response = client.post(
            "/candidate-payments/webhook",
            content=payload,
            headers=signed_headers(payload, secret="whsec_someone_else"),
        )

    assert response.status_code == 200
    assert response.json() == {"received": True}
    db_session.expire_all()
    assert db_session.get(CandidateOrder, pending_order.id).status == OrderStatus.PENDING


def test_webhook_processing_error_still_acknowledged(client, db_session, pending_order):
    event = {
        "id": "evt_123",
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": "pi_123", "status": "succeeded"}},
    }

    with patch("jobboard.services.stripe_service.verify_webhook", return_value=event), \
         patch("jobboard.api.routes.billing_webhook.handle_webhook_event", side_effect=RuntimeError("boom")):
        response = client.post("/candidate-payments/webhook", content=b"{}", headers={"stripe-signature": "sig"})

    assert response.status_code == 200
    assert response.json() == {"received": True}
    db_session.expire_all()
    assert db_session.get(CandidateOrder, pending_order.id).status == OrderStatus.PENDING


def test_application_limit_unknown_when_check_fails(client, candidate):
    with patch(
        "jobboard.services.quota_service.check_application_limit",
        side_effect=RuntimeError("db down"),
    ):
        response = client.get("/candidate-payments/application-limit", headers=auth(candidate))

    assert response.status_code == 200
    data = response.json()
    assert data["can_apply"] is False
    assert data["remaining"] == 0
    assert data["has_paid"] is None
    assert data["daily_limit"] is None
    assert data["applications_used_today"] is None
