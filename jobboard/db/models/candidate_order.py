from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from jobboard.db.base import Base


class OrderStatus:
    PENDING = "pending"
    COMPLETED = "completed"


class CandidateOrder(Base):
    """
    One purchase attempt against a candidate plan.

    Moves from pending to completed exactly once and is never deleted.
    Free and bypass plans create the order already completed.
    """
    __tablename__ = "candidate_orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("candidate_plans.id"), nullable=False, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(String, nullable=False, default=OrderStatus.PENDING, index=True)

    # Plain strings, no relationship into Stripe beyond the id
    stripe_payment_intent_id = Column(String, nullable=True, unique=True, index=True)
    stripe_customer_id = Column(String, nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    plan = relationship("CandidatePlan", back_populates="orders")
    user = relationship("User", backref="candidate_orders")

    __table_args__ = (
        Index("idx_candidate_orders_user_plan_status", "user_id", "plan_id", "status"),
    )

    @property
    def is_completed(self) -> bool:
        return self.status == OrderStatus.COMPLETED

    def __repr__(self):
        return f"<CandidateOrder(id={self.id}, user_id={self.user_id}, status='{self.status}')>"
