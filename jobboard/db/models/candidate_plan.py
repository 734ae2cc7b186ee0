"""
CandidatePlan model: a purchasable tier granting a daily application allowance.
"""
from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, DateTime, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from jobboard.db.base import Base
from jobboard.core.plan_billing import BillingMode, PlanBilling


class CandidatePlan(Base):
    __tablename__ = "candidate_plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="usd")
    daily_application_limit = Column(Integer, nullable=False, default=15)

    # free | bypass | external, fixed at creation
    billing_mode = Column(String, nullable=False, default=BillingMode.EXTERNAL.value)
    skip_external_billing = Column(Boolean, nullable=False, default=False)
    stripe_product_id = Column(String, nullable=True)
    stripe_price_id = Column(String, nullable=True)

    status = Column(String, nullable=False, default="active", index=True)  # active | inactive

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    orders = relationship("CandidateOrder", back_populates="plan")

    __table_args__ = (
        Index("idx_candidate_plans_status_created", "status", "created_at"),
    )

    @property
    def billing(self) -> PlanBilling:
        mode = BillingMode(self.billing_mode)
        if mode != BillingMode.EXTERNAL:
            return PlanBilling(mode)
        return PlanBilling(mode, self.stripe_product_id, self.stripe_price_id)

    def __repr__(self):
        return f"<CandidatePlan(id={self.id}, name='{self.name}', price={self.price}, mode={self.billing_mode})>"
