from sqlalchemy import Column, Integer, Boolean, Date, DateTime, ForeignKey
from sqlalchemy.sql import func
from jobboard.db.base import Base


class ApplicationLimit(Base):
    """
    Daily job-application quota for a candidate.

    One row per user. The counter resets when last_reset_date differs from
    the current calendar date; nothing is consumed while has_paid is false.
    """
    __tablename__ = "application_limits"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True, index=True)
    daily_limit = Column(Integer, nullable=False, default=15)
    applications_used_today = Column(Integer, nullable=False, default=0)
    last_reset_date = Column(Date, nullable=False)
    has_paid = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def remaining(self) -> int:
        return max(0, self.daily_limit - self.applications_used_today)
