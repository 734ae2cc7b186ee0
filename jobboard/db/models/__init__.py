"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from jobboard.db.models.user import User
from jobboard.db.models.candidate_plan import CandidatePlan
from jobboard.db.models.candidate_order import CandidateOrder, OrderStatus
from jobboard.db.models.application_limit import ApplicationLimit
from jobboard.db.models.application import Application

__all__ = [
    "User",
    "CandidatePlan",
    "CandidateOrder",
    "OrderStatus",
    "ApplicationLimit",
    "Application",
]
