from jobboard.db.session import engine
from jobboard.db.base import Base
import jobboard.db.models  # noqa: F401  registers every table on Base.metadata


def init_db():
    """Create any missing tables (local SQLite and tests; Postgres uses Alembic)."""
    Base.metadata.create_all(bind=engine)
