import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jobboard.core import config
from jobboard.core.logging_config import setup_logging

# ✅ Import All API Routes
from jobboard.api.routes import candidate_plans, candidate_payments, billing_webhook, application, health

setup_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Job Board API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(candidate_plans.router)
app.include_router(candidate_payments.router)
app.include_router(billing_webhook.router)
app.include_router(application.router)
app.include_router(health.router)


# ============================================
# ✅ STARTUP
# ============================================

@app.on_event("startup")
def on_startup():
    if config.RUN_MIGRATIONS:
        from jobboard.db.migrate import run_migrations
        run_migrations()
    elif config.DATABASE_URL.startswith("sqlite"):
        from jobboard.db.init_db import init_db
        init_db()
    logger.info("Job board API started")


@app.get("/")
def root():
    return {"status": "Job board API running"}
