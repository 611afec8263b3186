import logging
import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError

from app import models
from app.api.router import api_router
from app.config import settings
from app.core.observability import (
    domain_error_handler,
    global_exception_handler,
    request_logging_middleware,
    uptime_seconds,
    utc_now_iso,
)
from app.database import POOL_CONFIG, SessionLocal, engine
from app.services.auth import hash_password
from app.services.errors import DomainError
from app.services.scheduler import runner as sweep_runner

logger = logging.getLogger("vault")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

API_PREFIX = settings.api_prefix
OPENAPI_URL = f"{API_PREFIX}/openapi.json"

app = FastAPI(
    title=settings.app_name,
    version=settings.build_version or "dev",
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url=None,
    openapi_url=OPENAPI_URL if settings.enable_docs else None,
)
app.state.logger = logger

app.add_exception_handler(DomainError, domain_error_handler)
app.add_exception_handler(Exception, global_exception_handler)
app.middleware("http")(request_logging_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=API_PREFIX)


def _is_test_env() -> bool:
    return (settings.environment or "").lower() == "test"


def _upgrade_schema() -> None:
    """Apply Alembic migrations at boot when RUN_MIGRATIONS_ON_START is set."""

    if not settings.run_migrations_on_start or _is_test_env():
        return

    from alembic import command
    from alembic.config import Config

    cfg = Config(str(Path(__file__).resolve().parents[1] / "alembic.ini"))
    try:
        with engine.connect() as connection:
            cfg.attributes["connection"] = connection
            command.upgrade(cfg, "head")
        logger.info("migrations_applied")
    except Exception as e:
        # The API still boots; the failure is surfaced in the logs.
        logger.error("migrations_failed error=%s", str(e))


def _ensure_house_admin() -> None:
    """Create the atelier's first admin account outside production."""

    if str(settings.environment or "dev").lower() in {"prod", "production", "test"}:
        return

    email = settings.seed_admin_email.strip().lower()
    db = SessionLocal()
    try:
        if db.query(models.User).filter(models.User.email == email).first() is None:
            db.add(
                models.User(
                    email=email,
                    name="Atelier Admin",
                    hashed_password=hash_password(settings.seed_admin_password),
                    role=models.RoleName.admin,
                    status=models.ApprovalStatus.approved,
                )
            )
            db.commit()
            logger.info("house_admin_created", extra={"email": email})
    except OperationalError as e:
        # Tables missing on a fresh database; migrations will create them.
        db.rollback()
        logger.warning("house_admin_skipped", extra={"error": str(e)})
    finally:
        db.close()


@app.on_event("startup")
def _startup():
    logger.info(
        "vault_starting",
        extra={
            "pid": os.getpid(),
            "environment": settings.environment,
            "db_pool": POOL_CONFIG,
            "scheduler_enabled": settings.scheduler_enabled,
        },
    )
    _upgrade_schema()
    _ensure_house_admin()
    if _is_test_env() or not settings.scheduler_enabled:
        return
    sweep_runner.start()
    logger.info("escrow_sweep_started", extra={"interval_seconds": sweep_runner.interval_seconds})


@app.on_event("shutdown")
def _shutdown():
    sweep_runner.stop()
    logger.info("vault_stopped")


@app.get("/", tags=["meta"])
def root():
    return {"message": settings.app_name, "docs": OPENAPI_URL if settings.enable_docs else None}


@app.get("/health", tags=["meta"])
@app.get("/healthz", tags=["meta"])
def liveness():
    """Liveness probe; payload kept stable for monitoring."""

    return {
        "status": "ok",
        "service": settings.app_name,
        "time": utc_now_iso(),
        "uptime_seconds": round(uptime_seconds(), 2),
        "version": settings.build_version,
    }
