from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.core.observability import uptime_seconds, utc_now_iso
from app.database import get_db
from app.services.realtime import hub
from app.services.scheduler import runner as sweep_runner

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Readiness")
def readiness(db: Session = Depends(get_db)):  # noqa: B008
    """Database reachability plus the state of the background workers."""

    try:
        db.execute(text("select 1"))
        database = "ok"
    except SQLAlchemyError:
        database = "unavailable"

    body = {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "escrow_sweep": "running" if sweep_runner.is_running else "stopped",
        "realtime_subscribers": hub.subscriber_count,
        "environment": settings.environment,
        "time": utc_now_iso(),
        "uptime_seconds": round(uptime_seconds(), 2),
    }
    return JSONResponse(status_code=200 if database == "ok" else 503, content=body)
