import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import utc_now

logger = logging.getLogger("vault.audit")


def audit_event(
    action: str,
    user_id: Optional[int],
    payload: Dict[str, Any],
    *,
    db: Session | None = None,
    target_id: int | None = None,
    idempotency_key: str | None = None,
    request_id: str | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
) -> Optional[int]:
    """Record an audit event.

    With a caller-provided session the row is only flushed, so it commits or
    rolls back together with the operation being audited. Without one, a
    private session is opened and committed; if that write fails the event is
    logged instead.
    """
    from app import models

    if db is not None:
        if idempotency_key:
            existing = (
                db.query(models.AuditLog)
                .filter(models.AuditLog.idempotency_key == idempotency_key)
                .first()
            )
            if existing is not None:
                return existing.id

        log = models.AuditLog(
            action=action,
            user_id=user_id,
            target_id=target_id,
            payload_json=json.dumps(payload or {}, default=str),
            idempotency_key=idempotency_key,
            request_id=request_id,
            ip=ip,
            user_agent=user_agent,
        )
        db.add(log)
        db.flush()
        return log.id

    from app.database import SessionLocal

    session = SessionLocal()
    try:
        log = models.AuditLog(
            action=action,
            user_id=user_id,
            target_id=target_id,
            payload_json=json.dumps(payload or {}, default=str),
            idempotency_key=idempotency_key,
            request_id=request_id,
            ip=ip,
            user_agent=user_agent,
        )
        session.add(log)
        session.commit()
        return log.id
    except SQLAlchemyError:
        session.rollback()
        logger.warning(
            "audit_write_failed",
            extra={
                "action": action,
                "user_id": user_id,
                "target_id": target_id,
                "at": utc_now().isoformat(),
            },
        )
        return None
    finally:
        session.close()
