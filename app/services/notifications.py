from __future__ import annotations

from sqlalchemy.orm import Session

from app import models
from app.services.realtime import queue_event


def notify_user(db: Session, user_id: int, message: str, kind: str = "info") -> models.Notification:
    """Store a user notification and stage its real-time push."""

    note = models.Notification(user_id=int(user_id), message=message, kind=kind)
    db.add(note)
    db.flush()
    queue_event(
        db,
        "NOTIFICATION",
        {"userId": int(user_id), "message": message, "notificationType": kind},
        user_id=user_id,
    )
    return note


def notify_admins(db: Session, message: str, kind: str = "info") -> int:
    admin_ids = [
        row[0]
        for row in db.query(models.User.id).filter(models.User.role == models.RoleName.admin).all()
    ]
    for admin_id in admin_ids:
        notify_user(db, admin_id, message, kind)
    return len(admin_ids)
