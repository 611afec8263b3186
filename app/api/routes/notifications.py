from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app import models
from app.api.deps import get_current_user, require_self_or_admin
from app.core.permissions import is_self_or_admin
from app.database import get_db, unit_of_work
from app.schemas import NotificationRead

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/{user_id}", response_model=List[NotificationRead])
def list_notifications(
    user_id: int,
    unread_only: bool = False,
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(require_self_or_admin),  # noqa: B008
):
    q = db.query(models.Notification).filter(models.Notification.user_id == user_id)
    if unread_only:
        q = q.filter(models.Notification.is_read.is_(False))
    return q.order_by(models.Notification.id.desc()).all()


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    note = db.get(models.Notification, notification_id)
    if note is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if not is_self_or_admin(user, note.user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")
    with unit_of_work(db):
        note.is_read = True
    return note
