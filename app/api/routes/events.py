from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app import models
from app.api.deps import get_current_user, get_current_user_optional, require_roles
from app.core.permissions import can_view_vip
from app.database import get_db, unit_of_work
from app.schemas import (
    CollaborationCreate,
    CollaborationRead,
    PrivateEventCreate,
    PrivateEventRead,
    RsvpCreate,
    RsvpRead,
)
from app.services.audit import audit_event
from app.services.errors import ErrorCode, NotFoundError

router = APIRouter(tags=["events"])

_admin = require_roles(models.RoleName.admin)


@router.get("/events", response_model=List[PrivateEventRead])
def list_events(
    db: Session = Depends(get_db),  # noqa: B008
    viewer: Optional[models.User] = Depends(get_current_user_optional),  # noqa: B008
):
    q = db.query(models.PrivateEvent)
    if not can_view_vip(viewer):
        q = q.filter(models.PrivateEvent.vip_only.is_(False))
    return q.order_by(models.PrivateEvent.starts_at.asc(), models.PrivateEvent.id.asc()).all()


@router.post("/admin/events", response_model=PrivateEventRead, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: PrivateEventCreate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        event = models.PrivateEvent(**payload.model_dump())
        db.add(event)
        db.flush()
        audit_event(
            "CREATE_EVENT",
            admin.id,
            {"title": event.title, "vip_only": event.vip_only},
            db=db,
            target_id=event.id,
        )
    return event


@router.post("/events/rsvp", response_model=RsvpRead)
def rsvp(
    payload: RsvpCreate,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    """One answer per (event, user); answering again replaces the previous one."""

    with unit_of_work(db):
        event = db.get(models.PrivateEvent, payload.event_id)
        if event is None or (event.vip_only and not can_view_vip(user)):
            raise NotFoundError(ErrorCode.event_not_found)
        row = (
            db.query(models.EventRsvp)
            .filter(models.EventRsvp.event_id == event.id, models.EventRsvp.user_id == user.id)
            .first()
        )
        if row is None:
            row = models.EventRsvp(event_id=event.id, user_id=user.id)
            db.add(row)
        row.status = payload.status
        row.guests = payload.guests
        db.flush()
    return row


@router.get("/admin/collaborations", response_model=List[CollaborationRead])
def list_collaborations(
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(_admin),  # noqa: B008
):
    return db.query(models.Collaboration).order_by(models.Collaboration.id.desc()).all()


@router.post(
    "/admin/collaborations", response_model=CollaborationRead, status_code=status.HTTP_201_CREATED
)
def create_collaboration(
    payload: CollaborationCreate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        collaboration = models.Collaboration(**payload.model_dump())
        db.add(collaboration)
        db.flush()
        audit_event(
            "CREATE_COLLABORATION",
            admin.id,
            {"partner_name": collaboration.partner_name},
            db=db,
            target_id=collaboration.id,
        )
    return collaboration
