from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app import models
from app.core.clock import utc_now
from app.core.permissions import is_admin
from app.services.audit import audit_event
from app.services.errors import ErrorCode, ForbiddenError, NotFoundError, ValidationFailed
from app.services.masterpieces import load_masterpiece, load_user
from app.services.notifications import notify_admins, notify_user
from app.services.provenance import record_provenance
from app.services.rarity import recompute_rarity
from app.services.realtime import queue_event
from app.services.transitions import MasterpieceEvent, transition_masterpiece

logger = logging.getLogger("vault")

CS = models.ConciergeStatus


def reserve_masterpiece(
    db: Session,
    *,
    masterpiece_id: int,
    user_id: int,
    hours: float,
    vip: bool,
    admin: models.User,
    now: Optional[datetime] = None,
) -> models.Reservation:
    """Hold an available piece for one collector until `expires_at`."""

    if float(hours) <= 0:
        raise ValidationFailed(ErrorCode.invalid_field, "hours must be > 0")
    now = now or utc_now()
    piece = load_masterpiece(db, masterpiece_id)
    user = load_user(db, user_id)

    event = MasterpieceEvent.reserved_for_vip if vip else MasterpieceEvent.reserved_for_client
    transition_masterpiece(db, piece, event)
    reservation = models.Reservation(
        masterpiece_id=piece.id,
        user_id=user.id,
        reservation_type="vip" if vip else "client",
        status="active",
        expires_at=now + timedelta(hours=float(hours)),
    )
    db.add(reservation)
    db.flush()
    notify_user(
        db,
        user.id,
        f"{piece.title} is reserved for you until {reservation.expires_at:%Y-%m-%d %H:%M} UTC.",
        "success",
    )
    audit_event(
        "RESERVE_MASTERPIECE",
        admin.id,
        {"user_id": user.id, "hours": float(hours), "vip": bool(vip)},
        db=db,
        target_id=piece.id,
    )
    queue_event(
        db,
        "MASTERPIECE_RESERVED",
        {"masterpieceId": piece.id, "userId": user.id, "reservationType": reservation.reservation_type},
        user_id=user.id,
        masterpiece_id=piece.id,
    )
    return reservation


def expire_reservations(db: Session, now: Optional[datetime] = None) -> int:
    """Release every soft reservation past its expiry; returns how many expired."""

    now = now or utc_now()
    due = (
        db.query(models.Reservation)
        .filter(models.Reservation.status == "active", models.Reservation.expires_at <= now)
        .all()
    )
    for reservation in due:
        reservation.status = "expired"
        piece = db.get(models.Masterpiece, reservation.masterpiece_id)
        if piece is not None and piece.status in (
            models.MasterpieceStatus.reserved_vip,
            models.MasterpieceStatus.reserved_client,
        ):
            transition_masterpiece(db, piece, MasterpieceEvent.reservation_expired)
        notify_user(db, reservation.user_id, "Your reservation has expired.", "info")
    db.flush()
    return len(due)


def apply_for_role(
    db: Session, *, user: models.User, application_type: models.RoleName, motivation: Optional[str]
) -> models.UserApplication:
    if application_type == models.RoleName.admin:
        raise ValidationFailed(ErrorCode.invalid_field, "admin cannot be applied for")
    application = models.UserApplication(
        user_id=user.id,
        application_type=application_type,
        motivation=motivation,
        status=models.ApprovalStatus.pending,
    )
    db.add(application)
    db.flush()
    notify_admins(db, f"{user.name} applied for the {application_type.value} programme.", "info")
    return application


def review_application(
    db: Session,
    *,
    application_id: int,
    approve: bool,
    admin: models.User,
    now: Optional[datetime] = None,
) -> models.UserApplication:
    application = db.get(models.UserApplication, int(application_id))
    if application is None:
        raise NotFoundError(ErrorCode.application_not_found)

    application.status = models.ApprovalStatus.approved if approve else models.ApprovalStatus.rejected
    application.reviewed_by = admin.id
    application.reviewed_at = now or utc_now()
    if approve:
        user = load_user(db, application.user_id)
        user.role = application.application_type
        if application.application_type == models.RoleName.vip:
            user.is_vip = True
    db.flush()

    notify_user(
        db,
        application.user_id,
        f"Your {application.application_type.value} application was "
        f"{'approved' if approve else 'declined'}.",
        "success" if approve else "warning",
    )
    audit_event(
        "REVIEW_APPLICATION",
        admin.id,
        {"approved": bool(approve), "type": application.application_type.value},
        db=db,
        target_id=application.id,
    )
    return application


def open_concierge_request(
    db: Session,
    *,
    user: models.User,
    request_type: str,
    details: Optional[str],
    masterpiece_id: Optional[int] = None,
) -> models.ConciergeRequest:
    if masterpiece_id is not None:
        load_masterpiece(db, masterpiece_id)
    request = models.ConciergeRequest(
        user_id=user.id,
        masterpiece_id=masterpiece_id,
        request_type=request_type,
        details=details,
        status=CS.open,
    )
    db.add(request)
    db.flush()
    notify_admins(db, f"New concierge request from {user.name}: {request_type}.", "info")
    return request


def load_concierge_request(
    db: Session, request_id: int, viewer: models.User
) -> models.ConciergeRequest:
    request = db.get(models.ConciergeRequest, int(request_id))
    if request is None:
        raise NotFoundError(ErrorCode.request_not_found)
    if request.user_id != viewer.id and not is_admin(viewer):
        raise ForbiddenError(ErrorCode.not_participant)
    return request


def post_concierge_message(
    db: Session, *, request_id: int, sender: models.User, message: str
) -> models.ConciergeMessage:
    request = load_concierge_request(db, request_id, sender)
    entry = models.ConciergeMessage(request_id=request.id, sender_id=sender.id, message=message)
    db.add(entry)
    db.flush()
    if sender.id == request.user_id:
        notify_admins(db, f"New concierge message on request #{request.id}.", "info")
    else:
        notify_user(db, request.user_id, "The atelier replied to your concierge request.", "info")
    return entry


def update_concierge_request(
    db: Session,
    *,
    request_id: int,
    status: CS,
    admin: models.User,
    admin_notes: Optional[str] = None,
) -> models.ConciergeRequest:
    """Move a concierge request; completing one tied to a masterpiece lands in its provenance."""

    request = load_concierge_request(db, request_id, admin)
    request.status = status
    if admin_notes is not None:
        request.admin_notes = admin_notes
    db.flush()

    if status == CS.completed and request.masterpiece_id is not None:
        record_provenance(
            db=db,
            masterpiece_id=request.masterpiece_id,
            event_type=models.ProvenanceEventType.service,
            description=f"Concierge {request.request_type} completed",
            meta={"concierge_request_id": request.id},
        )
        recompute_rarity(db, request.masterpiece_id)

    notify_user(
        db,
        request.user_id,
        f"Your concierge request is now {status.value.replace('_', ' ')}.",
        "info",
    )
    audit_event(
        "UPDATE_CONCIERGE",
        admin.id,
        {"status": status.value, "notes": admin_notes},
        db=db,
        target_id=request.id,
    )
    return request
