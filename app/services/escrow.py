from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app import models
from app.config import settings
from app.core.clock import as_utc, utc_now
from app.services.audit import audit_event
from app.services.errors import (
    ConflictError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    RejectedError,
)
from app.services.notifications import notify_admins, notify_user
from app.services.realtime import queue_event
from app.services.transitions import atomic_transition_status

logger = logging.getLogger("vault")

ES = models.EscrowStatus


def dispute_window() -> timedelta:
    return timedelta(hours=float(settings.dispute_window_hours))


def open_escrow(
    db: Session,
    *,
    masterpiece_id: int,
    buyer_id: int,
    amount: float,
    seller_id: int | None = None,
    negotiation_id: int | None = None,
    now: datetime | None = None,
) -> models.EscrowTransaction:
    now = now or utc_now()
    escrow = models.EscrowTransaction(
        masterpiece_id=int(masterpiece_id),
        buyer_id=int(buyer_id),
        seller_id=seller_id,
        negotiation_id=negotiation_id,
        amount=float(amount),
        status=ES.HELD,
        dispute_window_ends=now + dispute_window(),
        milestones=[{"name": "funds_held", "at": now.isoformat()}],
        created_at=now,
    )
    db.add(escrow)
    db.flush()
    queue_event(
        db,
        "ESCROW_UPDATED",
        {"masterpieceId": escrow.masterpiece_id, "escrowId": escrow.id, "status": ES.HELD.value},
        user_id=escrow.buyer_id,
        masterpiece_id=escrow.masterpiece_id,
    )
    return escrow


def latest_escrow(db: Session, masterpiece_id: int) -> models.EscrowTransaction | None:
    return (
        db.query(models.EscrowTransaction)
        .filter(models.EscrowTransaction.masterpiece_id == int(masterpiece_id))
        .order_by(models.EscrowTransaction.id.desc())
        .first()
    )


def dispute_window_open(escrow: models.EscrowTransaction, now: datetime | None = None) -> bool:
    now = now or utc_now()
    return now < as_utc(escrow.dispute_window_ends)


def _move(
    db: Session,
    escrow: models.EscrowTransaction,
    *,
    to_status: ES,
    allowed_from: list[ES],
    updates: dict,
    milestone: str,
    now: datetime,
) -> None:
    milestones = list(escrow.milestones or [])
    milestones.append({"name": milestone, "at": now.isoformat()})
    db.flush()
    result = atomic_transition_status(
        db=db,
        model=models.EscrowTransaction,
        row_id=escrow.id,
        to_status=to_status,
        allowed_from=allowed_from,
        updates={**updates, "milestones": milestones},
    )
    if not result.updated:
        raise ConflictError(
            ErrorCode.concurrent_modification,
            f"escrow {escrow.id} changed concurrently, reload and retry",
        )
    db.refresh(escrow)
    queue_event(
        db,
        "ESCROW_UPDATED",
        {"masterpieceId": escrow.masterpiece_id, "escrowId": escrow.id, "status": to_status.value},
        user_id=escrow.buyer_id,
        masterpiece_id=escrow.masterpiece_id,
    )


def release_escrow(
    db: Session, escrow: models.EscrowTransaction, *, now: datetime | None = None
) -> models.EscrowTransaction:
    if escrow.status == ES.DISPUTED:
        raise RejectedError(
            ErrorCode.escrow_disputed, "escrow is under dispute and cannot be released"
        )
    if escrow.status != ES.HELD:
        raise ConflictError(
            ErrorCode.invalid_transition, f"escrow in status {escrow.status.value} cannot be released"
        )
    now = now or utc_now()
    _move(
        db,
        escrow,
        to_status=ES.RELEASED,
        allowed_from=[ES.HELD],
        updates={"released_at": now},
        milestone="released",
        now=now,
    )
    logger.info(
        "escrow_released",
        extra={"escrow_id": escrow.id, "masterpiece_id": escrow.masterpiece_id},
    )
    return escrow


def file_dispute(
    db: Session,
    *,
    masterpiece_id: int,
    buyer: models.User,
    reason: str,
    now: datetime | None = None,
) -> models.EscrowTransaction:
    """Buyer objection inside the dispute window; freezes release until an admin rules."""

    escrow = latest_escrow(db, masterpiece_id)
    if escrow is None:
        raise NotFoundError(ErrorCode.escrow_not_found)
    if escrow.buyer_id != buyer.id:
        raise ForbiddenError(ErrorCode.not_buyer, "only the buyer can dispute this escrow")
    if escrow.status != ES.HELD:
        raise ConflictError(
            ErrorCode.invalid_transition, f"escrow in status {escrow.status.value} cannot be disputed"
        )
    now = now or utc_now()
    if not dispute_window_open(escrow, now):
        raise RejectedError(ErrorCode.dispute_window_closed, "the dispute window has closed")

    _move(
        db,
        escrow,
        to_status=ES.DISPUTED,
        allowed_from=[ES.HELD],
        updates={"dispute_reason": reason, "disputed_at": now},
        milestone="disputed",
        now=now,
    )
    notify_admins(
        db, f"Escrow dispute filed for masterpiece #{escrow.masterpiece_id}: {reason}", "warning"
    )
    audit_event(
        "FILE_DISPUTE",
        buyer.id,
        {"masterpiece_id": escrow.masterpiece_id, "reason": reason},
        db=db,
        target_id=escrow.id,
    )
    logger.info(
        "escrow_disputed", extra={"escrow_id": escrow.id, "masterpiece_id": escrow.masterpiece_id}
    )
    return escrow


def dismiss_dispute(
    db: Session, *, escrow_id: int, admin: models.User, now: datetime | None = None
) -> models.EscrowTransaction:
    escrow = db.get(models.EscrowTransaction, int(escrow_id))
    if escrow is None:
        raise NotFoundError(ErrorCode.escrow_not_found)
    if escrow.status != ES.DISPUTED:
        raise ConflictError(ErrorCode.invalid_transition, "escrow is not disputed")

    now = now or utc_now()
    _move(
        db,
        escrow,
        to_status=ES.HELD,
        allowed_from=[ES.DISPUTED],
        updates={},
        milestone="dispute_dismissed",
        now=now,
    )
    notify_user(db, escrow.buyer_id, "Your escrow dispute was reviewed and dismissed.", "info")
    audit_event(
        "DISMISS_DISPUTE",
        admin.id,
        {"masterpiece_id": escrow.masterpiece_id, "reason": escrow.dispute_reason},
        db=db,
        target_id=escrow.id,
    )
    return escrow
