from __future__ import annotations

from typing import Iterable

from sqlalchemy.orm import Session

from app import models
from app.config import settings
from app.services.audit import audit_event
from app.services.errors import (
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    RejectedError,
    ValidationFailed,
)
from app.services.masterpieces import load_masterpiece, load_user
from app.services.notifications import notify_user
from app.services.revenue import record_revenue
from app.services.transitions import MasterpieceEvent, transition_masterpiece

_EPSILON = 1e-9


def list_shares(db: Session, masterpiece_id: int) -> list[models.FractionalShare]:
    return (
        db.query(models.FractionalShare)
        .filter(models.FractionalShare.masterpiece_id == int(masterpiece_id))
        .order_by(models.FractionalShare.percentage.desc(), models.FractionalShare.id.asc())
        .all()
    )


def initialize_shares(
    db: Session,
    *,
    masterpiece_id: int,
    allocations: Iterable[tuple[int, float]],
    admin: models.User,
) -> list[models.FractionalShare]:
    """Split a masterpiece into ownership shares; the total may not exceed 100%."""

    allocations = [(int(user_id), float(pct)) for user_id, pct in allocations]
    if not allocations:
        raise ValidationFailed(ErrorCode.invalid_shares, "at least one share is required")
    if any(pct <= 0 for _, pct in allocations):
        raise ValidationFailed(ErrorCode.invalid_shares, "share percentages must be > 0")
    total = sum(pct for _, pct in allocations)
    if total > 100 + _EPSILON:
        raise ValidationFailed(ErrorCode.invalid_shares, f"shares total {total:g}% exceeds 100%")

    piece = load_masterpiece(db, masterpiece_id)
    for user_id, _ in allocations:
        load_user(db, user_id)

    transition_masterpiece(db, piece, MasterpieceEvent.fractionalized)
    shares = [
        models.FractionalShare(masterpiece_id=piece.id, owner_id=user_id, percentage=pct)
        for user_id, pct in allocations
    ]
    db.add_all(shares)
    db.flush()
    for share in shares:
        notify_user(
            db, share.owner_id, f"You hold {share.percentage:g}% of {piece.title}.", "success"
        )
    audit_event(
        "INITIALIZE_FRACTIONAL",
        admin.id,
        {"shares": [{"user_id": u, "percentage": p} for u, p in allocations]},
        db=db,
        target_id=piece.id,
    )
    return shares


def transfer_share(
    db: Session,
    *,
    share_id: int,
    owner: models.User,
    to_user_id: int,
    percentage: float,
    price: float,
) -> models.FractionalTransfer:
    share = db.get(models.FractionalShare, int(share_id))
    if share is None:
        raise NotFoundError(ErrorCode.share_not_found)
    if share.owner_id != owner.id:
        raise ForbiddenError(ErrorCode.not_owner, "only the share owner can transfer it")
    percentage = float(percentage)
    if percentage <= 0 or percentage > float(share.percentage) + _EPSILON:
        raise ValidationFailed(
            ErrorCode.invalid_shares, f"can transfer between 0 and {share.percentage:g}%"
        )
    if float(price) < 0:
        raise ValidationFailed(ErrorCode.invalid_amount, "price must be >= 0")
    recipient = load_user(db, to_user_id)
    if recipient.id == owner.id:
        raise RejectedError(ErrorCode.self_dealing, "cannot transfer a share to yourself")

    share.percentage = round(float(share.percentage) - percentage, 6)
    target = (
        db.query(models.FractionalShare)
        .filter(
            models.FractionalShare.masterpiece_id == share.masterpiece_id,
            models.FractionalShare.owner_id == recipient.id,
        )
        .first()
    )
    if target is None:
        db.add(
            models.FractionalShare(
                masterpiece_id=share.masterpiece_id, owner_id=recipient.id, percentage=percentage
            )
        )
    else:
        target.percentage = round(float(target.percentage) + percentage, 6)

    fee = round(float(price) * float(settings.platform_fee_pct) / 100.0, 2)
    transfer = models.FractionalTransfer(
        share_id=share.id,
        from_user_id=owner.id,
        to_user_id=recipient.id,
        percentage=percentage,
        price=float(price),
        fee=fee,
    )
    db.add(transfer)
    db.flush()
    if fee > 0:
        record_revenue(
            db,
            entry_type="fractional_fee",
            amount=fee,
            masterpiece_id=share.masterpiece_id,
            description=f"Fee on fractional transfer #{transfer.id}",
        )
    notify_user(db, recipient.id, f"You received {percentage:g}% of masterpiece #{share.masterpiece_id}.", "success")
    audit_event(
        "TRANSFER_SHARE",
        owner.id,
        {"to_user_id": recipient.id, "percentage": percentage, "price": float(price), "fee": fee},
        db=db,
        target_id=share.id,
    )
    return transfer
