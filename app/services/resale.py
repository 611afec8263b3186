from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app import models
from app.config import settings
from app.core.clock import utc_now
from app.core.permissions import is_admin
from app.services.audit import audit_event
from app.services.contracts import issue_certificate
from app.services.documents import DocumentRenderer, default_renderer, format_eur
from app.services.errors import (
    ConflictError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    RejectedError,
    ValidationFailed,
)
from app.services.escrow import open_escrow, release_escrow
from app.services.masterpieces import load_masterpiece, transfer_ownership
from app.services.notifications import notify_admins, notify_user
from app.services.provenance import record_provenance
from app.services.rarity import recompute_rarity
from app.services.realtime import queue_event
from app.services.revenue import record_revenue
from app.services.transitions import MasterpieceEvent, atomic_transition_status, transition_masterpiece

logger = logging.getLogger("vault")

NS = models.NegotiationStatus


def platform_fee(price: float) -> float:
    return round(float(price) * float(settings.platform_fee_pct) / 100.0, 2)


def list_for_resale(
    db: Session,
    *,
    masterpiece_id: int,
    owner: models.User,
    price: float,
    private: bool = False,
) -> models.Masterpiece:
    """Owner asks to put a piece back on the market; an admin must approve the listing."""

    if float(price) <= 0:
        raise ValidationFailed(ErrorCode.invalid_amount, "price must be > 0")
    piece = load_masterpiece(db, masterpiece_id)
    if piece.current_owner_id != owner.id:
        raise ForbiddenError(ErrorCode.not_owner, "only the owner can list this masterpiece")

    event = MasterpieceEvent.resale_listed_private if private else MasterpieceEvent.resale_listed
    transition_masterpiece(db, piece, event)
    record_provenance(
        db=db,
        masterpiece_id=piece.id,
        event_type=models.ProvenanceEventType.resale,
        description=f"Listed for {'private ' if private else ''}resale at {format_eur(price)}",
        meta={"asking_price": float(price), "private": bool(private), "seller_id": owner.id},
    )
    notify_admins(db, f"{owner.name} listed {piece.title} for resale.", "info")
    audit_event(
        "LIST_RESALE",
        owner.id,
        {"price": float(price), "private": bool(private)},
        db=db,
        target_id=piece.id,
    )
    return piece


def review_resale(
    db: Session, *, masterpiece_id: int, approve: bool, admin: models.User
) -> models.Masterpiece:
    piece = load_masterpiece(db, masterpiece_id)
    seller_id = piece.current_owner_id
    if approve:
        transition_masterpiece(
            db, piece, MasterpieceEvent.resale_approved, updates={"current_owner_id": None}
        )
    else:
        transition_masterpiece(db, piece, MasterpieceEvent.resale_rejected)

    if seller_id is not None:
        notify_user(
            db,
            seller_id,
            f"Your resale listing for {piece.title} was {'approved' if approve else 'declined'}.",
            "success" if approve else "warning",
        )
    audit_event(
        "REVIEW_RESALE",
        admin.id,
        {"approved": bool(approve), "seller_id": seller_id},
        db=db,
        target_id=piece.id,
    )
    queue_event(
        db,
        "RESALE_REVIEWED",
        {"masterpieceId": piece.id, "approved": bool(approve)},
        user_id=seller_id,
        masterpiece_id=piece.id,
    )
    return piece


def load_negotiation(db: Session, negotiation_id: int) -> models.ResaleNegotiation:
    negotiation = db.get(models.ResaleNegotiation, int(negotiation_id))
    if negotiation is None:
        raise NotFoundError(ErrorCode.negotiation_not_found)
    return negotiation


def _is_participant(negotiation: models.ResaleNegotiation, user: models.User) -> bool:
    return user.id in (negotiation.seller_id, negotiation.buyer_id)


def view_negotiation(
    db: Session, *, negotiation_id: int, viewer: models.User
) -> models.ResaleNegotiation:
    negotiation = load_negotiation(db, negotiation_id)
    if not _is_participant(negotiation, viewer) and not is_admin(viewer):
        raise ForbiddenError(ErrorCode.not_participant)
    return negotiation


def open_negotiation(
    db: Session, *, masterpiece_id: int, buyer: models.User, offered_price: float
) -> models.ResaleNegotiation:
    if float(offered_price) <= 0:
        raise ValidationFailed(ErrorCode.invalid_amount, "offered_price must be > 0")
    piece = load_masterpiece(db, masterpiece_id)
    if piece.current_owner_id is None:
        raise NotFoundError(ErrorCode.owner_not_found, "masterpiece has no seller")
    if piece.current_owner_id == buyer.id:
        raise RejectedError(ErrorCode.self_dealing, "you cannot make an offer on your own piece")

    transition_masterpiece(db, piece, MasterpieceEvent.offer_opened)
    negotiation = models.ResaleNegotiation(
        masterpiece_id=piece.id,
        seller_id=piece.current_owner_id,
        buyer_id=buyer.id,
        offered_price=float(offered_price),
        platform_fee=platform_fee(offered_price),
        status=NS.open,
    )
    db.add(negotiation)
    db.flush()
    notify_user(
        db,
        negotiation.seller_id,
        f"New offer of {format_eur(offered_price)} for {piece.title}.",
        "info",
    )
    return negotiation


def post_message(
    db: Session, *, negotiation_id: int, sender: models.User, message: str
) -> models.NegotiationMessage:
    negotiation = load_negotiation(db, negotiation_id)
    if not _is_participant(negotiation, sender):
        raise ForbiddenError(ErrorCode.not_participant)
    entry = models.NegotiationMessage(
        negotiation_id=negotiation.id, sender_id=sender.id, message=message
    )
    db.add(entry)
    db.flush()
    other = negotiation.buyer_id if sender.id == negotiation.seller_id else negotiation.seller_id
    notify_user(db, other, "New message in your private negotiation.", "info")
    return entry


def accept_offer(
    db: Session, *, negotiation_id: int, seller: models.User, now: Optional[datetime] = None
) -> models.EscrowTransaction:
    """Seller accepts; funds are expected into escrow and competing offers are closed."""

    now = now or utc_now()
    negotiation = load_negotiation(db, negotiation_id)
    if negotiation.seller_id != seller.id:
        raise ForbiddenError(ErrorCode.not_seller, "only the seller can accept this offer")
    if negotiation.status != NS.open:
        raise ConflictError(
            ErrorCode.invalid_transition, f"negotiation is {negotiation.status.value}"
        )

    piece = load_masterpiece(db, negotiation.masterpiece_id)
    db.flush()
    result = atomic_transition_status(
        db=db,
        model=models.ResaleNegotiation,
        row_id=negotiation.id,
        to_status=NS.accepted,
        allowed_from=[NS.open],
        updates={"accepted_at": now},
    )
    if not result.updated:
        raise ConflictError(ErrorCode.concurrent_modification, "negotiation changed concurrently")
    db.refresh(negotiation)
    transition_masterpiece(db, piece, MasterpieceEvent.offer_accepted)

    (
        db.query(models.ResaleNegotiation)
        .filter(
            models.ResaleNegotiation.masterpiece_id == piece.id,
            models.ResaleNegotiation.id != negotiation.id,
            models.ResaleNegotiation.status == NS.open,
        )
        .update({"status": NS.cancelled}, synchronize_session=False)
    )

    escrow = open_escrow(
        db,
        masterpiece_id=piece.id,
        buyer_id=negotiation.buyer_id,
        seller_id=negotiation.seller_id,
        negotiation_id=negotiation.id,
        amount=negotiation.offered_price,
        now=now,
    )
    notify_user(
        db,
        negotiation.buyer_id,
        f"Your offer for {piece.title} was accepted. Funds are held in escrow.",
        "success",
    )
    audit_event(
        "ACCEPT_OFFER",
        seller.id,
        {"negotiation_id": negotiation.id, "price": negotiation.offered_price},
        db=db,
        target_id=piece.id,
    )
    queue_event(
        db,
        "RESALE_ACCEPTED",
        {"masterpieceId": piece.id, "negotiationId": negotiation.id},
        user_id=negotiation.buyer_id,
        masterpiece_id=piece.id,
    )
    return escrow


def complete_resale(
    db: Session,
    *,
    negotiation_id: int,
    admin: models.User,
    renderer: DocumentRenderer = default_renderer,
    now: Optional[datetime] = None,
) -> models.ResaleNegotiation:
    now = now or utc_now()
    negotiation = load_negotiation(db, negotiation_id)
    if negotiation.status != NS.accepted:
        raise ConflictError(
            ErrorCode.invalid_transition,
            f"negotiation is {negotiation.status.value}, only accepted offers complete",
        )
    escrow = (
        db.query(models.EscrowTransaction)
        .filter(models.EscrowTransaction.negotiation_id == negotiation.id)
        .order_by(models.EscrowTransaction.id.desc())
        .first()
    )
    if escrow is None:
        raise NotFoundError(ErrorCode.escrow_not_found)

    piece = load_masterpiece(db, negotiation.masterpiece_id)
    buyer = db.get(models.User, negotiation.buyer_id)

    release_escrow(db, escrow, now=now)
    transition_masterpiece(
        db,
        piece,
        MasterpieceEvent.resale_completed,
        updates={"current_owner_id": buyer.id, "valuation": float(negotiation.offered_price)},
    )
    transfer_ownership(
        db,
        piece=piece,
        owner_id=buyer.id,
        price=float(negotiation.offered_price),
        source="resale",
        now=now,
    )
    _, certificate = issue_certificate(db, masterpiece=piece, owner=buyer, renderer=renderer, now=now)
    record_revenue(
        db,
        entry_type="resale_fee",
        amount=negotiation.platform_fee,
        masterpiece_id=piece.id,
        description=f"Platform fee on negotiation #{negotiation.id}",
    )
    negotiation.status = NS.completed
    negotiation.completed_at = now
    db.flush()
    recompute_rarity(db, piece.id)

    for user_id in (negotiation.buyer_id, negotiation.seller_id):
        notify_user(db, user_id, f"The resale of {piece.title} is complete.", "success")
    audit_event(
        "COMPLETE_RESALE",
        admin.id,
        {
            "negotiation_id": negotiation.id,
            "price": negotiation.offered_price,
            "fee": negotiation.platform_fee,
            "cert_id": certificate.cert_id,
        },
        db=db,
        target_id=piece.id,
    )
    queue_event(
        db,
        "RESALE_COMPLETED",
        {"masterpieceId": piece.id, "negotiationId": negotiation.id, "buyerId": buyer.id},
        user_id=buyer.id,
        masterpiece_id=piece.id,
    )
    return negotiation
