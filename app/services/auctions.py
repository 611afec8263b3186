from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app import models
from app.core.clock import as_utc, utc_now
from app.core.permissions import can_view_vip
from app.services.audit import audit_event
from app.services.contracts import issue_contract
from app.services.documents import DocumentRenderer, default_renderer, format_eur
from app.services.errors import (
    ConflictError,
    ErrorCode,
    NotFoundError,
    RejectedError,
    ValidationFailed,
)
from app.services.masterpieces import load_masterpiece, load_user
from app.services.notifications import notify_user
from app.services.provenance import record_provenance
from app.services.rarity import recompute_rarity
from app.services.realtime import queue_event
from app.services.transitions import MasterpieceEvent, atomic_transition_status, transition_masterpiece

logger = logging.getLogger("vault")

AS = models.AuctionStatus

DEFAULT_AUCTION_TERMS = (
    "Bids are binding. The highest bid at close reserves the masterpiece for the winner, "
    "who completes the acquisition through the standard deposit agreement."
)


def visible_auctions(
    db: Session, viewer: Optional[models.User], *, active_only: bool = False
) -> list[models.Auction]:
    q = db.query(models.Auction)
    if not can_view_vip(viewer):
        q = q.filter(models.Auction.vip_only.is_(False))
    if active_only:
        q = q.filter(models.Auction.status == AS.active)
    return q.order_by(models.Auction.id.desc()).all()


def load_auction(db: Session, auction_id: int, viewer: Optional[models.User] = None) -> models.Auction:
    auction = db.get(models.Auction, int(auction_id))
    # VIP-only auctions do not exist for viewers who may not see them.
    if auction is None or (auction.vip_only and not can_view_vip(viewer)):
        raise NotFoundError(ErrorCode.auction_not_found)
    return auction


def list_bids(db: Session, auction_id: int) -> list[models.Bid]:
    return (
        db.query(models.Bid)
        .filter(models.Bid.auction_id == int(auction_id))
        .order_by(models.Bid.amount.desc(), models.Bid.id.asc())
        .all()
    )


def create_auction(
    db: Session,
    *,
    admin: models.User,
    masterpiece_id: int,
    start_price: float,
    end_time: Optional[datetime] = None,
    vip_only: bool = False,
    terms: Optional[str] = None,
) -> models.Auction:
    if float(start_price) <= 0:
        raise ValidationFailed(ErrorCode.invalid_amount, "start_price must be > 0")
    piece = load_masterpiece(db, masterpiece_id)
    transition_masterpiece(db, piece, MasterpieceEvent.auction_opened)

    auction = models.Auction(
        masterpiece_id=piece.id,
        start_price=float(start_price),
        current_bid=float(start_price),
        end_time=end_time,
        status=AS.active,
        vip_only=bool(vip_only),
        terms=terms or DEFAULT_AUCTION_TERMS,
    )
    db.add(auction)
    db.flush()

    record_provenance(
        db=db,
        masterpiece_id=piece.id,
        event_type=models.ProvenanceEventType.auction,
        description=f"Offered at auction from {format_eur(start_price)}",
        meta={"auction_id": auction.id, "vip_only": bool(vip_only)},
    )
    recompute_rarity(db, piece.id)
    audit_event(
        "CREATE_AUCTION",
        admin.id,
        {"masterpiece_id": piece.id, "start_price": float(start_price), "vip_only": bool(vip_only)},
        db=db,
        target_id=auction.id,
    )
    return auction


def place_bid(
    db: Session,
    *,
    auction_id: int,
    bidder: models.User,
    amount: float,
    now: Optional[datetime] = None,
) -> models.Bid:
    """Accept a bid only if it strictly exceeds the current bid.

    The comparison is repeated inside the UPDATE so two racing bids cannot both win.
    """

    now = now or utc_now()
    auction = load_auction(db, auction_id, bidder)
    if auction.status != AS.active or (
        auction.end_time is not None and as_utc(auction.end_time) <= now
    ):
        raise RejectedError(ErrorCode.auction_closed, "auction is closed")

    amount = float(amount)
    if amount <= float(auction.current_bid):
        raise RejectedError(
            ErrorCode.bid_too_low,
            f"bid must be higher than the current bid of {format_eur(auction.current_bid)}",
        )

    db.flush()
    rowcount = (
        db.query(models.Auction)
        .filter(
            models.Auction.id == auction.id,
            models.Auction.status == AS.active,
            models.Auction.current_bid < amount,
        )
        .update(
            {"current_bid": amount, "highest_bidder_id": bidder.id}, synchronize_session=False
        )
    )
    if not rowcount:
        raise RejectedError(ErrorCode.bid_too_low, "a higher bid was placed first")
    db.refresh(auction)

    bid = models.Bid(auction_id=auction.id, user_id=bidder.id, amount=amount)
    db.add(bid)
    db.flush()
    recompute_rarity(db, auction.masterpiece_id)

    queue_event(
        db,
        "NEW_BID",
        {
            "auctionId": auction.id,
            "masterpieceId": auction.masterpiece_id,
            "amount": amount,
            "userId": bidder.id,
        },
        masterpiece_id=auction.masterpiece_id,
    )
    logger.info(
        "bid_accepted", extra={"auction_id": auction.id, "user_id": bidder.id, "amount": amount}
    )
    return bid


def close_auction(
    db: Session,
    *,
    auction_id: int,
    admin: models.User,
    renderer: DocumentRenderer = default_renderer,
    now: Optional[datetime] = None,
) -> models.Auction:
    """End the auction; the winner continues through the normal deposit approval."""

    now = now or utc_now()
    auction = db.get(models.Auction, int(auction_id))
    if auction is None:
        raise NotFoundError(ErrorCode.auction_not_found)

    db.flush()
    result = atomic_transition_status(
        db=db,
        model=models.Auction,
        row_id=auction.id,
        to_status=AS.ended,
        allowed_from=[AS.active],
        updates={"closed_at": now},
    )
    if not result.updated:
        raise ConflictError(ErrorCode.auction_closed, "auction is already closed")
    db.refresh(auction)

    piece = load_masterpiece(db, auction.masterpiece_id)
    winner_id = auction.highest_bidder_id
    if winner_id is not None:
        winner = load_user(db, winner_id)
        transition_masterpiece(
            db,
            piece,
            MasterpieceEvent.auction_won,
            updates={"valuation": float(auction.current_bid)},
        )
        issue_contract(
            db,
            contract_type=models.ContractType.deposit,
            user=winner,
            masterpiece=piece,
            body=(
                f"{winner.name} won the auction for {piece.title} (serial {piece.serial_id}) "
                f"with a bid of {format_eur(auction.current_bid)}.\n\n"
                f"A deposit of {piece.deposit_pct:g}% secures the acquisition."
            ),
            renderer=renderer,
            now=now,
        )
        notify_user(
            db,
            winner.id,
            f"You won the auction for {piece.title}. Please sign the deposit agreement.",
            "success",
        )
    else:
        transition_masterpiece(db, piece, MasterpieceEvent.auction_unsold)

    audit_event(
        "CLOSE_AUCTION",
        admin.id,
        {"winner_id": winner_id, "final_bid": float(auction.current_bid)},
        db=db,
        target_id=auction.id,
    )
    queue_event(
        db,
        "AUCTION_CLOSED",
        {"auctionId": auction.id, "masterpieceId": piece.id, "winnerId": winner_id},
        masterpiece_id=piece.id,
    )
    return auction
