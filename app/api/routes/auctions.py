from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app import models
from app.api.deps import (
    get_current_user,
    get_current_user_optional,
    get_document_renderer,
    require_roles,
)
from app.database import get_db, unit_of_work
from app.schemas import AuctionCreate, AuctionRead, BidCreate, BidRead
from app.services import auctions as auction_service
from app.services.documents import DocumentRenderer

router = APIRouter(tags=["auctions"])

_admin = require_roles(models.RoleName.admin)


@router.get("/auctions", response_model=List[AuctionRead])
def list_auctions(
    active_only: bool = False,
    db: Session = Depends(get_db),  # noqa: B008
    viewer: Optional[models.User] = Depends(get_current_user_optional),  # noqa: B008
):
    return auction_service.visible_auctions(db, viewer, active_only=active_only)


@router.get("/auctions/{auction_id}", response_model=AuctionRead)
def get_auction(
    auction_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    viewer: Optional[models.User] = Depends(get_current_user_optional),  # noqa: B008
):
    return auction_service.load_auction(db, auction_id, viewer)


@router.get("/auctions/{auction_id}/bids", response_model=List[BidRead])
def list_bids(
    auction_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    viewer: Optional[models.User] = Depends(get_current_user_optional),  # noqa: B008
):
    auction_service.load_auction(db, auction_id, viewer)
    return auction_service.list_bids(db, auction_id)


@router.post("/auctions/bid", response_model=BidRead, status_code=status.HTTP_201_CREATED)
def place_bid(
    payload: BidCreate,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    with unit_of_work(db):
        bid = auction_service.place_bid(
            db, auction_id=payload.auction_id, bidder=user, amount=payload.amount
        )
    return bid


@router.post("/admin/auctions", response_model=AuctionRead, status_code=status.HTTP_201_CREATED)
def create_auction(
    payload: AuctionCreate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        auction = auction_service.create_auction(
            db,
            admin=admin,
            masterpiece_id=payload.masterpiece_id,
            start_price=payload.start_price,
            end_time=payload.end_time,
            vip_only=payload.vip_only,
            terms=payload.terms,
        )
    return auction


@router.post("/admin/auctions/{auction_id}/close", response_model=AuctionRead)
def close_auction(
    auction_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
    renderer: DocumentRenderer = Depends(get_document_renderer),  # noqa: B008
):
    with unit_of_work(db):
        auction = auction_service.close_auction(
            db, auction_id=auction_id, admin=admin, renderer=renderer
        )
    return auction
