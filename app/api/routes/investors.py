from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app import models
from app.api.deps import require_roles
from app.core.permissions import is_admin
from app.database import get_db, unit_of_work
from app.schemas import (
    InvestorAnalytics,
    InvestorRequestCreate,
    InvestorRequestRead,
    InvestorViewCreate,
    InvestorViewRead,
)
from app.services.notifications import notify_admins

router = APIRouter(tags=["investors"])

_investor = require_roles(models.RoleName.investor)
_admin = require_roles(models.RoleName.admin)


@router.get("/investor/analytics", response_model=InvestorAnalytics)
def investor_analytics(
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(_investor),  # noqa: B008
):
    """Aggregate portfolio figures computed from stored rows only."""

    count, total_valuation, average_rarity = db.query(
        func.count(models.Masterpiece.id),
        func.coalesce(func.sum(models.Masterpiece.valuation), 0.0),
        func.coalesce(func.avg(models.Masterpiece.rarity_score), 0.0),
    ).one()

    def _pieces_in(state: models.MasterpieceStatus) -> int:
        return int(
            db.query(func.count(models.Masterpiece.id))
            .filter(models.Masterpiece.status == state)
            .scalar()
            or 0
        )

    active_auctions = (
        db.query(func.count(models.Auction.id))
        .filter(models.Auction.status == models.AuctionStatus.active)
        .scalar()
    )
    completed_resales = (
        db.query(func.count(models.ResaleNegotiation.id))
        .filter(models.ResaleNegotiation.status == models.NegotiationStatus.completed)
        .scalar()
    )
    revenue_total = db.query(func.coalesce(func.sum(models.RevenueEntry.amount), 0.0)).scalar()

    return InvestorAnalytics(
        masterpieces=int(count or 0),
        total_valuation=round(float(total_valuation or 0.0), 2),
        sold=_pieces_in(models.MasterpieceStatus.sold),
        available=_pieces_in(models.MasterpieceStatus.available),
        average_rarity=round(float(average_rarity or 0.0), 2),
        active_auctions=int(active_auctions or 0),
        completed_resales=int(completed_resales or 0),
        revenue_total=round(float(revenue_total or 0.0), 2),
    )


@router.post(
    "/investor/request", response_model=InvestorRequestRead, status_code=status.HTTP_201_CREATED
)
def create_investor_request(
    payload: InvestorRequestCreate,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(_investor),  # noqa: B008
):
    with unit_of_work(db):
        request = models.InvestorRequest(
            user_id=user.id, request_type=payload.request_type, details=payload.details
        )
        db.add(request)
        db.flush()
        notify_admins(db, f"Investor request from {user.name}: {payload.request_type}.", "info")
    return request


@router.get("/admin/investor-requests", response_model=List[InvestorRequestRead])
def list_investor_requests(
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(_admin),  # noqa: B008
):
    return db.query(models.InvestorRequest).order_by(models.InvestorRequest.id.desc()).all()


@router.post(
    "/investor/log-view", response_model=InvestorViewRead, status_code=status.HTTP_201_CREATED
)
def log_view(
    payload: InvestorViewCreate,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(_investor),  # noqa: B008
):
    with unit_of_work(db):
        entry = models.InvestorViewLog(user_id=user.id, resource=payload.resource)
        db.add(entry)
        db.flush()
    return entry


@router.get("/investor/view-logs", response_model=List[InvestorViewRead])
def list_view_logs(
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(_investor),  # noqa: B008
):
    # Investors see their own trail; admins see everyone's.
    q = db.query(models.InvestorViewLog)
    if not is_admin(user):
        q = q.filter(models.InvestorViewLog.user_id == user.id)
    return q.order_by(models.InvestorViewLog.id.desc()).all()
