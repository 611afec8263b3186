from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app import models
from app.api.deps import get_current_user, require_roles
from app.database import get_db, unit_of_work
from app.schemas import (
    FractionalInitialize,
    RevenueCreate,
    RevenueRead,
    RevenueSummary,
    ShareRead,
    ShareTransferCreate,
    ShareTransferRead,
)
from app.services import fractional as fractional_service
from app.services.audit import audit_event
from app.services.masterpieces import load_masterpiece
from app.services.revenue import record_revenue, revenue_summary

router = APIRouter(tags=["fractional"])

_admin = require_roles(models.RoleName.admin)


@router.post(
    "/admin/fractional/initialize",
    response_model=List[ShareRead],
    status_code=status.HTTP_201_CREATED,
)
def initialize_shares(
    payload: FractionalInitialize,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        shares = fractional_service.initialize_shares(
            db,
            masterpiece_id=payload.masterpiece_id,
            allocations=[(s.user_id, s.percentage) for s in payload.shares],
            admin=admin,
        )
    return shares


@router.get("/fractional/shares/{masterpiece_id}", response_model=List[ShareRead])
def list_shares(masterpiece_id: int, db: Session = Depends(get_db)):  # noqa: B008
    load_masterpiece(db, masterpiece_id)
    return fractional_service.list_shares(db, masterpiece_id)


@router.post(
    "/fractional/transfer", response_model=ShareTransferRead, status_code=status.HTTP_201_CREATED
)
def transfer_share(
    payload: ShareTransferCreate,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    with unit_of_work(db):
        transfer = fractional_service.transfer_share(
            db,
            share_id=payload.share_id,
            owner=user,
            to_user_id=payload.to_user_id,
            percentage=payload.percentage,
            price=payload.price,
        )
    return transfer


@router.post("/admin/revenue", response_model=RevenueRead, status_code=status.HTTP_201_CREATED)
def add_revenue(
    payload: RevenueCreate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        if payload.masterpiece_id is not None:
            load_masterpiece(db, payload.masterpiece_id)
        entry = record_revenue(
            db,
            entry_type=payload.entry_type,
            amount=payload.amount,
            masterpiece_id=payload.masterpiece_id,
            description=payload.description,
        )
        audit_event(
            "ADD_REVENUE",
            admin.id,
            {"entry_type": entry.entry_type, "amount": entry.amount},
            db=db,
            target_id=entry.id,
        )
    return entry


@router.get("/admin/revenue", response_model=RevenueSummary)
def get_revenue(
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(_admin),  # noqa: B008
):
    return revenue_summary(db)
