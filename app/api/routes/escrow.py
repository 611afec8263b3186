from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app import models
from app.api.deps import get_current_user, require_roles
from app.core.permissions import is_admin
from app.database import get_db, unit_of_work
from app.schemas import DisputeCreate, EscrowRead
from app.services import escrow as escrow_service

router = APIRouter(tags=["escrow"])


@router.get("/escrow/{masterpiece_id}", response_model=Optional[EscrowRead])
def get_escrow(
    masterpiece_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    escrow = escrow_service.latest_escrow(db, masterpiece_id)
    if escrow is None:
        return None
    if user.id not in (escrow.buyer_id, escrow.seller_id) and not is_admin(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")
    return escrow


@router.post("/escrow/{masterpiece_id}/dispute", response_model=EscrowRead)
def file_dispute(
    masterpiece_id: int,
    payload: DisputeCreate,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    with unit_of_work(db):
        escrow = escrow_service.file_dispute(
            db, masterpiece_id=masterpiece_id, buyer=user, reason=payload.reason
        )
    return escrow


@router.post("/admin/escrow/{escrow_id}/dismiss", response_model=EscrowRead)
def dismiss_dispute(
    escrow_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(require_roles(models.RoleName.admin)),  # noqa: B008
):
    with unit_of_work(db):
        escrow = escrow_service.dismiss_dispute(db, escrow_id=escrow_id, admin=admin)
    return escrow
