from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app import models
from app.api.deps import get_document_renderer, require_roles
from app.database import get_db, unit_of_work
from app.schemas import AdminStats, ClientCreate, ClientCreated, ReviewDecision, UserRead
from app.services import users as user_service
from app.services.documents import DocumentRenderer

router = APIRouter(prefix="/admin", tags=["users"])

_admin = require_roles(models.RoleName.admin)


@router.get("/users", response_model=List[UserRead])
def list_users(
    status_filter: Optional[models.ApprovalStatus] = None,
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(_admin),  # noqa: B008
):
    q = db.query(models.User)
    if status_filter is not None:
        q = q.filter(models.User.status == status_filter)
    return q.order_by(models.User.id.asc()).all()


@router.post("/clients", response_model=ClientCreated, status_code=status.HTTP_201_CREATED)
def add_client(
    payload: ClientCreate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        user, password = user_service.add_client(
            db,
            admin=admin,
            email=payload.email,
            name=payload.name,
            role=payload.role,
            is_vip=payload.is_vip,
        )
    return ClientCreated(user=UserRead.model_validate(user), one_time_password=password)


@router.post("/users/{user_id}/review", response_model=UserRead)
def review_user(
    user_id: int,
    payload: ReviewDecision,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
    renderer: DocumentRenderer = Depends(get_document_renderer),  # noqa: B008
):
    with unit_of_work(db):
        user = user_service.review_user(
            db, user_id=user_id, approve=payload.approve, admin=admin, renderer=renderer
        )
    return user


@router.get("/stats", response_model=AdminStats)
def admin_stats(
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(_admin),  # noqa: B008
):
    revenue = (
        db.query(func.coalesce(func.sum(models.Payment.amount), 0.0))
        .filter(models.Payment.status == models.PaymentStatus.paid)
        .scalar()
    )

    def _count(status_value: models.ApprovalStatus) -> int:
        return int(
            db.query(func.count(models.User.id)).filter(models.User.status == status_value).scalar()
            or 0
        )

    return AdminStats(
        revenue=round(float(revenue or 0.0), 2),
        approved_users=_count(models.ApprovalStatus.approved),
        pending_users=_count(models.ApprovalStatus.pending),
    )
