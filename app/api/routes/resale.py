from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app import models
from app.api.deps import get_current_user, get_document_renderer, require_roles
from app.database import get_db, unit_of_work
from app.schemas import (
    EscrowRead,
    MasterpieceRead,
    NegotiationAction,
    NegotiationCreate,
    NegotiationMessageCreate,
    NegotiationMessageRead,
    NegotiationRead,
    ResaleListing,
    ResaleReview,
)
from app.services import resale as resale_service
from app.services.documents import DocumentRenderer

router = APIRouter(tags=["resale"])

_admin = require_roles(models.RoleName.admin)


@router.post("/resale/list", response_model=MasterpieceRead)
def list_for_resale(
    payload: ResaleListing,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    with unit_of_work(db):
        piece = resale_service.list_for_resale(
            db,
            masterpiece_id=payload.masterpiece_id,
            owner=user,
            price=payload.price,
            private=payload.private,
        )
    return piece


@router.post("/admin/resale/review", response_model=MasterpieceRead)
def review_resale(
    payload: ResaleReview,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        piece = resale_service.review_resale(
            db, masterpiece_id=payload.masterpiece_id, approve=payload.approve, admin=admin
        )
    return piece


@router.post(
    "/resale/negotiate", response_model=NegotiationRead, status_code=status.HTTP_201_CREATED
)
def open_negotiation(
    payload: NegotiationCreate,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    with unit_of_work(db):
        negotiation = resale_service.open_negotiation(
            db,
            masterpiece_id=payload.masterpiece_id,
            buyer=user,
            offered_price=payload.offered_price,
        )
    return negotiation


@router.post(
    "/resale/message", response_model=NegotiationMessageRead, status_code=status.HTTP_201_CREATED
)
def post_message(
    payload: NegotiationMessageCreate,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    with unit_of_work(db):
        message = resale_service.post_message(
            db, negotiation_id=payload.negotiation_id, sender=user, message=payload.message
        )
    return message


@router.get("/resale/negotiation/{negotiation_id}", response_model=NegotiationRead)
def get_negotiation(
    negotiation_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    return resale_service.view_negotiation(db, negotiation_id=negotiation_id, viewer=user)


@router.post("/resale/accept", response_model=EscrowRead)
def accept_offer(
    payload: NegotiationAction,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    """Seller accepts; the agreed price moves into escrow."""

    with unit_of_work(db):
        escrow = resale_service.accept_offer(db, negotiation_id=payload.negotiation_id, seller=user)
    return escrow


@router.post("/admin/resale/complete", response_model=NegotiationRead)
def complete_resale(
    payload: NegotiationAction,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
    renderer: DocumentRenderer = Depends(get_document_renderer),  # noqa: B008
):
    with unit_of_work(db):
        negotiation = resale_service.complete_resale(
            db, negotiation_id=payload.negotiation_id, admin=admin, renderer=renderer
        )
    return negotiation
