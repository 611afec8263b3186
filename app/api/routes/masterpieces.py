from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app import models
from app.api.deps import require_roles
from app.database import get_db, unit_of_work
from app.schemas import (
    AssignRequest,
    MasterpieceCreate,
    MasterpieceRead,
    MasterpieceUpdate,
    OwnershipRead,
    ProvenanceRead,
    RarityRead,
    ServiceRecordCreate,
    ServiceRecordRead,
)
from app.services import masterpieces as masterpiece_service
from app.services.provenance import list_provenance
from app.services.rarity import rarity_breakdown

router = APIRouter(tags=["masterpieces"])

_admin = require_roles(models.RoleName.admin)


@router.get("/masterpieces", response_model=List[MasterpieceRead])
def list_masterpieces(
    status_filter: Optional[models.MasterpieceStatus] = None,
    db: Session = Depends(get_db),  # noqa: B008
):
    q = db.query(models.Masterpiece)
    if status_filter is not None:
        q = q.filter(models.Masterpiece.status == status_filter)
    return q.order_by(models.Masterpiece.id.asc()).all()


@router.get("/masterpieces/{masterpiece_id}", response_model=MasterpieceRead)
def get_masterpiece(masterpiece_id: int, db: Session = Depends(get_db)):  # noqa: B008
    return masterpiece_service.load_masterpiece(db, masterpiece_id)


@router.get("/masterpieces/{masterpiece_id}/rarity", response_model=RarityRead)
def get_rarity(masterpiece_id: int, db: Session = Depends(get_db)):  # noqa: B008
    piece = masterpiece_service.load_masterpiece(db, masterpiece_id)
    breakdown = rarity_breakdown(db, piece)
    return RarityRead(
        masterpiece_id=piece.id, rarity_score=piece.rarity_score, breakdown=breakdown.as_dict()
    )


@router.get("/masterpieces/{masterpiece_id}/ownership", response_model=List[OwnershipRead])
def get_ownership(masterpiece_id: int, db: Session = Depends(get_db)):  # noqa: B008
    piece = masterpiece_service.load_masterpiece(db, masterpiece_id)
    return (
        db.query(models.OwnershipRecord)
        .filter(models.OwnershipRecord.masterpiece_id == piece.id)
        .order_by(models.OwnershipRecord.id.asc())
        .all()
    )


@router.get("/provenance/{masterpiece_id}", response_model=List[ProvenanceRead])
def get_provenance(masterpiece_id: int, db: Session = Depends(get_db)):  # noqa: B008
    masterpiece_service.load_masterpiece(db, masterpiece_id)
    return list_provenance(db, masterpiece_id)


@router.post(
    "/admin/masterpieces", response_model=MasterpieceRead, status_code=status.HTTP_201_CREATED
)
def create_masterpiece(
    payload: MasterpieceCreate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        piece = masterpiece_service.create_masterpiece(db, admin=admin, data=payload.model_dump())
    return piece


@router.patch("/admin/masterpieces/{masterpiece_id}", response_model=MasterpieceRead)
def update_masterpiece(
    masterpiece_id: int,
    payload: MasterpieceUpdate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        piece = masterpiece_service.update_masterpiece(
            db,
            masterpiece_id=masterpiece_id,
            admin=admin,
            changes=payload.model_dump(exclude_unset=True),
        )
    return piece


@router.post("/admin/masterpieces/{masterpiece_id}/assign", response_model=MasterpieceRead)
def assign_masterpiece(
    masterpiece_id: int,
    payload: AssignRequest,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        piece = masterpiece_service.assign_masterpiece(
            db,
            masterpiece_id=masterpiece_id,
            user_id=payload.user_id,
            admin=admin,
            price=payload.price,
        )
    return piece


@router.post(
    "/admin/masterpieces/{masterpiece_id}/services",
    response_model=ServiceRecordRead,
    status_code=status.HTTP_201_CREATED,
)
def add_service_record(
    masterpiece_id: int,
    payload: ServiceRecordCreate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        record = masterpiece_service.add_service_record(
            db,
            masterpiece_id=masterpiece_id,
            admin=admin,
            service_type=payload.service_type,
            description=payload.description,
            cost=payload.cost,
        )
    return record


@router.get("/masterpieces/{masterpiece_id}/services", response_model=List[ServiceRecordRead])
def list_service_records(masterpiece_id: int, db: Session = Depends(get_db)):  # noqa: B008
    masterpiece_service.load_masterpiece(db, masterpiece_id)
    return (
        db.query(models.ServiceRecord)
        .filter(models.ServiceRecord.masterpiece_id == masterpiece_id)
        .order_by(models.ServiceRecord.id.asc())
        .all()
    )
