from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app import models
from app.api.deps import require_roles
from app.database import get_db, unit_of_work
from app.schemas import (
    DeliveryRead,
    DeliveryUpdate,
    InsuranceCreate,
    InsuranceRead,
    MomentCreate,
    MomentRead,
    ProductionStepRead,
    ProductionUpdate,
    ShippingRead,
    ShippingUpdate,
)
from app.services import atelier as atelier_service
from app.services.masterpieces import load_masterpiece

router = APIRouter(tags=["atelier"])

_admin = require_roles(models.RoleName.admin)


def _one_for(db: Session, model, masterpiece_id: int, label: str):
    load_masterpiece(db, masterpiece_id)
    row = db.query(model).filter(model.masterpiece_id == masterpiece_id).first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return row


@router.get("/production/{masterpiece_id}", response_model=List[ProductionStepRead])
def get_production(masterpiece_id: int, db: Session = Depends(get_db)):  # noqa: B008
    load_masterpiece(db, masterpiece_id)
    return atelier_service.production_progress(db, masterpiece_id)


@router.post("/admin/production/update", response_model=List[ProductionStepRead])
def update_production(
    payload: ProductionUpdate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        atelier_service.update_production_step(
            db,
            masterpiece_id=payload.masterpiece_id,
            step_index=payload.step_index,
            status=payload.status,
            notes=payload.notes,
            admin=admin,
        )
    return atelier_service.production_progress(db, payload.masterpiece_id)


@router.get("/delivery/{masterpiece_id}", response_model=DeliveryRead)
def get_delivery(masterpiece_id: int, db: Session = Depends(get_db)):  # noqa: B008
    return _one_for(db, models.DeliveryDetail, masterpiece_id, "Delivery details")


@router.post("/admin/delivery/update", response_model=DeliveryRead)
def update_delivery(
    payload: DeliveryUpdate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        row = atelier_service.update_delivery(
            db,
            masterpiece_id=payload.masterpiece_id,
            fields=payload.model_dump(exclude={"masterpiece_id"}, exclude_unset=True),
            admin=admin,
        )
    return row


@router.get("/shipping/{masterpiece_id}", response_model=ShippingRead)
def get_shipping(masterpiece_id: int, db: Session = Depends(get_db)):  # noqa: B008
    return _one_for(db, models.ShippingOrder, masterpiece_id, "Shipping order")


@router.post("/admin/shipping/update", response_model=ShippingRead)
def update_shipping(
    payload: ShippingUpdate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        row = atelier_service.update_shipping(
            db,
            masterpiece_id=payload.masterpiece_id,
            fields=payload.model_dump(
                exclude={"masterpiece_id", "location", "note"}, exclude_unset=True
            ),
            admin=admin,
            location=payload.location,
            note=payload.note,
        )
    return row


@router.get("/insurance/{masterpiece_id}", response_model=List[InsuranceRead])
def list_insurance(masterpiece_id: int, db: Session = Depends(get_db)):  # noqa: B008
    load_masterpiece(db, masterpiece_id)
    return (
        db.query(models.InsurancePolicy)
        .filter(models.InsurancePolicy.masterpiece_id == masterpiece_id)
        .order_by(models.InsurancePolicy.id.desc())
        .all()
    )


@router.post("/admin/insurance", response_model=InsuranceRead, status_code=status.HTTP_201_CREATED)
def add_insurance(
    payload: InsuranceCreate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        policy = atelier_service.add_insurance_policy(
            db,
            masterpiece_id=payload.masterpiece_id,
            fields=payload.model_dump(exclude={"masterpiece_id"}),
            admin=admin,
        )
    return policy


@router.get("/moments/{masterpiece_id}", response_model=List[MomentRead])
def list_moments(masterpiece_id: int, db: Session = Depends(get_db)):  # noqa: B008
    load_masterpiece(db, masterpiece_id)
    return (
        db.query(models.AtelierMoment)
        .filter(models.AtelierMoment.masterpiece_id == masterpiece_id)
        .order_by(models.AtelierMoment.id.desc())
        .all()
    )


@router.post("/admin/moments", response_model=MomentRead, status_code=status.HTTP_201_CREATED)
def add_moment(
    payload: MomentCreate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        moment = atelier_service.add_moment(
            db,
            masterpiece_id=payload.masterpiece_id,
            title=payload.title,
            description=payload.description,
            media_url=payload.media_url,
            admin=admin,
        )
    return moment
