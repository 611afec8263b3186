from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app import models
from app.api.deps import get_current_user, require_roles, require_self_or_admin
from app.database import get_db, unit_of_work
from app.schemas import (
    ApplicationCreate,
    ApplicationRead,
    ApplicationReview,
    CollectorProfileRead,
    CollectorProfileUpdate,
    ConciergeMessageCreate,
    ConciergeMessageRead,
    ConciergeRequestCreate,
    ConciergeRequestRead,
    ConciergeUpdate,
    CrmInteractionCreate,
    CrmInteractionRead,
    ReservationCreate,
    ReservationRead,
    WaitlistJoin,
    WaitlistRead,
)
from app.services import clienteling as clienteling_service
from app.services.audit import audit_event
from app.services.masterpieces import load_masterpiece, load_user
from app.services.notifications import notify_admins

router = APIRouter(tags=["clienteling"])

_admin = require_roles(models.RoleName.admin)


@router.post("/waitlist/join", response_model=WaitlistRead, status_code=status.HTTP_201_CREATED)
def join_waitlist(
    payload: WaitlistJoin,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    with unit_of_work(db):
        if payload.masterpiece_id is not None:
            load_masterpiece(db, payload.masterpiece_id)
        entry = models.WaitlistEntry(
            user_id=user.id,
            masterpiece_id=payload.masterpiece_id,
            category=payload.category,
            notes=payload.notes,
        )
        db.add(entry)
        db.flush()
        notify_admins(db, f"{user.name} joined the waitlist.", "info")
    return entry


@router.get("/admin/waitlist", response_model=List[WaitlistRead])
def list_waitlist(
    masterpiece_id: Optional[int] = None,
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(_admin),  # noqa: B008
):
    q = db.query(models.WaitlistEntry)
    if masterpiece_id is not None:
        q = q.filter(models.WaitlistEntry.masterpiece_id == masterpiece_id)
    return q.order_by(models.WaitlistEntry.id.asc()).all()


@router.post("/admin/reserve", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
def reserve_masterpiece(
    payload: ReservationCreate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        reservation = clienteling_service.reserve_masterpiece(
            db,
            masterpiece_id=payload.masterpiece_id,
            user_id=payload.user_id,
            hours=payload.hours,
            vip=payload.vip,
            admin=admin,
        )
    return reservation


@router.get("/collector/{user_id}", response_model=Optional[CollectorProfileRead])
def get_collector_profile(
    user_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(require_self_or_admin),  # noqa: B008
):
    return (
        db.query(models.CollectorProfile).filter(models.CollectorProfile.user_id == user_id).first()
    )


@router.post("/collector/update", response_model=CollectorProfileRead)
def update_collector_profile(
    payload: CollectorProfileUpdate,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    with unit_of_work(db):
        profile = (
            db.query(models.CollectorProfile)
            .filter(models.CollectorProfile.user_id == user.id)
            .first()
        )
        if profile is None:
            profile = models.CollectorProfile(user_id=user.id)
            db.add(profile)
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(profile, key, value)
        db.flush()
    return profile


@router.post(
    "/concierge/request", response_model=ConciergeRequestRead, status_code=status.HTTP_201_CREATED
)
def open_concierge_request(
    payload: ConciergeRequestCreate,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    with unit_of_work(db):
        request = clienteling_service.open_concierge_request(
            db,
            user=user,
            request_type=payload.request_type,
            details=payload.details,
            masterpiece_id=payload.masterpiece_id,
        )
    return request


@router.post(
    "/concierge/message", response_model=ConciergeMessageRead, status_code=status.HTTP_201_CREATED
)
def post_concierge_message(
    payload: ConciergeMessageCreate,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    with unit_of_work(db):
        message = clienteling_service.post_concierge_message(
            db, request_id=payload.request_id, sender=user, message=payload.message
        )
    return message


@router.get("/concierge/request/{request_id}", response_model=ConciergeRequestRead)
def get_concierge_request(
    request_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    return clienteling_service.load_concierge_request(db, request_id, user)


@router.post("/admin/concierge/update", response_model=ConciergeRequestRead)
def update_concierge_request(
    payload: ConciergeUpdate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        request = clienteling_service.update_concierge_request(
            db,
            request_id=payload.request_id,
            status=payload.status,
            admin=admin,
            admin_notes=payload.admin_notes,
        )
    return request


@router.post(
    "/applications/apply", response_model=ApplicationRead, status_code=status.HTTP_201_CREATED
)
def apply_for_role(
    payload: ApplicationCreate,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    with unit_of_work(db):
        application = clienteling_service.apply_for_role(
            db, user=user, application_type=payload.application_type, motivation=payload.motivation
        )
    return application


@router.get("/admin/applications", response_model=List[ApplicationRead])
def list_applications(
    status_filter: Optional[models.ApprovalStatus] = None,
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(_admin),  # noqa: B008
):
    q = db.query(models.UserApplication)
    if status_filter is not None:
        q = q.filter(models.UserApplication.status == status_filter)
    return q.order_by(models.UserApplication.id.desc()).all()


@router.post("/admin/applications/review", response_model=ApplicationRead)
def review_application(
    payload: ApplicationReview,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        application = clienteling_service.review_application(
            db, application_id=payload.application_id, approve=payload.approve, admin=admin
        )
    return application


@router.get("/admin/crm/{user_id}", response_model=List[CrmInteractionRead])
def list_crm_interactions(
    user_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(_admin),  # noqa: B008
):
    return (
        db.query(models.CrmInteraction)
        .filter(models.CrmInteraction.user_id == user_id)
        .order_by(models.CrmInteraction.id.desc())
        .all()
    )


@router.post("/admin/crm", response_model=CrmInteractionRead, status_code=status.HTTP_201_CREATED)
def add_crm_interaction(
    payload: CrmInteractionCreate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        load_user(db, payload.user_id)
        interaction = models.CrmInteraction(
            user_id=payload.user_id,
            admin_id=admin.id,
            interaction_type=payload.interaction_type,
            notes=payload.notes,
        )
        db.add(interaction)
        db.flush()
        audit_event(
            "ADD_CRM_INTERACTION",
            admin.id,
            {"interaction_type": payload.interaction_type},
            db=db,
            target_id=payload.user_id,
        )
    return interaction
