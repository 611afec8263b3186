from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from app import models
from app.core.clock import utc_now
from app.services.audit import audit_event
from app.services.errors import ErrorCode, ValidationFailed
from app.services.masterpieces import load_masterpiece
from app.services.realtime import queue_event

PRODUCTION_STATUSES = ("pending", "in_progress", "completed")


def production_progress(db: Session, masterpiece_id: int) -> list[dict[str, Any]]:
    """All ten production steps in order, filling unrecorded ones as pending."""

    rows = {
        row.step_index: row
        for row in db.query(models.ProductionStep)
        .filter(models.ProductionStep.masterpiece_id == int(masterpiece_id))
        .all()
    }
    out: list[dict[str, Any]] = []
    for index, name in enumerate(models.PRODUCTION_STEP_NAMES):
        row = rows.get(index)
        out.append(
            {
                "step_index": index,
                "step_name": name,
                "status": row.status if row else "pending",
                "notes": row.notes if row else None,
                "updated_at": row.updated_at if row else None,
            }
        )
    return out


def update_production_step(
    db: Session,
    *,
    masterpiece_id: int,
    step_index: int,
    status: str,
    notes: Optional[str],
    admin: models.User,
) -> models.ProductionStep:
    if not 0 <= int(step_index) < len(models.PRODUCTION_STEP_NAMES):
        raise ValidationFailed(ErrorCode.invalid_step, f"step_index must be 0-{len(models.PRODUCTION_STEP_NAMES) - 1}")
    if status not in PRODUCTION_STATUSES:
        raise ValidationFailed(ErrorCode.invalid_field, f"status must be one of {', '.join(PRODUCTION_STATUSES)}")
    piece = load_masterpiece(db, masterpiece_id)

    row = (
        db.query(models.ProductionStep)
        .filter(
            models.ProductionStep.masterpiece_id == piece.id,
            models.ProductionStep.step_index == int(step_index),
        )
        .first()
    )
    if row is None:
        row = models.ProductionStep(
            masterpiece_id=piece.id,
            step_index=int(step_index),
            step_name=models.PRODUCTION_STEP_NAMES[int(step_index)],
        )
        db.add(row)
    row.status = status
    row.notes = notes
    db.flush()

    audit_event(
        "UPDATE_PRODUCTION",
        admin.id,
        {"step_index": int(step_index), "status": status},
        db=db,
        target_id=piece.id,
    )
    queue_event(
        db,
        "PRODUCTION_UPDATED",
        {"masterpieceId": piece.id, "stepIndex": int(step_index), "status": status},
        user_id=piece.current_owner_id,
        masterpiece_id=piece.id,
    )
    return row


def _upsert_by_masterpiece(db: Session, model, masterpiece_id: int):
    row = db.query(model).filter(model.masterpiece_id == int(masterpiece_id)).first()
    if row is None:
        row = model(masterpiece_id=int(masterpiece_id))
        db.add(row)
    return row


def update_delivery(
    db: Session, *, masterpiece_id: int, fields: dict[str, Any], admin: models.User
) -> models.DeliveryDetail:
    piece = load_masterpiece(db, masterpiece_id)
    row = _upsert_by_masterpiece(db, models.DeliveryDetail, piece.id)
    for key in ("address", "scheduled_date", "courier", "tracking_number", "status", "notes"):
        if fields.get(key) is not None:
            setattr(row, key, fields[key])
    db.flush()

    audit_event("UPDATE_DELIVERY", admin.id, fields, db=db, target_id=piece.id)
    queue_event(
        db,
        "DELIVERY_UPDATED",
        {"masterpieceId": piece.id, "status": row.status},
        user_id=piece.current_owner_id,
        masterpiece_id=piece.id,
    )
    return row


def update_shipping(
    db: Session,
    *,
    masterpiece_id: int,
    fields: dict[str, Any],
    admin: models.User,
    location: Optional[str] = None,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.ShippingOrder:
    """Upsert the shipping order and append a custody entry for this update."""

    now = now or utc_now()
    piece = load_masterpiece(db, masterpiece_id)
    row = _upsert_by_masterpiece(db, models.ShippingOrder, piece.id)
    for key in ("carrier", "tracking_number", "status", "insured_value"):
        if fields.get(key) is not None:
            setattr(row, key, fields[key])
    if row.status is None:
        row.status = "preparing"

    log = list(row.custody_log or [])
    log.append({"at": now.isoformat(), "status": row.status, "location": location, "note": note})
    row.custody_log = log
    db.flush()

    audit_event("UPDATE_SHIPPING", admin.id, {**fields, "location": location}, db=db, target_id=piece.id)
    return row


def add_insurance_policy(
    db: Session, *, masterpiece_id: int, fields: dict[str, Any], admin: models.User
) -> models.InsurancePolicy:
    piece = load_masterpiece(db, masterpiece_id)
    if float(fields.get("coverage_amount") or 0) <= 0:
        raise ValidationFailed(ErrorCode.invalid_amount, "coverage_amount must be > 0")
    policy = models.InsurancePolicy(masterpiece_id=piece.id, **fields)
    db.add(policy)
    db.flush()
    audit_event(
        "ADD_INSURANCE",
        admin.id,
        {"provider": policy.provider, "policy_number": policy.policy_number},
        db=db,
        target_id=piece.id,
    )
    return policy


def add_moment(
    db: Session,
    *,
    masterpiece_id: int,
    title: str,
    description: Optional[str],
    media_url: Optional[str],
    admin: models.User,
) -> models.AtelierMoment:
    piece = load_masterpiece(db, masterpiece_id)
    moment = models.AtelierMoment(
        masterpiece_id=piece.id, title=title, description=description, media_url=media_url
    )
    db.add(moment)
    db.flush()
    audit_event("ADD_MOMENT", admin.id, {"title": title}, db=db, target_id=piece.id)
    queue_event(
        db,
        "NEW_MOMENT",
        {"masterpieceId": piece.id, "momentId": moment.id, "title": title},
        user_id=piece.current_owner_id,
        masterpiece_id=piece.id,
    )
    return moment
