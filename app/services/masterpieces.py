from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import models
from app.core.clock import utc_now
from app.services.audit import audit_event
from app.services.contracts import issue_certificate
from app.services.documents import DocumentRenderer, default_renderer
from app.services.errors import ConflictError, ErrorCode, NotFoundError, ValidationFailed
from app.services.notifications import notify_user
from app.services.provenance import record_provenance
from app.services.rarity import recompute_rarity
from app.services.realtime import queue_event
from app.services.transitions import MasterpieceEvent, transition_masterpiece

logger = logging.getLogger("vault")

SERVICE_VALUATION_FACTOR = 0.5
EDITABLE_FIELDS = (
    "title",
    "description",
    "category",
    "materials",
    "gemstones",
    "image_url",
    "rarity_category",
    "valuation",
    "deposit_pct",
)


def load_masterpiece(db: Session, masterpiece_id: int) -> models.Masterpiece:
    piece = db.get(models.Masterpiece, int(masterpiece_id))
    if piece is None:
        raise NotFoundError(ErrorCode.masterpiece_not_found)
    return piece


def load_user(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, int(user_id))
    if user is None:
        raise NotFoundError(ErrorCode.user_not_found)
    return user


def new_blockchain_hash() -> str:
    return "0x" + secrets.token_hex(32)


def create_masterpiece(db: Session, *, admin: models.User, data: dict[str, Any]) -> models.Masterpiece:
    serial_id = str(data.get("serial_id") or "").strip()
    if not serial_id:
        raise ValidationFailed(ErrorCode.invalid_field, "serial_id is required")
    if db.query(models.Masterpiece.id).filter(models.Masterpiece.serial_id == serial_id).first():
        raise ConflictError(ErrorCode.duplicate_serial, f"serial {serial_id} already exists")

    fields = {k: data[k] for k in EDITABLE_FIELDS if data.get(k) is not None}
    try:
        piece = models.Masterpiece(
            serial_id=serial_id,
            status=models.MasterpieceStatus.available,
            blockchain_hash=new_blockchain_hash(),
            **fields,
        )
    except ValueError as exc:
        raise ValidationFailed(ErrorCode.invalid_field, str(exc)) from exc
    db.add(piece)
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConflictError(ErrorCode.duplicate_serial, f"serial {serial_id} already exists") from exc

    record_provenance(
        db=db,
        masterpiece_id=piece.id,
        event_type=models.ProvenanceEventType.creation,
        description=f"{piece.title} registered in the vault",
        meta={"serial_id": serial_id},
    )
    recompute_rarity(db, piece.id)
    audit_event(
        "CREATE_MASTERPIECE",
        admin.id,
        {"serial_id": serial_id, "valuation": piece.valuation},
        db=db,
        target_id=piece.id,
    )
    logger.info("masterpiece_created", extra={"masterpiece_id": piece.id, "serial_id": serial_id})
    return piece


def update_masterpiece(
    db: Session, *, masterpiece_id: int, admin: models.User, changes: dict[str, Any]
) -> models.Masterpiece:
    piece = load_masterpiece(db, masterpiece_id)
    applied: dict[str, Any] = {}
    for key in EDITABLE_FIELDS:
        if key in changes and changes[key] is not None:
            try:
                setattr(piece, key, changes[key])
            except ValueError as exc:
                raise ValidationFailed(ErrorCode.invalid_field, str(exc)) from exc
            applied[key] = changes[key]
    db.flush()
    recompute_rarity(db, piece.id)
    audit_event("UPDATE_MASTERPIECE", admin.id, applied, db=db, target_id=piece.id)
    return piece


def transfer_ownership(
    db: Session,
    *,
    piece: models.Masterpiece,
    owner_id: int,
    price: float | None,
    source: str,
    now: datetime | None = None,
) -> models.OwnershipRecord:
    """Append the ownership row and the matching provenance entry.

    The masterpiece's `current_owner_id` is set by the status transition that accompanies it.
    """

    record = models.OwnershipRecord(
        masterpiece_id=piece.id,
        owner_id=int(owner_id),
        price=price,
        source=source,
        acquired_at=now or utc_now(),
    )
    db.add(record)
    db.flush()
    record_provenance(
        db=db,
        masterpiece_id=piece.id,
        event_type=models.ProvenanceEventType.ownership_transfer,
        description=f"Ownership transferred ({source})",
        meta={"owner_id": int(owner_id), "price": price},
    )
    return record


def assign_masterpiece(
    db: Session,
    *,
    masterpiece_id: int,
    user_id: int,
    admin: models.User,
    price: float | None = None,
) -> models.Masterpiece:
    piece = load_masterpiece(db, masterpiece_id)
    user = load_user(db, user_id)

    transition_masterpiece(
        db, piece, MasterpieceEvent.assigned, updates={"current_owner_id": user.id}
    )
    transfer_ownership(
        db,
        piece=piece,
        owner_id=user.id,
        price=price if price is not None else piece.valuation,
        source="assignment",
    )
    recompute_rarity(db, piece.id)
    notify_user(db, user.id, f"{piece.title} has been assigned to your collection.", "success")
    audit_event(
        "ASSIGN_MASTERPIECE", admin.id, {"user_id": user.id}, db=db, target_id=piece.id
    )
    queue_event(
        db,
        "MASTERPIECE_ASSIGNED",
        {"masterpieceId": piece.id, "userId": user.id},
        user_id=user.id,
        masterpiece_id=piece.id,
    )
    return piece


def add_service_record(
    db: Session,
    *,
    masterpiece_id: int,
    admin: models.User,
    service_type: str,
    description: str | None,
    cost: float,
) -> models.ServiceRecord:
    """Log atelier service work; half of its cost is added to the valuation."""

    if float(cost) < 0:
        raise ValidationFailed(ErrorCode.invalid_amount, "cost must be >= 0")
    piece = load_masterpiece(db, masterpiece_id)

    record = models.ServiceRecord(
        masterpiece_id=piece.id,
        service_type=service_type,
        description=description,
        cost=float(cost),
        recorded_by=admin.id,
    )
    db.add(record)
    piece.valuation = float(piece.valuation) + float(cost) * SERVICE_VALUATION_FACTOR
    db.flush()

    record_provenance(
        db=db,
        masterpiece_id=piece.id,
        event_type=models.ProvenanceEventType.service,
        description=f"Service: {service_type}",
        meta={"cost": float(cost)},
    )
    recompute_rarity(db, piece.id)
    audit_event(
        "ADD_SERVICE",
        admin.id,
        {"service_type": service_type, "cost": float(cost), "valuation": piece.valuation},
        db=db,
        target_id=piece.id,
    )
    return record


def generate_certificate(
    db: Session,
    *,
    masterpiece_id: int,
    admin: models.User,
    renderer: DocumentRenderer = default_renderer,
) -> models.Certificate:
    piece = load_masterpiece(db, masterpiece_id)
    if piece.current_owner_id is None:
        raise NotFoundError(ErrorCode.owner_not_found, "masterpiece has no owner to certify")
    owner = load_user(db, piece.current_owner_id)

    _, certificate = issue_certificate(db, masterpiece=piece, owner=owner, renderer=renderer)
    record_provenance(
        db=db,
        masterpiece_id=piece.id,
        event_type=models.ProvenanceEventType.certificate,
        description=f"Certificate {certificate.cert_id} issued",
        meta={"cert_id": certificate.cert_id},
    )
    recompute_rarity(db, piece.id)
    audit_event(
        "GENERATE_CERTIFICATE",
        admin.id,
        {"cert_id": certificate.cert_id, "owner_id": owner.id},
        db=db,
        target_id=piece.id,
    )
    queue_event(
        db,
        "CERTIFICATE_GENERATED",
        {"masterpieceId": piece.id, "certId": certificate.cert_id, "userId": owner.id},
        user_id=owner.id,
        masterpiece_id=piece.id,
    )
    return certificate
