from __future__ import annotations

import logging
import secrets
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import models
from app.services.auth import hash_password, verify_password
from app.services.audit import audit_event
from app.services.contracts import issue_contract
from app.services.documents import DocumentRenderer, default_renderer
from app.services.errors import ConflictError, ErrorCode, NotFoundError
from app.services.notifications import notify_admins, notify_user

logger = logging.getLogger("vault")

VIP_AGREEMENT_BODY = (
    "This agreement admits the client to the atelier's private client programme, "
    "granting access to VIP-only auctions, private events and priority reservations.\n\n"
    "Membership is personal and may be revoked by the atelier."
)


def normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


def _ensure_unique_email(db: Session, email: str) -> None:
    if db.query(models.User.id).filter(models.User.email == email).first():
        raise ConflictError(ErrorCode.duplicate_email, "email already registered")


def _add_user(db: Session, user: models.User) -> models.User:
    db.add(user)
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConflictError(ErrorCode.duplicate_email, "email already registered") from exc
    return user


def authenticate(db: Session, email: str, password: str) -> Optional[models.User]:
    user = db.query(models.User).filter(models.User.email == normalize_email(email)).first()
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user


def register_user(
    db: Session,
    *,
    email: str,
    name: str,
    password: str,
    wants_vip: bool = False,
    account_type: str = "individual",
    language: str = "en",
) -> models.User:
    """Public sign-up: a pending client awaiting admin review."""

    email = normalize_email(email)
    _ensure_unique_email(db, email)
    user = _add_user(
        db,
        models.User(
            email=email,
            name=name,
            hashed_password=hash_password(password),
            role=models.RoleName.client,
            status=models.ApprovalStatus.pending,
            is_vip=bool(wants_vip),
            account_type=account_type,
            language=language,
        ),
    )
    notify_admins(db, f"New registration awaiting review: {name} ({email}).", "info")
    audit_event("REGISTER", user.id, {"email": email, "wants_vip": bool(wants_vip)}, db=db, target_id=user.id)
    return user


def add_client(
    db: Session,
    *,
    admin: models.User,
    email: str,
    name: str,
    role: models.RoleName = models.RoleName.client,
    is_vip: bool = False,
) -> tuple[models.User, str]:
    """Admin-created account, approved immediately. Returns the user and a one-time password."""

    email = normalize_email(email)
    _ensure_unique_email(db, email)
    password = secrets.token_urlsafe(9)
    user = _add_user(
        db,
        models.User(
            email=email,
            name=name,
            hashed_password=hash_password(password),
            role=role,
            status=models.ApprovalStatus.approved,
            is_vip=bool(is_vip) or role == models.RoleName.vip,
        ),
    )
    notify_user(db, user.id, f"Welcome to the atelier vault, {name}.", "success")
    audit_event("ADD_CLIENT", admin.id, {"email": email, "role": role.value}, db=db, target_id=user.id)
    return user, password


def review_user(
    db: Session,
    *,
    user_id: int,
    approve: bool,
    admin: models.User,
    renderer: DocumentRenderer = default_renderer,
) -> models.User:
    """Approve or reject a registration. Approved VIP applicants get a VIP agreement draft."""

    user = db.get(models.User, int(user_id))
    if user is None:
        raise NotFoundError(ErrorCode.user_not_found)

    user.status = models.ApprovalStatus.approved if approve else models.ApprovalStatus.rejected
    db.flush()

    vip_ref = None
    if approve and user.is_vip:
        contract = issue_contract(
            db,
            contract_type=models.ContractType.vip,
            user=user,
            masterpiece=None,
            body=VIP_AGREEMENT_BODY,
            renderer=renderer,
        )
        vip_ref = contract.doc_ref

    if approve:
        message = "Your account has been approved."
        if vip_ref:
            message += f" Please sign your private client agreement {vip_ref}."
        notify_user(db, user.id, message, "success")
    else:
        notify_user(db, user.id, "Your registration was not approved.", "warning")

    audit_event(
        "APPROVE_USER" if approve else "REJECT_USER",
        admin.id,
        {"email": user.email, "vip_contract": vip_ref},
        db=db,
        target_id=user.id,
    )
    return user
