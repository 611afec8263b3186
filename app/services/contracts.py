from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from app import models
from app.core.clock import utc_now
from app.core.permissions import is_admin
from app.services.audit import audit_event
from app.services.document_numbering import next_document_ref
from app.services.documents import DocumentOptions, DocumentRenderer, default_renderer
from app.services.errors import ConflictError, ErrorCode, ForbiddenError, NotFoundError
from app.services.realtime import queue_event
from app.services.transitions import atomic_transition_status

logger = logging.getLogger("vault")

DIGITAL_SIGNATURE = "DIGITAL_SIG_ATELIER"


def issue_contract(
    db: Session,
    *,
    contract_type: models.ContractType,
    user: models.User,
    masterpiece: models.Masterpiece | None,
    body: str,
    renderer: DocumentRenderer = default_renderer,
    signed: bool = False,
    balance_due: float | None = None,
    escrow_enabled: bool = False,
    title: str | None = None,
    version: int = 1,
    parent_id: int | None = None,
    now: datetime | None = None,
) -> models.Contract:
    """Allocate a reference, render the document and store the contract row.

    Only flushes; the caller's unit of work decides whether it sticks.
    """

    now = now or utc_now()
    ref = next_document_ref(db, doc_type=contract_type, now=now)
    rendered = renderer.render(
        contract_type.value,
        body,
        user,
        masterpiece,
        DocumentOptions(
            doc_ref=ref.formatted,
            issued_on=now.date(),
            version=version,
            title=title,
            balance_due=balance_due,
            escrow_enabled=escrow_enabled,
        ),
    )

    meta: dict[str, Any] = {"body": body, "escrow_enabled": bool(escrow_enabled)}
    if balance_due is not None:
        meta["balance_due"] = float(balance_due)

    contract = models.Contract(
        user_id=user.id,
        masterpiece_id=masterpiece.id if masterpiece is not None else None,
        contract_type=contract_type,
        doc_ref=ref.formatted,
        title=rendered.title,
        content=rendered.html,
        status=models.ContractStatus.signed if signed else models.ContractStatus.draft,
        version=int(version),
        parent_id=parent_id,
        meta=meta,
        signature_method="system" if signed else None,
        signed_at=now if signed else None,
    )
    db.add(contract)
    db.flush()
    logger.info(
        "contract_issued",
        extra={
            "contract_id": contract.id,
            "doc_ref": contract.doc_ref,
            "contract_type": contract_type.value,
            "user_id": user.id,
        },
    )
    return contract


def latest_contract(
    db: Session,
    *,
    masterpiece_id: int,
    contract_type: models.ContractType,
    include_archived: bool = False,
) -> models.Contract | None:
    q = db.query(models.Contract).filter(
        models.Contract.masterpiece_id == int(masterpiece_id),
        models.Contract.contract_type == contract_type,
    )
    if not include_archived:
        q = q.filter(models.Contract.status != models.ContractStatus.archived)
    return q.order_by(models.Contract.id.desc()).first()


def get_contract(db: Session, contract_id: int) -> models.Contract:
    contract = db.get(models.Contract, int(contract_id))
    if contract is None:
        raise NotFoundError(ErrorCode.contract_not_found)
    return contract


def sign_contract(
    db: Session,
    *,
    contract_id: int,
    actor: models.User,
    method: str,
    data: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> models.Contract:
    """Sign a draft contract on behalf of its holder.

    Signing a `vip` contract promotes the holder to the VIP role.
    """

    contract = get_contract(db, contract_id)
    if contract.user_id != actor.id and not is_admin(actor):
        raise ForbiddenError(ErrorCode.not_owner, "only the contract holder can sign it")
    if contract.status != models.ContractStatus.draft:
        raise ConflictError(
            ErrorCode.contract_not_draft,
            f"contract {contract.doc_ref} is {contract.status.value}, only drafts can be signed",
        )

    now = now or utc_now()
    meta = dict(contract.meta or {})
    meta["signature"] = {"method": method, "data": data or {}, "signed_by": actor.id}

    db.flush()
    result = atomic_transition_status(
        db=db,
        model=models.Contract,
        row_id=contract.id,
        to_status=models.ContractStatus.signed,
        allowed_from=[models.ContractStatus.draft],
        updates={"signed_at": now, "signature_method": method, "meta": meta},
    )
    if not result.updated:
        raise ConflictError(ErrorCode.concurrent_modification, "contract was signed concurrently")
    db.refresh(contract)

    if contract.contract_type == models.ContractType.vip:
        holder = contract.user
        if holder.role != models.RoleName.admin:
            holder.role = models.RoleName.vip
        holder.is_vip = True
        db.flush()

    audit_event(
        "SIGN_CONTRACT",
        actor.id,
        {"doc_ref": contract.doc_ref, "method": method, "contract_type": contract.contract_type.value},
        db=db,
        target_id=contract.id,
    )
    queue_event(
        db,
        "CONTRACT_SIGNED",
        {
            "contractId": contract.id,
            "userId": contract.user_id,
            "masterpieceId": contract.masterpiece_id,
            "contractType": contract.contract_type.value,
        },
        user_id=contract.user_id,
        masterpiece_id=contract.masterpiece_id,
    )
    return contract


def revise_contract(
    db: Session,
    *,
    contract_id: int,
    body: str,
    admin: models.User,
    renderer: DocumentRenderer = default_renderer,
    now: datetime | None = None,
) -> models.Contract:
    """Issue version+1 of a contract as a new draft and archive the original."""

    original = get_contract(db, contract_id)
    if original.status == models.ContractStatus.archived:
        raise ConflictError(
            ErrorCode.invalid_transition, f"contract {original.doc_ref} is already archived"
        )

    revised = issue_contract(
        db,
        contract_type=original.contract_type,
        user=original.user,
        masterpiece=original.masterpiece,
        body=body,
        renderer=renderer,
        balance_due=(original.meta or {}).get("balance_due"),
        escrow_enabled=bool((original.meta or {}).get("escrow_enabled")),
        version=int(original.version) + 1,
        parent_id=original.id,
        now=now,
    )
    original.status = models.ContractStatus.archived
    db.flush()

    audit_event(
        "REVISE_CONTRACT",
        admin.id,
        {"from": original.doc_ref, "to": revised.doc_ref, "version": revised.version},
        db=db,
        target_id=revised.id,
    )
    return revised


def certificate_body(masterpiece: models.Masterpiece, owner: models.User) -> str:
    return (
        f"This certifies that {masterpiece.title} (serial {masterpiece.serial_id}) is an "
        f"authentic work of the atelier, recorded in the vault registry.\n\n"
        f"Registered owner: {owner.name}."
    )


def issue_certificate(
    db: Session,
    *,
    masterpiece: models.Masterpiece,
    owner: models.User,
    renderer: DocumentRenderer = default_renderer,
    now: datetime | None = None,
) -> tuple[models.Contract, models.Certificate]:
    """Create the signed certificate contract and its registry row (sharing one reference)."""

    now = now or utc_now()
    contract = issue_contract(
        db,
        contract_type=models.ContractType.certificate,
        user=owner,
        masterpiece=masterpiece,
        body=certificate_body(masterpiece, owner),
        renderer=renderer,
        signed=True,
        now=now,
    )
    certificate = models.Certificate(
        cert_id=contract.doc_ref,
        masterpiece_id=masterpiece.id,
        owner_id=owner.id,
        contract_id=contract.id,
        digital_signature=DIGITAL_SIGNATURE,
        blockchain_hash=masterpiece.blockchain_hash,
        issued_at=now,
    )
    db.add(certificate)
    db.flush()
    return contract, certificate
