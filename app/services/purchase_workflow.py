"""Purchase workflow engine.

One masterpiece moves from an acquisition request to a completed ownership
transfer through these steps:

    request      available -> reserved, deposit agreement drafted
    approve      workflow RESERVED, deposit payment requested (signed deposit required)
    deposit_paid RESERVED -> PRODUCTION_STARTED, deposit payment paid
    production_finished
                 -> AWAITING_FINAL_PAYMENT, invoice drafted, balance payment requested
    final_payment_paid
                 -> FUNDS_HELD, balance payment paid, escrow HELD
    delivered    -> DELIVERED, buyer asked to confirm receipt
    completed    -> COMPLETED, escrow RELEASED, masterpiece sold to the buyer,
                 certificate issued, token minting scheduled after commit

Every function here only flushes. Callers run each call inside one
`unit_of_work`, so a step's rows are written together or not at all.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import models
from app.config import settings
from app.core.clock import as_utc, utc_now
from app.core.permissions import is_admin
from app.database import run_after_commit
from app.services.audit import audit_event
from app.services.contracts import issue_certificate, issue_contract, latest_contract
from app.services.documents import DocumentRenderer, default_renderer, format_eur
from app.services.errors import (
    ConflictError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    RejectedError,
)
from app.services.escrow import latest_escrow, open_escrow, release_escrow
from app.services.masterpieces import load_masterpiece, transfer_ownership
from app.services.minting import TokenMinter
from app.services.notifications import notify_admins, notify_user
from app.services.rarity import recompute_rarity
from app.services.realtime import queue_event
from app.services.transitions import (
    MasterpieceEvent,
    allowed_sources,
    check_workflow_step,
    parse_workflow_step,
    transition_masterpiece,
    transition_workflow,
)

logger = logging.getLogger("vault")

WS = models.WorkflowStatus
Step = models.WorkflowStep
PS = models.PaymentStatus

_OPEN_PAYMENT_STATES = (PS.pending, PS.awaiting_deposit, PS.awaiting_payment)


def deposit_amount(piece: models.Masterpiece) -> float:
    """Deposit from the masterpiece's current valuation and deposit percentage."""

    return round(float(piece.valuation) * float(piece.deposit_pct) / 100.0, 2)


def balance_due(piece: models.Masterpiece) -> float:
    """Remaining balance, recomputed from the values in effect right now."""

    return round(float(piece.valuation) - deposit_amount(piece), 2)


def get_workflow(db: Session, masterpiece_id: int) -> Optional[models.PurchaseWorkflow]:
    return (
        db.query(models.PurchaseWorkflow)
        .filter(models.PurchaseWorkflow.masterpiece_id == int(masterpiece_id))
        .first()
    )


def _open_payment(
    db: Session, workflow: models.PurchaseWorkflow, payment_type: models.PaymentType
) -> Optional[models.Payment]:
    return (
        db.query(models.Payment)
        .filter(
            models.Payment.masterpiece_id == workflow.masterpiece_id,
            models.Payment.user_id == workflow.user_id,
            models.Payment.payment_type == payment_type,
            models.Payment.status.in_(_OPEN_PAYMENT_STATES),
        )
        .order_by(models.Payment.id.desc())
        .first()
    )


def _mark_paid(payment: models.Payment, actor: Optional[models.User], now: datetime) -> None:
    payment.status = PS.paid
    payment.paid_at = now
    payment.confirmed_by = actor.id if actor is not None else None


def _active_reservation(db: Session, masterpiece_id: int) -> Optional[models.Reservation]:
    return (
        db.query(models.Reservation)
        .filter(
            models.Reservation.masterpiece_id == int(masterpiece_id),
            models.Reservation.status == "active",
        )
        .order_by(models.Reservation.id.desc())
        .first()
    )


def deposit_body(piece: models.Masterpiece, buyer: models.User) -> str:
    return (
        f"{buyer.name} requests the acquisition of {piece.title} "
        f"(serial {piece.serial_id}) at a valuation of {format_eur(piece.valuation)}.\n\n"
        f"A deposit of {piece.deposit_pct:g}% ({format_eur(deposit_amount(piece))}) secures the "
        "reservation and starts production once received.\n\n"
        "The remaining balance is invoiced when production is finished."
    )


def invoice_body(piece: models.Masterpiece, balance: float) -> str:
    return (
        f"Production of {piece.title} (serial {piece.serial_id}) is finished.\n\n"
        f"Please settle the balance of {format_eur(balance)}. Funds are held in escrow "
        "until delivery is confirmed."
    )


def request_purchase(
    db: Session,
    *,
    buyer: models.User,
    masterpiece_id: int,
    renderer: DocumentRenderer = default_renderer,
    now: Optional[datetime] = None,
) -> models.Contract:
    """Reserve an available masterpiece for the buyer and draft the deposit agreement."""

    now = now or utc_now()
    piece = load_masterpiece(db, masterpiece_id)
    if piece.status not in allowed_sources(MasterpieceEvent.purchase_requested):
        raise RejectedError(
            ErrorCode.masterpiece_unavailable,
            f"{piece.title} is not available (status {piece.status.value})",
        )

    reservation = _active_reservation(db, piece.id)
    if reservation is not None:
        if reservation.user_id != buyer.id:
            raise RejectedError(
                ErrorCode.reserved_for_other, f"{piece.title} is reserved for another collector"
            )
        reservation.status = "converted"

    transition_masterpiece(db, piece, MasterpieceEvent.purchase_requested)
    contract = issue_contract(
        db,
        contract_type=models.ContractType.deposit,
        user=buyer,
        masterpiece=piece,
        body=deposit_body(piece, buyer),
        renderer=renderer,
        now=now,
    )

    notify_admins(db, f"{buyer.name} requested the acquisition of {piece.title}.", "info")
    audit_event(
        "REQUEST_PURCHASE",
        buyer.id,
        {"masterpiece_id": piece.id, "doc_ref": contract.doc_ref},
        db=db,
        target_id=piece.id,
    )
    queue_event(
        db,
        "MASTERPIECE_RESERVED",
        {"masterpieceId": piece.id, "userId": buyer.id},
        user_id=buyer.id,
        masterpiece_id=piece.id,
    )
    logger.info("purchase_requested", extra={"masterpiece_id": piece.id, "user_id": buyer.id})
    return contract


def review_purchase(
    db: Session,
    *,
    masterpiece_id: int,
    approve: bool,
    admin: models.User,
    now: Optional[datetime] = None,
) -> Optional[models.PurchaseWorkflow]:
    """Approve (creating the workflow and deposit request) or decline a reservation.

    Returns the new workflow on approval, None on rejection.
    """

    now = now or utc_now()
    piece = load_masterpiece(db, masterpiece_id)
    if get_workflow(db, piece.id) is not None:
        raise ConflictError(ErrorCode.already_approved, "purchase already approved")

    contract = latest_contract(
        db, masterpiece_id=piece.id, contract_type=models.ContractType.deposit
    )

    if not approve:
        transition_masterpiece(db, piece, MasterpieceEvent.purchase_rejected)
        buyer_id = None
        if contract is not None:
            contract.status = models.ContractStatus.archived
            buyer_id = contract.user_id
            db.flush()
            notify_user(
                db, buyer_id, f"Your acquisition request for {piece.title} was declined.", "warning"
            )
        audit_event(
            "REJECT_PURCHASE", admin.id, {"buyer_id": buyer_id}, db=db, target_id=piece.id
        )
        queue_event(
            db,
            "PURCHASE_REVIEWED",
            {"masterpieceId": piece.id, "approved": False},
            user_id=buyer_id,
            masterpiece_id=piece.id,
        )
        logger.info("purchase_rejected", extra={"masterpiece_id": piece.id})
        return None

    if contract is None:
        raise NotFoundError(ErrorCode.contract_not_found, "no deposit contract for this masterpiece")
    if contract.status != models.ContractStatus.signed:
        raise RejectedError(
            ErrorCode.contract_not_signed, "the deposit contract must be signed before approval"
        )
    if piece.status != models.MasterpieceStatus.reserved:
        raise ConflictError(
            ErrorCode.invalid_transition,
            f"masterpiece in status {piece.status.value} cannot be approved",
        )

    workflow = models.PurchaseWorkflow(
        masterpiece_id=piece.id,
        user_id=contract.user_id,
        status=WS.RESERVED,
        approved_at=now,
        approved_by=admin.id,
        deposit_contract_sent_at=contract.created_at,
    )
    db.add(workflow)
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConflictError(ErrorCode.already_approved, "purchase already approved") from exc

    amount = deposit_amount(piece)
    payment = models.Payment(
        user_id=contract.user_id,
        masterpiece_id=piece.id,
        payment_type=models.PaymentType.deposit,
        amount=amount,
        status=PS.awaiting_deposit,
        iban=settings.deposit_iban,
        reference=contract.doc_ref,
    )
    db.add(payment)
    db.flush()

    notify_user(
        db,
        contract.user_id,
        f"Your acquisition of {piece.title} is approved. Please transfer the deposit of "
        f"{format_eur(amount)} to {settings.deposit_iban} quoting {contract.doc_ref}.",
        "success",
    )
    audit_event(
        "APPROVE_PURCHASE",
        admin.id,
        {"buyer_id": contract.user_id, "deposit": amount, "doc_ref": contract.doc_ref},
        db=db,
        target_id=piece.id,
    )
    queue_event(
        db,
        "PURCHASE_REVIEWED",
        {"masterpieceId": piece.id, "approved": True},
        user_id=contract.user_id,
        masterpiece_id=piece.id,
    )
    queue_event(
        db,
        "WORKFLOW_UPDATED",
        {"masterpieceId": piece.id, "status": WS.RESERVED.value},
        user_id=contract.user_id,
        masterpiece_id=piece.id,
    )
    logger.info(
        "purchase_approved",
        extra={"masterpiece_id": piece.id, "user_id": contract.user_id, "deposit": amount},
    )
    return workflow


def advance_workflow(
    db: Session,
    *,
    masterpiece_id: int,
    step: str | models.WorkflowStep,
    actor: Optional[models.User],
    minter: Optional[TokenMinter] = None,
    renderer: DocumentRenderer = default_renderer,
    now: Optional[datetime] = None,
) -> models.PurchaseWorkflow:
    """Apply one workflow step with all of its side effects.

    `actor` is None when the escrow sweep completes a workflow.
    """

    workflow = get_workflow(db, masterpiece_id)
    if workflow is None:
        raise NotFoundError(ErrorCode.workflow_not_found, "workflow not found")
    parsed = parse_workflow_step(step)
    check_workflow_step(workflow, parsed)

    now = now or utc_now()
    piece = load_masterpiece(db, workflow.masterpiece_id)
    buyer = workflow.buyer

    # Prerequisites are checked before any row moves.
    payment: Optional[models.Payment] = None
    escrow: Optional[models.EscrowTransaction] = None
    if parsed in (Step.deposit_paid, Step.final_payment_paid):
        payment_type = (
            models.PaymentType.deposit if parsed == Step.deposit_paid else models.PaymentType.full
        )
        payment = _open_payment(db, workflow, payment_type)
        if payment is None:
            raise NotFoundError(
                ErrorCode.payment_not_found,
                f"no open {payment_type.value} payment request for this masterpiece",
            )
    elif parsed == Step.completed:
        escrow = latest_escrow(db, piece.id)
        if escrow is None:
            raise NotFoundError(ErrorCode.escrow_not_found, "no escrow for this masterpiece")
        if escrow.status == models.EscrowStatus.DISPUTED:
            raise RejectedError(
                ErrorCode.escrow_disputed, "escrow is under dispute and cannot be released"
            )

    transition_workflow(db, workflow, parsed, now=now)

    if parsed == Step.deposit_paid:
        _mark_paid(payment, actor, now)
        notify_user(db, buyer.id, f"Deposit received. Production of {piece.title} has started.", "success")

    elif parsed == Step.production_finished:
        balance = balance_due(piece)
        invoice = issue_contract(
            db,
            contract_type=models.ContractType.invoice,
            user=buyer,
            masterpiece=piece,
            body=invoice_body(piece, balance),
            renderer=renderer,
            balance_due=balance,
            escrow_enabled=True,
            now=now,
        )
        db.add(
            models.Payment(
                user_id=buyer.id,
                masterpiece_id=piece.id,
                payment_type=models.PaymentType.full,
                amount=balance,
                status=PS.awaiting_payment,
                iban=settings.deposit_iban,
                reference=invoice.doc_ref,
            )
        )
        notify_user(
            db,
            buyer.id,
            f"{piece.title} is finished. Balance due: {format_eur(balance)} ({invoice.doc_ref}).",
            "info",
        )

    elif parsed == Step.final_payment_paid:
        _mark_paid(payment, actor, now)
        open_escrow(
            db,
            masterpiece_id=piece.id,
            buyer_id=buyer.id,
            amount=float(piece.valuation),
            now=now,
        )
        notify_user(db, buyer.id, f"Final payment for {piece.title} received and held in escrow.", "success")

    elif parsed == Step.delivered:
        notify_user(
            db,
            buyer.id,
            f"{piece.title} has been delivered. Please confirm receipt.",
            "info",
        )

    elif parsed == Step.completed:
        _complete_sale(db, workflow, piece, buyer, escrow, renderer=renderer, now=now)
        if minter is not None:
            run_after_commit(db, lambda: minter.schedule(piece.id))

    db.flush()
    audit_event(
        "ADVANCE_WORKFLOW",
        actor.id if actor is not None else None,
        {"step": parsed.value, "status": workflow.status.value},
        db=db,
        target_id=piece.id,
    )
    queue_event(
        db,
        "WORKFLOW_UPDATED",
        {"masterpieceId": piece.id, "status": workflow.status.value, "step": parsed.value},
        user_id=buyer.id,
        masterpiece_id=piece.id,
    )
    logger.info(
        "workflow_advanced",
        extra={
            "masterpiece_id": piece.id,
            "step": parsed.value,
            "status": workflow.status.value,
            "actor_id": actor.id if actor is not None else None,
        },
    )
    return workflow


def _complete_sale(
    db: Session,
    workflow: models.PurchaseWorkflow,
    piece: models.Masterpiece,
    buyer: models.User,
    escrow: models.EscrowTransaction,
    *,
    renderer: DocumentRenderer,
    now: datetime,
) -> None:
    release_escrow(db, escrow, now=now)
    transition_masterpiece(
        db, piece, MasterpieceEvent.sale_completed, updates={"current_owner_id": buyer.id}
    )
    transfer_ownership(
        db, piece=piece, owner_id=buyer.id, price=float(piece.valuation), source="purchase", now=now
    )
    _, certificate = issue_certificate(
        db, masterpiece=piece, owner=buyer, renderer=renderer, now=now
    )
    recompute_rarity(db, piece.id)
    notify_user(
        db,
        buyer.id,
        f"Ownership of {piece.title} is now yours. Certificate {certificate.cert_id} issued.",
        "success",
    )
    queue_event(
        db,
        "CERTIFICATE_GENERATED",
        {"masterpieceId": piece.id, "certId": certificate.cert_id, "userId": buyer.id},
        user_id=buyer.id,
        masterpiece_id=piece.id,
    )


def confirm_receipt(
    db: Session,
    *,
    masterpiece_id: int,
    buyer: models.User,
    minter: Optional[TokenMinter] = None,
    renderer: DocumentRenderer = default_renderer,
) -> models.PurchaseWorkflow:
    """The buyer confirms delivery, which completes the workflow."""

    workflow = get_workflow(db, masterpiece_id)
    if workflow is None:
        raise NotFoundError(ErrorCode.workflow_not_found, "workflow not found")
    if workflow.user_id != buyer.id and not is_admin(buyer):
        raise ForbiddenError(ErrorCode.not_buyer, "only the buyer can confirm receipt")
    return advance_workflow(
        db,
        masterpiece_id=masterpiece_id,
        step=Step.completed,
        actor=buyer,
        minter=minter,
        renderer=renderer,
    )


def confirm_payment(
    db: Session,
    *,
    payment_id: int,
    admin: models.User,
    minter: Optional[TokenMinter] = None,
) -> models.Payment:
    """Staff confirmation of a bank transfer; drives the matching workflow step."""

    payment = db.get(models.Payment, int(payment_id))
    if payment is None:
        raise NotFoundError(ErrorCode.payment_not_found)
    if payment.status not in _OPEN_PAYMENT_STATES:
        raise ConflictError(
            ErrorCode.payment_not_pending, f"payment is {payment.status.value}, not awaiting funds"
        )
    step = Step.deposit_paid if payment.payment_type == models.PaymentType.deposit else Step.final_payment_paid
    advance_workflow(db, masterpiece_id=payment.masterpiece_id, step=step, actor=admin, minter=minter)
    db.refresh(payment)
    return payment


def reject_payment(db: Session, *, payment_id: int, admin: models.User) -> models.Payment:
    payment = db.get(models.Payment, int(payment_id))
    if payment is None:
        raise NotFoundError(ErrorCode.payment_not_found)
    if payment.status not in _OPEN_PAYMENT_STATES:
        raise ConflictError(
            ErrorCode.payment_not_pending, f"payment is {payment.status.value}, not awaiting funds"
        )
    payment.status = PS.rejected
    db.flush()
    notify_user(
        db,
        payment.user_id,
        f"Payment {payment.reference or payment.id} could not be matched. Please contact the atelier.",
        "warning",
    )
    audit_event(
        "REJECT_PAYMENT",
        admin.id,
        {"amount": payment.amount, "reference": payment.reference},
        db=db,
        target_id=payment.id,
    )
    return payment


def expired_delivered_workflows(
    db: Session, now: Optional[datetime] = None
) -> list[models.PurchaseWorkflow]:
    """Delivered workflows whose held escrow has passed its dispute window."""

    now = now or utc_now()
    due: list[models.PurchaseWorkflow] = []
    for workflow in db.query(models.PurchaseWorkflow).filter(
        models.PurchaseWorkflow.status == WS.DELIVERED
    ):
        escrow = latest_escrow(db, workflow.masterpiece_id)
        if escrow is None or escrow.status != models.EscrowStatus.HELD:
            continue
        if as_utc(escrow.dispute_window_ends) <= now:
            due.append(workflow)
    return due
