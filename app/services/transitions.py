from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Iterable

from sqlalchemy.orm import Session

from app import models
from app.core.clock import utc_now
from app.models import MasterpieceStatus as MS
from app.models import WorkflowStatus as WS
from app.models import WorkflowStep
from app.services.errors import ConflictError, ErrorCode, ValidationFailed


class MasterpieceEvent(PyEnum):
    purchase_requested = "purchase_requested"
    purchase_rejected = "purchase_rejected"
    sale_completed = "sale_completed"
    assigned = "assigned"
    auction_opened = "auction_opened"
    auction_won = "auction_won"
    auction_unsold = "auction_unsold"
    resale_listed = "resale_listed"
    resale_listed_private = "resale_listed_private"
    resale_approved = "resale_approved"
    resale_rejected = "resale_rejected"
    offer_opened = "offer_opened"
    offer_accepted = "offer_accepted"
    resale_completed = "resale_completed"
    reserved_for_vip = "reserved_for_vip"
    reserved_for_client = "reserved_for_client"
    reservation_expired = "reservation_expired"
    fractionalized = "fractionalized"


_E = MasterpieceEvent

MASTERPIECE_TRANSITIONS: dict[tuple[MS, MasterpieceEvent], MS] = {
    (MS.available, _E.purchase_requested): MS.reserved,
    (MS.reserved_vip, _E.purchase_requested): MS.reserved,
    (MS.reserved_client, _E.purchase_requested): MS.reserved,
    (MS.reserved, _E.purchase_rejected): MS.available,
    (MS.reserved, _E.sale_completed): MS.sold,
    (MS.available, _E.assigned): MS.sold,
    (MS.reserved_vip, _E.assigned): MS.sold,
    (MS.reserved_client, _E.assigned): MS.sold,
    (MS.sold, _E.assigned): MS.sold,
    (MS.available, _E.auction_opened): MS.auction,
    (MS.auction, _E.auction_won): MS.reserved,
    (MS.auction, _E.auction_unsold): MS.available,
    (MS.sold, _E.resale_listed): MS.resell_pending,
    (MS.sold, _E.resale_listed_private): MS.listed_private,
    (MS.resell_pending, _E.resale_approved): MS.available,
    (MS.listed_private, _E.resale_approved): MS.available,
    (MS.resell_pending, _E.resale_rejected): MS.sold,
    (MS.listed_private, _E.resale_rejected): MS.sold,
    (MS.resell_pending, _E.offer_opened): MS.negotiation,
    (MS.listed_private, _E.offer_opened): MS.negotiation,
    (MS.negotiation, _E.offer_opened): MS.negotiation,
    (MS.negotiation, _E.offer_accepted): MS.escrow_pending,
    (MS.escrow_pending, _E.resale_completed): MS.sold,
    (MS.available, _E.reserved_for_vip): MS.reserved_vip,
    (MS.available, _E.reserved_for_client): MS.reserved_client,
    (MS.reserved_vip, _E.reservation_expired): MS.available,
    (MS.reserved_client, _E.reservation_expired): MS.available,
    (MS.available, _E.fractionalized): MS.fractional_open,
    (MS.sold, _E.fractionalized): MS.fractional_open,
}


@dataclass(frozen=True)
class WorkflowTransition:
    from_status: WS
    to_status: WS
    timestamp_fields: tuple[str, ...]


WORKFLOW_TRANSITIONS: dict[WorkflowStep, WorkflowTransition] = {
    WorkflowStep.deposit_paid: WorkflowTransition(
        WS.RESERVED, WS.PRODUCTION_STARTED, ("deposit_paid_at", "production_started_at")
    ),
    WorkflowStep.production_finished: WorkflowTransition(
        WS.PRODUCTION_STARTED,
        WS.AWAITING_FINAL_PAYMENT,
        ("production_finished_at", "final_payment_requested_at"),
    ),
    WorkflowStep.final_payment_paid: WorkflowTransition(
        WS.AWAITING_FINAL_PAYMENT, WS.FUNDS_HELD, ("final_payment_received_at",)
    ),
    WorkflowStep.delivered: WorkflowTransition(WS.FUNDS_HELD, WS.DELIVERED, ("delivered_at",)),
    WorkflowStep.completed: WorkflowTransition(WS.DELIVERED, WS.COMPLETED, ("completed_at",)),
}

# Masterpiece status implied by each workflow state at the moment it is entered.
WORKFLOW_MASTERPIECE_STATUS: dict[WS, MS] = {
    WS.RESERVED: MS.reserved,
    WS.PRODUCTION_STARTED: MS.reserved,
    WS.AWAITING_FINAL_PAYMENT: MS.reserved,
    WS.FUNDS_HELD: MS.reserved,
    WS.DELIVERED: MS.reserved,
    WS.COMPLETED: MS.sold,
}


@dataclass(frozen=True)
class TransitionResult:
    updated: bool
    rowcount: int


def next_masterpiece_status(current: MS, event: MasterpieceEvent) -> MS:
    try:
        return MASTERPIECE_TRANSITIONS[(current, event)]
    except KeyError:
        raise ConflictError(
            ErrorCode.invalid_transition,
            f"masterpiece in status {current.value} cannot accept {event.value}",
        ) from None


def allowed_sources(event: MasterpieceEvent) -> set[MS]:
    return {src for (src, ev) in MASTERPIECE_TRANSITIONS if ev == event}


def atomic_transition_status(
    *,
    db: Session,
    model,
    row_id: int,
    to_status: PyEnum,
    allowed_from: Iterable[PyEnum],
    updates: dict[str, Any] | None = None,
) -> TransitionResult:
    """Apply a status transition with an atomic DB guard.

    Performs a single conditional UPDATE so that invalid or out-of-order
    transitions are never persisted, even under concurrency:

        UPDATE <table> SET status = :to_status, ...
        WHERE id = :row_id AND status IN (:allowed_from)

    Callers control commit/rollback.
    """

    update_values: dict[str, Any] = {"status": to_status}
    if updates:
        update_values.update(updates)

    rowcount = (
        db.query(model)
        .filter(model.id == int(row_id))
        .filter(model.status.in_(set(allowed_from)))
        .update(update_values, synchronize_session=False)
    )
    return TransitionResult(updated=rowcount > 0, rowcount=int(rowcount or 0))


def transition_masterpiece(
    db: Session,
    piece: models.Masterpiece,
    event: MasterpieceEvent,
    *,
    updates: dict[str, Any] | None = None,
) -> MS:
    """Move a masterpiece along its status machine, guarded against concurrent writers."""

    target = next_masterpiece_status(piece.status, event)
    db.flush()
    result = atomic_transition_status(
        db=db,
        model=models.Masterpiece,
        row_id=piece.id,
        to_status=target,
        allowed_from=[piece.status],
        updates=updates,
    )
    if not result.updated:
        raise ConflictError(
            ErrorCode.concurrent_modification,
            f"masterpiece {piece.id} changed concurrently, reload and retry",
        )
    db.refresh(piece)
    return target


def parse_workflow_step(step: str | WorkflowStep) -> WorkflowStep:
    if isinstance(step, WorkflowStep):
        return step
    try:
        return WorkflowStep(str(step).strip())
    except ValueError:
        raise ValidationFailed(ErrorCode.invalid_step, f"invalid step: {step}") from None


def check_workflow_step(workflow: models.PurchaseWorkflow, step: WorkflowStep) -> WorkflowTransition:
    spec = WORKFLOW_TRANSITIONS[step]
    if workflow.status != spec.from_status:
        raise ConflictError(
            ErrorCode.invalid_transition,
            f"step {step.value} is not allowed from {workflow.status.value}",
        )
    return spec


def transition_workflow(
    db: Session,
    workflow: models.PurchaseWorkflow,
    step: WorkflowStep,
    *,
    now: datetime | None = None,
) -> WorkflowTransition:
    spec = check_workflow_step(workflow, step)

    now = now or utc_now()
    db.flush()
    result = atomic_transition_status(
        db=db,
        model=models.PurchaseWorkflow,
        row_id=workflow.id,
        to_status=spec.to_status,
        allowed_from=[spec.from_status],
        updates={field: now for field in spec.timestamp_fields},
    )
    if not result.updated:
        raise ConflictError(
            ErrorCode.concurrent_modification,
            f"workflow {workflow.id} changed concurrently, reload and retry",
        )
    db.refresh(workflow)
    return spec
