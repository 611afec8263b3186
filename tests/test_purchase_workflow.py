from datetime import timedelta

import pytest

from app import models
from app.core.clock import as_utc
from app.database import unit_of_work
from app.services.contracts import sign_contract
from app.services.errors import (
    ConflictError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    RejectedError,
    ValidationFailed,
)
from app.services.masterpieces import update_masterpiece
from app.services.purchase_workflow import (
    advance_workflow,
    balance_due,
    confirm_payment,
    confirm_receipt,
    deposit_amount,
    reject_payment,
    request_purchase,
    review_purchase,
)


def _payments(db, piece, payment_type=None):
    q = db.query(models.Payment).filter(models.Payment.masterpiece_id == piece.id)
    if payment_type is not None:
        q = q.filter(models.Payment.payment_type == payment_type)
    return q.order_by(models.Payment.id.asc()).all()


def test_deposit_and_balance_follow_current_terms(make_masterpiece):
    piece = make_masterpiece(valuation=100000.0, deposit_pct=10.0)
    assert deposit_amount(piece) == 10000.0
    assert balance_due(piece) == 90000.0

    piece.deposit_pct = 25.0
    assert deposit_amount(piece) == 25000.0
    assert balance_due(piece) == 75000.0


def test_request_reserves_piece_and_drafts_deposit_contract(db_session, make_masterpiece, buyer):
    piece = make_masterpiece()

    with unit_of_work(db_session):
        contract = request_purchase(db_session, buyer=buyer, masterpiece_id=piece.id)

    db_session.refresh(piece)
    assert piece.status == models.MasterpieceStatus.reserved
    assert contract.contract_type == models.ContractType.deposit
    assert contract.status == models.ContractStatus.draft
    assert contract.doc_ref.startswith("DEP_001-")
    assert contract.user_id == buyer.id


def test_request_rejects_unavailable_piece(db_session, make_masterpiece, buyer, make_user):
    piece = make_masterpiece()
    other = make_user("Olga Other")
    with unit_of_work(db_session):
        request_purchase(db_session, buyer=other, masterpiece_id=piece.id)

    with pytest.raises(RejectedError) as exc:
        with unit_of_work(db_session):
            request_purchase(db_session, buyer=buyer, masterpiece_id=piece.id)
    assert exc.value.code == ErrorCode.masterpiece_unavailable


def test_scenario_approval_creates_deposit_payment(db_session, make_masterpiece, buyer, drive_purchase):
    piece = make_masterpiece(valuation=100000.0, deposit_pct=10.0)

    workflow = drive_purchase(piece, buyer)

    assert workflow.status == models.WorkflowStatus.RESERVED
    payments = _payments(db_session, piece)
    assert len(payments) == 1
    assert payments[0].payment_type == models.PaymentType.deposit
    assert payments[0].amount == 10000.0
    assert payments[0].status == models.PaymentStatus.awaiting_deposit
    assert payments[0].reference.startswith("DEP_")


def test_scenario_deposit_paid_starts_production(db_session, make_masterpiece, buyer, drive_purchase):
    piece = make_masterpiece()

    workflow = drive_purchase(piece, buyer, until="deposit_paid")

    assert workflow.status == models.WorkflowStatus.PRODUCTION_STARTED
    assert workflow.deposit_paid_at is not None
    assert workflow.production_started_at is not None
    (deposit,) = _payments(db_session, piece, models.PaymentType.deposit)
    assert deposit.status == models.PaymentStatus.paid


def test_scenario_production_finished_requests_balance(db_session, make_masterpiece, buyer, drive_purchase):
    piece = make_masterpiece(valuation=100000.0, deposit_pct=10.0)

    workflow = drive_purchase(piece, buyer, until="production_finished")

    assert workflow.status == models.WorkflowStatus.AWAITING_FINAL_PAYMENT
    (full,) = _payments(db_session, piece, models.PaymentType.full)
    assert full.amount == 90000.0
    assert full.status == models.PaymentStatus.awaiting_payment

    invoice = (
        db_session.query(models.Contract)
        .filter(
            models.Contract.masterpiece_id == piece.id,
            models.Contract.contract_type == models.ContractType.invoice,
        )
        .one()
    )
    assert invoice.doc_ref.startswith("INV_001-")
    assert full.reference == invoice.doc_ref
    assert "Balance Due" in invoice.content
    assert "90,000.00 EUR" in invoice.content


def test_scenario_final_payment_opens_escrow_with_dispute_window(
    db_session, make_masterpiece, buyer, drive_purchase
):
    piece = make_masterpiece()

    workflow = drive_purchase(piece, buyer, until="final_payment_paid")

    assert workflow.status == models.WorkflowStatus.FUNDS_HELD
    (escrow,) = (
        db_session.query(models.EscrowTransaction)
        .filter(models.EscrowTransaction.masterpiece_id == piece.id)
        .all()
    )
    assert escrow.status == models.EscrowStatus.HELD
    assert escrow.buyer_id == buyer.id
    window = as_utc(escrow.dispute_window_ends) - as_utc(escrow.created_at)
    assert abs(window - timedelta(days=2)) <= timedelta(seconds=1)


def test_scenario_completion_transfers_ownership(
    db_session, make_masterpiece, buyer, drive_purchase, minter
):
    piece = make_masterpiece()

    workflow = drive_purchase(piece, buyer, until="completed", minter=minter)

    assert workflow.status == models.WorkflowStatus.COMPLETED
    db_session.refresh(piece)
    assert piece.status == models.MasterpieceStatus.sold
    assert piece.current_owner_id == buyer.id

    escrow = (
        db_session.query(models.EscrowTransaction)
        .filter(models.EscrowTransaction.masterpiece_id == piece.id)
        .one()
    )
    assert escrow.status == models.EscrowStatus.RELEASED
    assert escrow.released_at is not None

    history = (
        db_session.query(models.OwnershipRecord)
        .filter(models.OwnershipRecord.masterpiece_id == piece.id)
        .all()
    )
    assert len(history) == 1
    assert history[0].owner_id == buyer.id

    certificate_contract = (
        db_session.query(models.Contract)
        .filter(
            models.Contract.masterpiece_id == piece.id,
            models.Contract.contract_type == models.ContractType.certificate,
        )
        .one()
    )
    assert certificate_contract.status == models.ContractStatus.signed
    cert = db_session.query(models.Certificate).filter_by(masterpiece_id=piece.id).one()
    assert cert.cert_id == certificate_contract.doc_ref
    assert cert.digital_signature == "DIGITAL_SIG_ATELIER"

    assert minter.scheduled == [piece.id]


def test_balance_uses_deposit_pct_in_effect_at_invoice_time(
    db_session, make_masterpiece, buyer, admin, drive_purchase
):
    piece = make_masterpiece(valuation=100000.0, deposit_pct=10.0)
    drive_purchase(piece, buyer, until="deposit_paid")

    with unit_of_work(db_session):
        update_masterpiece(
            db_session, masterpiece_id=piece.id, admin=admin, changes={"deposit_pct": 20.0}
        )
    with unit_of_work(db_session):
        advance_workflow(
            db_session, masterpiece_id=piece.id, step="production_finished", actor=admin
        )

    (full,) = _payments(db_session, piece, models.PaymentType.full)
    assert full.amount == 80000.0


def test_unknown_step_is_invalid(db_session, make_masterpiece, buyer, admin, drive_purchase):
    piece = make_masterpiece()
    drive_purchase(piece, buyer)

    with pytest.raises(ValidationFailed) as exc:
        with unit_of_work(db_session):
            advance_workflow(db_session, masterpiece_id=piece.id, step="shipped", actor=admin)
    assert exc.value.code == ErrorCode.invalid_step


def test_unknown_step_without_workflow_is_not_found(db_session, make_masterpiece, admin):
    piece = make_masterpiece()

    with pytest.raises(NotFoundError) as exc:
        with unit_of_work(db_session):
            advance_workflow(db_session, masterpiece_id=piece.id, step="shipped", actor=admin)
    assert exc.value.code == ErrorCode.workflow_not_found


def test_deposit_step_needs_an_open_deposit_payment(
    db_session, make_masterpiece, buyer, admin, drive_purchase
):
    piece = make_masterpiece()
    drive_purchase(piece, buyer)
    (deposit,) = _payments(db_session, piece, models.PaymentType.deposit)
    with unit_of_work(db_session):
        reject_payment(db_session, payment_id=deposit.id, admin=admin)

    with pytest.raises(NotFoundError) as exc:
        with unit_of_work(db_session):
            advance_workflow(db_session, masterpiece_id=piece.id, step="deposit_paid", actor=admin)
    assert exc.value.code == ErrorCode.payment_not_found

    db_session.expire_all()
    workflow = db_session.query(models.PurchaseWorkflow).filter_by(masterpiece_id=piece.id).one()
    assert workflow.status == models.WorkflowStatus.RESERVED
    assert workflow.deposit_paid_at is None
    assert db_session.get(models.Payment, deposit.id).status == models.PaymentStatus.rejected


def test_out_of_order_step_is_rejected_without_side_effects(
    db_session, make_masterpiece, buyer, admin, drive_purchase
):
    piece = make_masterpiece()
    drive_purchase(piece, buyer)

    with pytest.raises(ConflictError) as exc:
        with unit_of_work(db_session):
            advance_workflow(db_session, masterpiece_id=piece.id, step="delivered", actor=admin)
    assert exc.value.code == ErrorCode.invalid_transition

    db_session.expire_all()
    workflow = db_session.query(models.PurchaseWorkflow).filter_by(masterpiece_id=piece.id).one()
    assert workflow.status == models.WorkflowStatus.RESERVED
    assert workflow.delivered_at is None


def test_repeated_step_is_rejected(db_session, make_masterpiece, buyer, admin, drive_purchase):
    piece = make_masterpiece()
    drive_purchase(piece, buyer, until="deposit_paid")

    with pytest.raises(ConflictError):
        with unit_of_work(db_session):
            advance_workflow(db_session, masterpiece_id=piece.id, step="deposit_paid", actor=admin)


def test_approval_requires_signed_deposit_contract(db_session, make_masterpiece, buyer, admin):
    piece = make_masterpiece()
    with unit_of_work(db_session):
        request_purchase(db_session, buyer=buyer, masterpiece_id=piece.id)

    with pytest.raises(RejectedError) as exc:
        with unit_of_work(db_session):
            review_purchase(db_session, masterpiece_id=piece.id, approve=True, admin=admin)
    assert exc.value.code == ErrorCode.contract_not_signed
    assert db_session.query(models.PurchaseWorkflow).count() == 0
    assert db_session.query(models.Payment).count() == 0


def test_second_approval_conflicts(db_session, make_masterpiece, buyer, admin, drive_purchase):
    piece = make_masterpiece()
    drive_purchase(piece, buyer)

    with pytest.raises(ConflictError) as exc:
        with unit_of_work(db_session):
            review_purchase(db_session, masterpiece_id=piece.id, approve=True, admin=admin)
    assert exc.value.code == ErrorCode.already_approved
    assert db_session.query(models.Payment).count() == 1


def test_rejection_returns_piece_and_archives_contract(db_session, make_masterpiece, buyer, admin):
    piece = make_masterpiece()
    with unit_of_work(db_session):
        contract = request_purchase(db_session, buyer=buyer, masterpiece_id=piece.id)

    with unit_of_work(db_session):
        result = review_purchase(db_session, masterpiece_id=piece.id, approve=False, admin=admin)

    assert result is None
    db_session.refresh(piece)
    db_session.refresh(contract)
    assert piece.status == models.MasterpieceStatus.available
    assert contract.status == models.ContractStatus.archived
    assert db_session.query(models.PurchaseWorkflow).count() == 0


def test_advance_without_workflow_is_not_found(db_session, make_masterpiece, admin):
    piece = make_masterpiece()
    with pytest.raises(NotFoundError):
        with unit_of_work(db_session):
            advance_workflow(db_session, masterpiece_id=piece.id, step="deposit_paid", actor=admin)


def test_confirm_payment_drives_matching_step(db_session, make_masterpiece, buyer, admin, drive_purchase):
    piece = make_masterpiece()
    drive_purchase(piece, buyer)
    (deposit,) = _payments(db_session, piece)

    with unit_of_work(db_session):
        paid = confirm_payment(db_session, payment_id=deposit.id, admin=admin)

    assert paid.status == models.PaymentStatus.paid
    assert paid.confirmed_by == admin.id
    workflow = db_session.query(models.PurchaseWorkflow).filter_by(masterpiece_id=piece.id).one()
    assert workflow.status == models.WorkflowStatus.PRODUCTION_STARTED

    with pytest.raises(ConflictError) as exc:
        with unit_of_work(db_session):
            confirm_payment(db_session, payment_id=deposit.id, admin=admin)
    assert exc.value.code == ErrorCode.payment_not_pending


def test_buyer_confirms_receipt(db_session, make_masterpiece, buyer, make_user, drive_purchase, minter):
    piece = make_masterpiece()
    drive_purchase(piece, buyer, until="delivered")
    stranger = make_user("Sam Stranger")

    with pytest.raises(ForbiddenError) as exc:
        with unit_of_work(db_session):
            confirm_receipt(db_session, masterpiece_id=piece.id, buyer=stranger, minter=minter)
    assert exc.value.code == ErrorCode.not_buyer

    with unit_of_work(db_session):
        workflow = confirm_receipt(db_session, masterpiece_id=piece.id, buyer=buyer, minter=minter)
    assert workflow.status == models.WorkflowStatus.COMPLETED
    assert minter.scheduled == [piece.id]


def test_minting_is_not_scheduled_when_completion_rolls_back(
    db_session, make_masterpiece, buyer, admin, drive_purchase, minter
):
    piece = make_masterpiece()
    drive_purchase(piece, buyer, until="delivered")

    with pytest.raises(RuntimeError):
        with unit_of_work(db_session):
            advance_workflow(
                db_session, masterpiece_id=piece.id, step="completed", actor=admin, minter=minter
            )
            raise RuntimeError("abort")

    assert minter.scheduled == []
    db_session.expire_all()
    workflow = db_session.query(models.PurchaseWorkflow).filter_by(masterpiece_id=piece.id).one()
    assert workflow.status == models.WorkflowStatus.DELIVERED
    assert db_session.query(models.Certificate).count() == 0


def test_signing_twice_conflicts(db_session, make_masterpiece, buyer):
    piece = make_masterpiece()
    with unit_of_work(db_session):
        contract = request_purchase(db_session, buyer=buyer, masterpiece_id=piece.id)
    with unit_of_work(db_session):
        sign_contract(db_session, contract_id=contract.id, actor=buyer, method="click")

    with pytest.raises(ConflictError) as exc:
        with unit_of_work(db_session):
            sign_contract(db_session, contract_id=contract.id, actor=buyer, method="click")
    assert exc.value.code == ErrorCode.contract_not_draft
