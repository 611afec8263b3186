from datetime import timedelta
from types import SimpleNamespace

import pytest

from app import models
from app.core.clock import utc_now
from app.database import unit_of_work
from app.services.clienteling import reserve_masterpiece
from app.services.errors import ConflictError, ErrorCode, ForbiddenError, RejectedError
from app.services.escrow import dismiss_dispute, file_dispute, latest_escrow
from app.services.purchase_workflow import advance_workflow, expired_delivered_workflows
from app.services.scheduler import EscrowSweepRunner, hold_sweep_lock, run_escrow_sweep


def test_buyer_disputes_inside_window(db_session, make_masterpiece, buyer, admin, drive_purchase):
    piece = make_masterpiece()
    drive_purchase(piece, buyer, until="delivered")

    with unit_of_work(db_session):
        escrow = file_dispute(
            db_session, masterpiece_id=piece.id, buyer=buyer, reason="Clasp is scratched"
        )

    assert escrow.status == models.EscrowStatus.DISPUTED
    assert escrow.dispute_reason == "Clasp is scratched"
    assert [m["name"] for m in escrow.milestones] == ["funds_held", "disputed"]
    admin_notes = db_session.query(models.Notification).filter_by(user_id=admin.id).all()
    assert any("dispute" in n.message for n in admin_notes)


def test_dispute_blocks_completion_until_dismissed(
    db_session, make_masterpiece, buyer, admin, drive_purchase, minter
):
    piece = make_masterpiece()
    drive_purchase(piece, buyer, until="delivered")
    with unit_of_work(db_session):
        escrow = file_dispute(db_session, masterpiece_id=piece.id, buyer=buyer, reason="Wrong size")

    with pytest.raises(RejectedError) as exc:
        with unit_of_work(db_session):
            advance_workflow(
                db_session, masterpiece_id=piece.id, step="completed", actor=admin, minter=minter
            )
    assert exc.value.code == ErrorCode.escrow_disputed

    with unit_of_work(db_session):
        dismiss_dispute(db_session, escrow_id=escrow.id, admin=admin)
    db_session.refresh(escrow)
    assert escrow.status == models.EscrowStatus.HELD

    with unit_of_work(db_session):
        workflow = advance_workflow(
            db_session, masterpiece_id=piece.id, step="completed", actor=admin, minter=minter
        )
    assert workflow.status == models.WorkflowStatus.COMPLETED
    assert minter.scheduled == [piece.id]


def test_only_buyer_can_dispute(db_session, make_masterpiece, buyer, make_user, drive_purchase):
    piece = make_masterpiece()
    drive_purchase(piece, buyer, until="final_payment_paid")
    stranger = make_user("Sam Stranger")

    with pytest.raises(ForbiddenError):
        with unit_of_work(db_session):
            file_dispute(db_session, masterpiece_id=piece.id, buyer=stranger, reason="No")


def test_dispute_after_window_is_rejected(db_session, make_masterpiece, buyer, drive_purchase):
    piece = make_masterpiece()
    drive_purchase(piece, buyer, until="delivered")

    with pytest.raises(RejectedError) as exc:
        with unit_of_work(db_session):
            file_dispute(
                db_session,
                masterpiece_id=piece.id,
                buyer=buyer,
                reason="Too late",
                now=utc_now() + timedelta(hours=49),
            )
    assert exc.value.code == ErrorCode.dispute_window_closed
    assert latest_escrow(db_session, piece.id).status == models.EscrowStatus.HELD


def test_dismissing_undisputed_escrow_conflicts(db_session, make_masterpiece, buyer, admin, drive_purchase):
    piece = make_masterpiece()
    drive_purchase(piece, buyer, until="final_payment_paid")
    escrow = latest_escrow(db_session, piece.id)

    with pytest.raises(ConflictError):
        with unit_of_work(db_session):
            dismiss_dispute(db_session, escrow_id=escrow.id, admin=admin)


def test_sweep_completes_delivered_workflows_after_window(
    db_session, make_masterpiece, buyer, drive_purchase, minter
):
    due = make_masterpiece()
    disputed = make_masterpiece()
    fresh = make_masterpiece()
    drive_purchase(due, buyer, until="delivered", now=utc_now() - timedelta(days=3))
    drive_purchase(disputed, buyer, until="delivered", now=utc_now() - timedelta(days=3))
    drive_purchase(fresh, buyer, until="delivered")
    with unit_of_work(db_session):
        escrow = latest_escrow(db_session, disputed.id)
        escrow.status = models.EscrowStatus.DISPUTED

    assert [w.masterpiece_id for w in expired_delivered_workflows(db_session)] == [due.id]

    result = run_escrow_sweep(minter=minter, auto_release=True)

    assert result.completed == 1
    assert result.failed == 0
    assert minter.scheduled == [due.id]

    db_session.expire_all()
    statuses = {
        w.masterpiece_id: w.status for w in db_session.query(models.PurchaseWorkflow).all()
    }
    assert statuses == {
        due.id: models.WorkflowStatus.COMPLETED,
        disputed.id: models.WorkflowStatus.DELIVERED,
        fresh.id: models.WorkflowStatus.DELIVERED,
    }
    piece = db_session.get(models.Masterpiece, due.id)
    assert piece.status == models.MasterpieceStatus.sold
    assert piece.current_owner_id == buyer.id
    audit = db_session.query(models.AuditLog).filter_by(action="ADVANCE_WORKFLOW", target_id=due.id)
    assert any(row.user_id is None for row in audit)


def test_sweep_respects_auto_release_switch(db_session, make_masterpiece, buyer, drive_purchase, minter):
    piece = make_masterpiece()
    drive_purchase(piece, buyer, until="delivered", now=utc_now() - timedelta(days=3))

    result = run_escrow_sweep(minter=minter, auto_release=False)

    assert result.completed == 0
    assert minter.scheduled == []
    db_session.expire_all()
    workflow = db_session.query(models.PurchaseWorkflow).filter_by(masterpiece_id=piece.id).one()
    assert workflow.status == models.WorkflowStatus.DELIVERED


def test_sweep_expires_soft_reservations(db_session, make_masterpiece, buyer, vip, admin):
    expired = make_masterpiece()
    active = make_masterpiece()
    with unit_of_work(db_session):
        reserve_masterpiece(
            db_session,
            masterpiece_id=expired.id,
            user_id=vip.id,
            hours=1,
            vip=True,
            admin=admin,
            now=utc_now() - timedelta(hours=2),
        )
        reserve_masterpiece(
            db_session, masterpiece_id=active.id, user_id=buyer.id, hours=24, vip=False, admin=admin
        )

    result = run_escrow_sweep(auto_release=False)

    assert result.expired_reservations == 1
    db_session.expire_all()
    assert db_session.get(models.Masterpiece, expired.id).status == models.MasterpieceStatus.available
    assert (
        db_session.get(models.Masterpiece, active.id).status
        == models.MasterpieceStatus.reserved_client
    )


def test_runner_start_stop_is_idempotent():
    runner = EscrowSweepRunner(interval_seconds=3600)
    runner.start()
    runner.start()
    runner.stop(timeout=1)
    assert not runner._thread.is_alive()


class _RecordingConnection:
    def __init__(self, lock_granted):
        self.lock_granted = lock_granted
        self.statements = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False

    def execute(self, clause, params=None):
        self.statements.append(str(clause))
        return SimpleNamespace(scalar=lambda: self.lock_granted)


class _PostgresBind:
    dialect = SimpleNamespace(name="postgresql")

    def __init__(self, lock_granted=True):
        self.lock_granted = lock_granted
        self.connections = []

    def connect(self):
        conn = _RecordingConnection(self.lock_granted)
        self.connections.append(conn)
        return conn


def test_sweep_lock_is_released_on_the_connection_that_took_it():
    bind = _PostgresBind()

    with hold_sweep_lock(bind) as got_lock:
        assert got_lock is True
        assert bind.connections[0].closed is False

    (conn,) = bind.connections
    assert conn.statements == [
        "SELECT pg_try_advisory_lock(:k)",
        "SELECT pg_advisory_unlock(:k)",
    ]
    assert conn.closed is True


def test_sweep_lock_held_elsewhere_is_not_unlocked():
    bind = _PostgresBind(lock_granted=False)

    with hold_sweep_lock(bind) as got_lock:
        assert got_lock is False

    assert bind.connections[0].statements == ["SELECT pg_try_advisory_lock(:k)"]


def test_sweep_lock_is_a_no_op_off_postgres(db_session):
    with hold_sweep_lock(db_session.get_bind()) as got_lock:
        assert got_lock is True
