import pytest

from app import models
from app.database import unit_of_work
from app.services.atelier import (
    add_insurance_policy,
    add_moment,
    production_progress,
    update_delivery,
    update_production_step,
    update_shipping,
)
from app.services.clienteling import (
    apply_for_role,
    open_concierge_request,
    post_concierge_message,
    reserve_masterpiece,
    review_application,
    update_concierge_request,
)
from app.services.errors import ErrorCode, ForbiddenError, RejectedError, ValidationFailed
from app.services.purchase_workflow import request_purchase


def test_reservation_blocks_other_collectors(db_session, admin, buyer, vip, make_masterpiece):
    piece = make_masterpiece()
    with unit_of_work(db_session):
        reservation = reserve_masterpiece(
            db_session, masterpiece_id=piece.id, user_id=vip.id, hours=12, vip=True, admin=admin
        )
    db_session.refresh(piece)
    assert piece.status == models.MasterpieceStatus.reserved_vip
    assert reservation.reservation_type == "vip"

    with pytest.raises(RejectedError) as exc:
        with unit_of_work(db_session):
            request_purchase(db_session, buyer=buyer, masterpiece_id=piece.id)
    assert exc.value.code == ErrorCode.reserved_for_other

    with unit_of_work(db_session):
        request_purchase(db_session, buyer=vip, masterpiece_id=piece.id)
    db_session.refresh(piece)
    db_session.refresh(reservation)
    assert piece.status == models.MasterpieceStatus.reserved
    assert reservation.status == "converted"


def test_reservation_needs_positive_hours(db_session, admin, buyer, make_masterpiece):
    piece = make_masterpiece()
    with pytest.raises(ValidationFailed):
        with unit_of_work(db_session):
            reserve_masterpiece(
                db_session, masterpiece_id=piece.id, user_id=buyer.id, hours=0, vip=False, admin=admin
            )


def test_vip_application_approval_grants_role(db_session, admin, buyer):
    with unit_of_work(db_session):
        application = apply_for_role(
            db_session,
            user=buyer,
            application_type=models.RoleName.vip,
            motivation="Long-time collector",
        )
    assert application.status == models.ApprovalStatus.pending

    with unit_of_work(db_session):
        review_application(db_session, application_id=application.id, approve=True, admin=admin)

    db_session.refresh(buyer)
    assert buyer.role == models.RoleName.vip
    assert buyer.is_vip is True
    assert application.reviewed_by == admin.id


def test_declined_application_keeps_role(db_session, admin, buyer):
    with unit_of_work(db_session):
        application = apply_for_role(
            db_session, user=buyer, application_type=models.RoleName.investor, motivation=None
        )
    with unit_of_work(db_session):
        review_application(db_session, application_id=application.id, approve=False, admin=admin)

    db_session.refresh(buyer)
    assert buyer.role == models.RoleName.client
    assert application.status == models.ApprovalStatus.rejected


def test_admin_role_cannot_be_applied_for(db_session, buyer):
    with pytest.raises(ValidationFailed) as exc:
        with unit_of_work(db_session):
            apply_for_role(
                db_session, user=buyer, application_type=models.RoleName.admin, motivation="please"
            )
    assert exc.value.code == ErrorCode.invalid_field


def test_concierge_conversation(db_session, admin, buyer, make_user, make_masterpiece):
    piece = make_masterpiece()
    stranger = make_user("Sam Stranger")
    with unit_of_work(db_session):
        request = open_concierge_request(
            db_session,
            user=buyer,
            request_type="resizing",
            details="Half a size down",
            masterpiece_id=piece.id,
        )
    assert request.status == models.ConciergeStatus.open

    with unit_of_work(db_session):
        post_concierge_message(db_session, request_id=request.id, sender=buyer, message="Any news?")
    with unit_of_work(db_session):
        post_concierge_message(db_session, request_id=request.id, sender=admin, message="Next week.")

    with pytest.raises(ForbiddenError):
        with unit_of_work(db_session):
            post_concierge_message(db_session, request_id=request.id, sender=stranger, message="Hi")

    assert db_session.query(models.ConciergeMessage).filter_by(request_id=request.id).count() == 2
    replies = db_session.query(models.Notification).filter_by(user_id=buyer.id).all()
    assert any("replied" in n.message for n in replies)

    with unit_of_work(db_session):
        update_concierge_request(
            db_session,
            request_id=request.id,
            status=models.ConciergeStatus.completed,
            admin=admin,
            admin_notes="Resized",
        )

    db_session.refresh(request)
    assert request.status == models.ConciergeStatus.completed
    assert request.admin_notes == "Resized"
    services = (
        db_session.query(models.ProvenanceEvent)
        .filter_by(masterpiece_id=piece.id, event_type=models.ProvenanceEventType.service)
        .count()
    )
    assert services == 1


def test_production_steps_upsert(db_session, admin, make_masterpiece):
    piece = make_masterpiece()
    with unit_of_work(db_session):
        update_production_step(
            db_session,
            masterpiece_id=piece.id,
            step_index=1,
            status="in_progress",
            notes="Casting",
            admin=admin,
        )
    with unit_of_work(db_session):
        update_production_step(
            db_session,
            masterpiece_id=piece.id,
            step_index=1,
            status="completed",
            notes=None,
            admin=admin,
        )

    progress = production_progress(db_session, piece.id)
    assert len(progress) == 10
    assert progress[0]["status"] == "pending"
    assert progress[1]["step_name"] == "Production started"
    assert progress[1]["status"] == "completed"
    assert db_session.query(models.ProductionStep).count() == 1


@pytest.mark.parametrize("step_index, status", [(10, "pending"), (-1, "pending"), (2, "paused")])
def test_production_step_validation(db_session, admin, make_masterpiece, step_index, status):
    piece = make_masterpiece()
    with pytest.raises(ValidationFailed):
        with unit_of_work(db_session):
            update_production_step(
                db_session,
                masterpiece_id=piece.id,
                step_index=step_index,
                status=status,
                notes=None,
                admin=admin,
            )


def test_delivery_and_shipping_upserts(db_session, admin, make_masterpiece):
    piece = make_masterpiece()
    with unit_of_work(db_session):
        update_delivery(
            db_session,
            masterpiece_id=piece.id,
            fields={"address": "1 Place Vendome", "courier": "Malca-Amit"},
            admin=admin,
        )
    with unit_of_work(db_session):
        delivery = update_delivery(
            db_session, masterpiece_id=piece.id, fields={"status": "in_transit"}, admin=admin
        )
    assert delivery.address == "1 Place Vendome"
    assert delivery.status == "in_transit"
    assert db_session.query(models.DeliveryDetail).count() == 1

    with unit_of_work(db_session):
        update_shipping(
            db_session,
            masterpiece_id=piece.id,
            fields={"carrier": "Brink's"},
            admin=admin,
            location="Geneva",
        )
    with unit_of_work(db_session):
        shipping = update_shipping(
            db_session,
            masterpiece_id=piece.id,
            fields={"status": "in_transit"},
            admin=admin,
            location="Paris",
            note="Handed to courier",
        )

    assert shipping.carrier == "Brink's"
    assert [entry["location"] for entry in shipping.custody_log] == ["Geneva", "Paris"]
    assert [entry["status"] for entry in shipping.custody_log] == ["preparing", "in_transit"]


def test_insurance_requires_coverage(db_session, admin, make_masterpiece):
    piece = make_masterpiece()
    with pytest.raises(ValidationFailed) as exc:
        with unit_of_work(db_session):
            add_insurance_policy(
                db_session,
                masterpiece_id=piece.id,
                fields={"provider": "Hiscox", "policy_number": "HX-1", "coverage_amount": 0},
                admin=admin,
            )
    assert exc.value.code == ErrorCode.invalid_amount

    with unit_of_work(db_session):
        policy = add_insurance_policy(
            db_session,
            masterpiece_id=piece.id,
            fields={"provider": "Hiscox", "policy_number": "HX-1", "coverage_amount": 120000.0},
            admin=admin,
        )
    assert policy.masterpiece_id == piece.id


def test_moment_is_recorded_and_audited(db_session, admin, make_masterpiece):
    piece = make_masterpiece()
    with unit_of_work(db_session):
        moment = add_moment(
            db_session,
            masterpiece_id=piece.id,
            title="Stone setting",
            description=None,
            media_url="https://cdn.vault.test/m/1.jpg",
            admin=admin,
        )
    assert moment.id is not None
    assert db_session.query(models.AuditLog).filter_by(action="ADD_MOMENT").count() == 1
