import pytest

from app import models
from app.database import unit_of_work
from app.services.errors import ConflictError, ErrorCode, NotFoundError, ValidationFailed
from app.services.masterpieces import (
    add_service_record,
    assign_masterpiece,
    create_masterpiece,
    generate_certificate,
)
from app.services.rarity import rarity_breakdown, recompute_rarity, score_rarity


def test_score_rarity_components():
    breakdown = score_rarity(
        rarity_category="Unique",
        materials="Platinum and white gold",
        gemstones="sapphire, diamond, tanzanite, spinel",
        provenance_count=3,
        service_count=1,
        bid_count=4,
    )
    assert breakdown.as_dict() == {
        "category": 40,
        "materials": 10,
        "gemstones": 10,
        "provenance": 6,
        "service": 2,
        "bids": 4,
        "total": 72,
    }


def test_score_rarity_caps_each_component_and_total():
    breakdown = score_rarity(
        rarity_category="Unique",
        materials="gold",
        gemstones="a,b,c,d,e",
        provenance_count=50,
        service_count=50,
        bid_count=50,
    )
    assert breakdown.provenance == 20
    assert breakdown.service == 10
    assert breakdown.bids == 10
    assert breakdown.total == 100


def test_score_rarity_unknown_category_and_few_stones():
    breakdown = score_rarity(
        rarity_category="mystery",
        materials="silver",
        gemstones="ruby, emerald, topaz",
        provenance_count=0,
        service_count=0,
        bid_count=0,
    )
    assert breakdown.total == 0


def test_score_rarity_category_is_case_sensitive():
    assert score_rarity(
        rarity_category="unique",
        materials=None,
        gemstones=None,
        provenance_count=0,
        service_count=0,
        bid_count=0,
    ).category == 0
    assert score_rarity(
        rarity_category="Standard",
        materials=None,
        gemstones=None,
        provenance_count=0,
        service_count=0,
        bid_count=0,
    ).category == 5


def test_score_rarity_counts_blank_gemstone_entries():
    breakdown = score_rarity(
        rarity_category=None,
        materials=None,
        gemstones="ruby,sapphire,emerald,",
        provenance_count=0,
        service_count=0,
        bid_count=0,
    )
    assert breakdown.gemstones == 10


def test_create_masterpiece_records_creation(db_session, admin):
    with unit_of_work(db_session):
        piece = create_masterpiece(
            db_session,
            admin=admin,
            data={
                "serial_id": "AV-0100",
                "title": "Aurora Necklace",
                "rarity_category": "Unique",
                "materials": "platinum",
                "gemstones": "sapphire, diamond, tanzanite, spinel",
                "valuation": 185000.0,
            },
        )

    assert piece.status == models.MasterpieceStatus.available
    assert piece.blockchain_hash.startswith("0x")
    assert len(piece.blockchain_hash) == 66
    events = db_session.query(models.ProvenanceEvent).filter_by(masterpiece_id=piece.id).all()
    assert [e.event_type for e in events] == [models.ProvenanceEventType.creation]
    assert piece.rarity_score == 40 + 10 + 10 + 2
    audit = db_session.query(models.AuditLog).filter_by(action="CREATE_MASTERPIECE").one()
    assert audit.user_id == admin.id
    assert audit.target_id == piece.id


def test_duplicate_serial_conflicts(db_session, admin, make_masterpiece):
    make_masterpiece(serial_id="AV-DUP")

    with pytest.raises(ConflictError) as exc:
        with unit_of_work(db_session):
            create_masterpiece(
                db_session, admin=admin, data={"serial_id": "AV-DUP", "title": "Twin", "valuation": 1.0}
            )
    assert exc.value.code == ErrorCode.duplicate_serial


def test_invalid_deposit_pct_is_rejected(db_session, admin):
    with pytest.raises(ValidationFailed):
        with unit_of_work(db_session):
            create_masterpiece(
                db_session,
                admin=admin,
                data={"serial_id": "AV-BAD", "title": "Bad", "valuation": 10.0, "deposit_pct": 120},
            )
    assert db_session.query(models.Masterpiece).count() == 0


def test_service_record_raises_valuation_and_rarity(db_session, admin, make_masterpiece):
    piece = make_masterpiece(valuation=10000.0)
    before = piece.rarity_score

    with unit_of_work(db_session):
        add_service_record(
            db_session,
            masterpiece_id=piece.id,
            admin=admin,
            service_type="polish",
            description="Full polish",
            cost=800.0,
        )

    db_session.refresh(piece)
    assert piece.valuation == 10400.0
    # one service (+2) and one service provenance entry (+2)
    assert piece.rarity_score == before + 4
    assert rarity_breakdown(db_session, piece).service == 2


def test_recompute_rarity_is_idempotent(db_session, make_masterpiece):
    piece = make_masterpiece()
    first = recompute_rarity(db_session, piece.id)
    second = recompute_rarity(db_session, piece.id)
    assert first == second == piece.rarity_score


def test_assign_sets_owner_and_history(db_session, admin, buyer, make_masterpiece):
    piece = make_masterpiece()

    with unit_of_work(db_session):
        assign_masterpiece(db_session, masterpiece_id=piece.id, user_id=buyer.id, admin=admin)

    db_session.refresh(piece)
    assert piece.status == models.MasterpieceStatus.sold
    assert piece.current_owner_id == buyer.id
    record = db_session.query(models.OwnershipRecord).filter_by(masterpiece_id=piece.id).one()
    assert record.source == "assignment"
    assert record.price == piece.valuation


def test_certificate_requires_an_owner(db_session, admin, buyer, make_masterpiece):
    piece = make_masterpiece()

    with pytest.raises(NotFoundError) as exc:
        with unit_of_work(db_session):
            generate_certificate(db_session, masterpiece_id=piece.id, admin=admin)
    assert exc.value.code == ErrorCode.owner_not_found

    with unit_of_work(db_session):
        assign_masterpiece(db_session, masterpiece_id=piece.id, user_id=buyer.id, admin=admin)
    with unit_of_work(db_session):
        cert = generate_certificate(db_session, masterpiece_id=piece.id, admin=admin)

    assert cert.cert_id.startswith("CERT_")
    assert cert.owner_id == buyer.id
    assert cert.digital_signature == "DIGITAL_SIG_ATELIER"
