from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from app import models
from app.database import unit_of_work
from app.services.contracts import issue_contract, revise_contract, sign_contract
from app.services.document_numbering import format_document_ref, next_document_ref
from app.services.document_pdf import contract_pdf_bytes
from app.services.documents import DocumentOptions, HtmlDocumentRenderer, client_ref_for
from app.services.errors import ConflictError, ErrorCode, ForbiddenError
from app.services.users import register_user, review_user

OCT_2026 = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


def test_format_document_ref():
    assert format_document_ref(prefix="DEP", seq=1, now=OCT_2026) == "DEP_001-10.26"
    assert format_document_ref(prefix="CERT", seq=42, now=OCT_2026) == "CERT_042-10.26"
    assert format_document_ref(prefix="INV", seq=1234, now=OCT_2026) == "INV_1234-10.26"


def test_sequences_are_per_type_and_month(db_session):
    november = datetime(2026, 11, 2, tzinfo=timezone.utc)

    refs = [
        next_document_ref(db_session, doc_type=models.ContractType.deposit, now=OCT_2026).formatted,
        next_document_ref(db_session, doc_type=models.ContractType.deposit, now=OCT_2026).formatted,
        next_document_ref(db_session, doc_type=models.ContractType.invoice, now=OCT_2026).formatted,
        next_document_ref(db_session, doc_type=models.ContractType.deposit, now=november).formatted,
    ]
    db_session.commit()

    assert refs == ["DEP_001-10.26", "DEP_002-10.26", "INV_001-10.26", "DEP_001-11.26"]
    assert db_session.query(models.DocumentSequence).count() == 3


def test_renderer_invoice_shows_balance_and_escrow_clause():
    buyer = SimpleNamespace(id=7, name="marguerite Dubois")
    piece = SimpleNamespace(
        title="Aurora Necklace",
        serial_id="AV-0001",
        description="x" * 300,
        materials="platinum",
        gemstones="sapphire",
        valuation=185000.0,
        status=models.MasterpieceStatus.reserved,
        blockchain_hash=None,
    )
    doc = HtmlDocumentRenderer().render(
        "invoice",
        "First paragraph.\n\nSecond <paragraph>.",
        buyer,
        piece,
        DocumentOptions(
            doc_ref="INV_001-10.26",
            issued_on=date(2026, 10, 19),
            balance_due=166500.0,
            escrow_enabled=True,
        ),
    )

    assert doc.title == "Final Invoice"
    assert "INV_001-10.26" in doc.html
    assert "CL-7-MAR" in doc.html
    assert "Balance Due" in doc.html
    assert "166,500.00 EUR" in doc.html
    assert "48-hour inspection" in doc.html
    assert "PENDING_VERIFICATION" in doc.html
    assert "x" * 180 + "..." in doc.html
    assert "x" * 181 not in doc.html
    assert "Second &lt;paragraph&gt;." in doc.html
    assert "<paragraph>" not in doc.html


def test_renderer_non_invoice_shows_status():
    buyer = SimpleNamespace(id=3, name="Li")
    piece = SimpleNamespace(
        title="Ring",
        serial_id="AV-9",
        description="",
        materials="",
        gemstones="",
        valuation=10.0,
        status=models.MasterpieceStatus.available,
        blockchain_hash="0xabc",
    )
    doc = HtmlDocumentRenderer().render(
        "deposit", "Body", buyer, piece, DocumentOptions(doc_ref="DEP_001-10.26", issued_on=date.today())
    )

    assert doc.title == "Deposit Agreement"
    assert "AVAILABLE" in doc.html
    assert "Balance Due" not in doc.html
    assert "inspection" not in doc.html
    assert "0xabc" in doc.html
    assert client_ref_for(buyer) == "CL-3-LI"


def test_contract_pdf_is_a_pdf(db_session, make_masterpiece, buyer):
    piece = make_masterpiece(title="Meridian (Cuff)")
    with unit_of_work(db_session):
        contract = issue_contract(
            db_session,
            contract_type=models.ContractType.deposit,
            user=buyer,
            masterpiece=piece,
            body="Deposit terms apply.",
        )

    pdf = contract_pdf_bytes(contract)

    assert pdf.startswith(b"%PDF-1.4")
    assert pdf.rstrip().endswith(b"%%EOF")
    assert contract.doc_ref.encode() in pdf
    assert b"Meridian \\(Cuff\\)" in pdf


def test_only_holder_or_admin_signs(db_session, make_masterpiece, buyer, make_user, admin):
    piece = make_masterpiece()
    stranger = make_user("Sam Stranger")
    with unit_of_work(db_session):
        contract = issue_contract(
            db_session,
            contract_type=models.ContractType.deposit,
            user=buyer,
            masterpiece=piece,
            body="Terms.",
        )

    with pytest.raises(ForbiddenError):
        with unit_of_work(db_session):
            sign_contract(db_session, contract_id=contract.id, actor=stranger, method="click")

    with unit_of_work(db_session):
        signed = sign_contract(
            db_session,
            contract_id=contract.id,
            actor=admin,
            method="typed",
            data={"name": "Bruno Buyer"},
        )
    assert signed.status == models.ContractStatus.signed
    assert signed.signed_at is not None
    assert signed.signature_method == "typed"
    assert signed.meta["signature"]["data"] == {"name": "Bruno Buyer"}


def test_vip_applicant_is_promoted_after_signing(db_session, admin):
    with unit_of_work(db_session):
        user = register_user(
            db_session,
            email="Vivienne@Example.com",
            name="Vivienne",
            password="a-long-password",
            wants_vip=True,
        )
    assert user.email == "vivienne@example.com"
    assert user.status == models.ApprovalStatus.pending

    with unit_of_work(db_session):
        review_user(db_session, user_id=user.id, approve=True, admin=admin)

    vip_contract = (
        db_session.query(models.Contract)
        .filter(models.Contract.user_id == user.id, models.Contract.contract_type == models.ContractType.vip)
        .one()
    )
    assert vip_contract.doc_ref.startswith("VIP_001-")
    assert vip_contract.status == models.ContractStatus.draft

    with unit_of_work(db_session):
        sign_contract(db_session, contract_id=vip_contract.id, actor=user, method="click")

    db_session.refresh(user)
    assert user.status == models.ApprovalStatus.approved
    assert user.role == models.RoleName.vip
    assert user.is_vip is True


def test_revision_archives_original_and_bumps_version(db_session, make_masterpiece, buyer, admin):
    piece = make_masterpiece()
    with unit_of_work(db_session):
        original = issue_contract(
            db_session,
            contract_type=models.ContractType.deposit,
            user=buyer,
            masterpiece=piece,
            body="Original terms.",
        )

    with unit_of_work(db_session):
        revised = revise_contract(
            db_session, contract_id=original.id, body="Revised terms.", admin=admin
        )

    db_session.refresh(original)
    assert original.status == models.ContractStatus.archived
    assert revised.version == 2
    assert revised.parent_id == original.id
    assert revised.status == models.ContractStatus.draft
    assert revised.doc_ref != original.doc_ref
    assert "Revised terms." in revised.content
    assert "v2.0" in revised.content

    with pytest.raises(ConflictError) as exc:
        with unit_of_work(db_session):
            revise_contract(db_session, contract_id=original.id, body="Again.", admin=admin)
    assert exc.value.code == ErrorCode.invalid_transition
