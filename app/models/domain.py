# ruff: noqa: E501
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.database import Base


class RoleName(PyEnum):
    admin = "admin"
    client = "client"
    vip = "vip"
    reseller = "reseller"
    investor = "investor"
    seller = "seller"
    gallery = "gallery"
    partner = "partner"
    institution = "institution"
    viewer = "viewer"


class ApprovalStatus(PyEnum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class MasterpieceStatus(PyEnum):
    available = "available"
    reserved = "reserved"
    sold = "sold"
    auction = "auction"
    resell_pending = "resell_pending"
    reserved_vip = "reserved_vip"
    reserved_client = "reserved_client"
    listed_private = "listed_private"
    negotiation = "negotiation"
    escrow_pending = "escrow_pending"
    fractional_open = "fractional_open"


class WorkflowStatus(PyEnum):
    RESERVED = "RESERVED"
    PRODUCTION_STARTED = "PRODUCTION_STARTED"
    AWAITING_FINAL_PAYMENT = "AWAITING_FINAL_PAYMENT"
    FUNDS_HELD = "FUNDS_HELD"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"


class WorkflowStep(PyEnum):
    deposit_paid = "deposit_paid"
    production_finished = "production_finished"
    final_payment_paid = "final_payment_paid"
    delivered = "delivered"
    completed = "completed"


class PaymentType(PyEnum):
    deposit = "deposit"
    full = "full"


class PaymentStatus(PyEnum):
    pending = "pending"
    awaiting_deposit = "awaiting_deposit"
    awaiting_payment = "awaiting_payment"
    paid = "paid"
    rejected = "rejected"


class ContractType(PyEnum):
    deposit = "deposit"
    invoice = "invoice"
    vip = "vip"
    resale = "resale"
    certificate = "certificate"
    purchase = "purchase"


class ContractStatus(PyEnum):
    draft = "draft"
    signed = "signed"
    archived = "archived"


class EscrowStatus(PyEnum):
    HELD = "HELD"
    RELEASED = "RELEASED"
    DISPUTED = "DISPUTED"
    REFUNDED = "REFUNDED"


class ProvenanceEventType(PyEnum):
    creation = "creation"
    exhibition = "exhibition"
    service = "service"
    ownership_transfer = "ownership_transfer"
    auction = "auction"
    certificate = "certificate"
    vip_event = "vip_event"
    resale = "resale"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[RoleName] = mapped_column(
        Enum(RoleName, native_enum=False), nullable=False, default=RoleName.client
    )
    status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus, native_enum=False),
        nullable=False,
        default=ApprovalStatus.pending,
        index=True,
    )
    is_vip: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    account_type: Mapped[str] = mapped_column(String(32), default="individual", nullable=False)
    language: Mapped[str] = mapped_column(String(8), default="en", nullable=False)
    reputation_score: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    @property
    def active(self) -> bool:
        return self.status == ApprovalStatus.approved


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    target_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    payload_json: Mapped[str | None] = mapped_column(Text)

    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(256), nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(
        String(128), nullable=True, unique=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", lazy="joined")


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, default="info")
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class DocumentSequence(Base):
    __tablename__ = "document_sequences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    doc_type: Mapped[str] = mapped_column(String(16), nullable=False)
    year_month: Mapped[str] = mapped_column(String(6), nullable=False)  # YYYYMM
    last_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("doc_type", "year_month", name="uq_document_sequences_type_month"),
    )


class Masterpiece(Base):
    __tablename__ = "masterpieces"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    serial_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(String(64))
    materials: Mapped[str | None] = mapped_column(String(255))
    gemstones: Mapped[str | None] = mapped_column(String(255))
    image_url: Mapped[str | None] = mapped_column(String(512))
    rarity_category: Mapped[str] = mapped_column(String(32), nullable=False, default="Standard")
    rarity_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    valuation: Mapped[float] = mapped_column(Float, nullable=False)
    deposit_pct: Mapped[float] = mapped_column(Float, nullable=False, default=10.0)
    status: Mapped[MasterpieceStatus] = mapped_column(
        Enum(MasterpieceStatus, native_enum=False),
        nullable=False,
        default=MasterpieceStatus.available,
        index=True,
    )
    current_owner_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True, index=True
    )
    blockchain_hash: Mapped[str | None] = mapped_column(String(128))
    nft_token_id: Mapped[str | None] = mapped_column(String(64), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    owner = relationship("User", foreign_keys=[current_owner_id], lazy="joined")

    @validates("deposit_pct")
    def _validate_deposit_pct(self, _key, value: float):
        if value is None or float(value) < 0 or float(value) > 100:
            raise ValueError("deposit_pct must be between 0 and 100")
        return float(value)

    @validates("valuation")
    def _validate_valuation(self, _key, value: float):
        if value is None or float(value) < 0:
            raise ValueError("valuation must be >= 0")
        return float(value)


class OwnershipRecord(Base):
    """Append-only ownership history; the newest row names the current owner."""

    __tablename__ = "ownership_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, index=True
    )
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    price: Mapped[float | None] = mapped_column(Float)
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="purchase")
    acquired_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class ProvenanceEvent(Base):
    __tablename__ = "provenance_timeline"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, index=True
    )
    event_type: Mapped[ProvenanceEventType] = mapped_column(
        Enum(ProvenanceEventType, native_enum=False), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )


class ServiceRecord(Base):
    __tablename__ = "service_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, index=True
    )
    service_type: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    recorded_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    performed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PurchaseWorkflow(Base):
    __tablename__ = "purchase_workflows"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, unique=True, index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    status: Mapped[WorkflowStatus] = mapped_column(
        Enum(WorkflowStatus, native_enum=False),
        nullable=False,
        default=WorkflowStatus.RESERVED,
        index=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    deposit_contract_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deposit_paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    production_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    production_finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    final_payment_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    final_payment_received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    masterpiece = relationship("Masterpiece", lazy="joined")
    buyer = relationship("User", foreign_keys=[user_id], lazy="joined")


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, index=True
    )
    payment_type: Mapped[PaymentType] = mapped_column(
        Enum(PaymentType, native_enum=False), nullable=False
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False),
        nullable=False,
        default=PaymentStatus.pending,
        index=True,
    )
    iban: Mapped[str | None] = mapped_column(String(64))
    reference: Mapped[str | None] = mapped_column(String(64), index=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    confirmed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Contract(Base):
    __tablename__ = "contracts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    masterpiece_id: Mapped[int | None] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=True, index=True
    )
    contract_type: Mapped[ContractType] = mapped_column(
        Enum(ContractType, native_enum=False), nullable=False, index=True
    )
    doc_ref: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[ContractStatus] = mapped_column(
        Enum(ContractStatus, native_enum=False),
        nullable=False,
        default=ContractStatus.draft,
        index=True,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    parent_id: Mapped[int | None] = mapped_column(ForeignKey("contracts.id"), nullable=True)
    # Rendering inputs (body text, balance due, escrow flag) and signature payload.
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    signature_method: Mapped[str | None] = mapped_column(String(32))
    signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", lazy="joined")
    masterpiece = relationship("Masterpiece", lazy="joined")
    parent = relationship("Contract", remote_side=[id], viewonly=True)

    def _validate_invariants(self) -> None:
        if int(self.version or 0) < 1:
            raise ValueError("Contract.version must be >= 1")
        if self.status == ContractStatus.signed and self.signed_at is None:
            raise ValueError("Contract.signed_at is required when status=signed")


@event.listens_for(Contract, "before_insert")
def _contract_before_insert(_mapper, _connection, target: Contract):
    target._validate_invariants()


@event.listens_for(Contract, "before_update")
def _contract_before_update(_mapper, _connection, target: Contract):
    target._validate_invariants()


class EscrowTransaction(Base):
    __tablename__ = "escrow_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, index=True
    )
    buyer_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    # Null seller means the atelier itself.
    seller_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    negotiation_id: Mapped[int | None] = mapped_column(
        ForeignKey("resale_negotiations.id"), nullable=True, index=True
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[EscrowStatus] = mapped_column(
        Enum(EscrowStatus, native_enum=False),
        nullable=False,
        default=EscrowStatus.HELD,
        index=True,
    )
    dispute_window_ends: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    milestones: Mapped[list | None] = mapped_column(JSON, nullable=True)
    dispute_reason: Mapped[str | None] = mapped_column(Text)
    disputed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Certificate(Base):
    __tablename__ = "certificates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cert_id: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, index=True
    )
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    contract_id: Mapped[int | None] = mapped_column(ForeignKey("contracts.id"), nullable=True)
    digital_signature: Mapped[str] = mapped_column(String(128), nullable=False)
    blockchain_hash: Mapped[str | None] = mapped_column(String(128))
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    masterpiece = relationship("Masterpiece", lazy="joined")
