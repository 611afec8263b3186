"""init vault tables

Revision ID: 20261019_0001
Revises: None
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_0001_init_vault_tables"
down_revision = None
branch_labels = None
depends_on = None


def _enum(*values: str, name: str) -> sa.Enum:
    # Stored as VARCHAR everywhere so new members never need ALTER TYPE.
    return sa.Enum(*values, name=name, native_enum=False, create_constraint=False)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def _fk(column: str, target: str, nullable: bool = False, **kw) -> sa.Column:
    return sa.Column(column, sa.Integer(), sa.ForeignKey(target), nullable=nullable, **kw)


def _pk() -> sa.Column:
    return sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True)


ROLES = (
    "admin", "client", "vip", "reseller", "investor",
    "seller", "gallery", "partner", "institution", "viewer",
)
APPROVAL = ("pending", "approved", "rejected")
MASTERPIECE_STATUS = (
    "available", "reserved", "sold", "auction", "resell_pending", "reserved_vip",
    "reserved_client", "listed_private", "negotiation", "escrow_pending", "fractional_open",
)
WORKFLOW_STATUS = (
    "RESERVED", "PRODUCTION_STARTED", "AWAITING_FINAL_PAYMENT", "FUNDS_HELD", "DELIVERED", "COMPLETED",
)
PAYMENT_STATUS = ("pending", "awaiting_deposit", "awaiting_payment", "paid", "rejected")
CONTRACT_TYPES = ("deposit", "invoice", "vip", "resale", "certificate", "purchase")
CONTRACT_STATUS = ("draft", "signed", "archived")
ESCROW_STATUS = ("HELD", "RELEASED", "DISPUTED", "REFUNDED")
PROVENANCE_TYPES = (
    "creation", "exhibition", "service", "ownership_transfer",
    "auction", "certificate", "vip_event", "resale",
)


def upgrade() -> None:
    op.create_table(
        "users",
        _pk(),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True, index=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("role", _enum(*ROLES, name="rolename"), nullable=False),
        sa.Column("status", _enum(*APPROVAL, name="approvalstatus"), nullable=False, index=True),
        sa.Column("is_vip", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("account_type", sa.String(length=32), nullable=False),
        sa.Column("language", sa.String(length=8), nullable=False),
        sa.Column("reputation_score", sa.Integer(), nullable=False),
        _created_at(),
    )

    op.create_table(
        "audit_logs",
        _pk(),
        sa.Column("action", sa.String(length=128), nullable=False, index=True),
        _fk("user_id", "users.id", nullable=True, index=True),
        sa.Column("target_id", sa.Integer(), index=True),
        sa.Column("payload_json", sa.Text()),
        sa.Column("request_id", sa.String(length=64), index=True),
        sa.Column("ip", sa.String(length=64)),
        sa.Column("user_agent", sa.String(length=256)),
        sa.Column("idempotency_key", sa.String(length=128), unique=True, index=True),
        _created_at(),
    )

    op.create_table(
        "notifications",
        _pk(),
        _fk("user_id", "users.id", index=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )

    op.create_table(
        "document_sequences",
        _pk(),
        sa.Column("doc_type", sa.String(length=16), nullable=False),
        sa.Column("year_month", sa.String(length=6), nullable=False),
        sa.Column("last_seq", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.UniqueConstraint("doc_type", "year_month", name="uq_document_sequences_type_month"),
    )

    op.create_table(
        "masterpieces",
        _pk(),
        sa.Column("serial_id", sa.String(length=64), nullable=False, unique=True, index=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("category", sa.String(length=64)),
        sa.Column("materials", sa.String(length=255)),
        sa.Column("gemstones", sa.String(length=255)),
        sa.Column("image_url", sa.String(length=512)),
        sa.Column("rarity_category", sa.String(length=32), nullable=False),
        sa.Column("rarity_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("valuation", sa.Float(), nullable=False),
        sa.Column("deposit_pct", sa.Float(), nullable=False),
        sa.Column(
            "status", _enum(*MASTERPIECE_STATUS, name="masterpiecestatus"), nullable=False, index=True
        ),
        _fk("current_owner_id", "users.id", nullable=True, index=True),
        sa.Column("blockchain_hash", sa.String(length=128)),
        sa.Column("nft_token_id", sa.String(length=64), unique=True),
        _created_at(),
        _updated_at(),
    )

    op.create_table(
        "ownership_history",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", index=True),
        _fk("owner_id", "users.id", index=True),
        sa.Column("price", sa.Float()),
        sa.Column("source", sa.String(length=32), nullable=False),
        sa.Column(
            "acquired_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )

    op.create_table(
        "provenance_timeline",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", index=True),
        sa.Column(
            "event_type", _enum(*PROVENANCE_TYPES, name="provenanceeventtype"), nullable=False, index=True
        ),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("meta", sa.JSON()),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
    )

    op.create_table(
        "service_history",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", index=True),
        sa.Column("service_type", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("cost", sa.Float(), nullable=False),
        _fk("recorded_by", "users.id", nullable=True),
        sa.Column("performed_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "purchase_workflows",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", unique=True, index=True),
        _fk("user_id", "users.id", index=True),
        sa.Column("status", _enum(*WORKFLOW_STATUS, name="workflowstatus"), nullable=False, index=True),
        sa.Column("approved_at", sa.DateTime(timezone=True)),
        _fk("approved_by", "users.id", nullable=True),
        sa.Column("deposit_contract_sent_at", sa.DateTime(timezone=True)),
        sa.Column("deposit_paid_at", sa.DateTime(timezone=True)),
        sa.Column("production_started_at", sa.DateTime(timezone=True)),
        sa.Column("production_finished_at", sa.DateTime(timezone=True)),
        sa.Column("final_payment_requested_at", sa.DateTime(timezone=True)),
        sa.Column("final_payment_received_at", sa.DateTime(timezone=True)),
        sa.Column("delivered_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        _created_at(),
    )

    op.create_table(
        "payments",
        _pk(),
        _fk("user_id", "users.id", index=True),
        _fk("masterpiece_id", "masterpieces.id", index=True),
        sa.Column("payment_type", _enum("deposit", "full", name="paymenttype"), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("status", _enum(*PAYMENT_STATUS, name="paymentstatus"), nullable=False, index=True),
        sa.Column("iban", sa.String(length=64)),
        sa.Column("reference", sa.String(length=64), index=True),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        _fk("confirmed_by", "users.id", nullable=True),
        _created_at(),
    )

    op.create_table(
        "contracts",
        _pk(),
        _fk("user_id", "users.id", index=True),
        _fk("masterpiece_id", "masterpieces.id", nullable=True, index=True),
        sa.Column(
            "contract_type", _enum(*CONTRACT_TYPES, name="contracttype"), nullable=False, index=True
        ),
        sa.Column("doc_ref", sa.String(length=50), nullable=False, unique=True, index=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status", _enum(*CONTRACT_STATUS, name="contractstatus"), nullable=False, index=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        _fk("parent_id", "contracts.id", nullable=True),
        sa.Column("meta", sa.JSON()),
        sa.Column("signature_method", sa.String(length=32)),
        sa.Column("signed_at", sa.DateTime(timezone=True)),
        _created_at(),
    )

    op.create_table(
        "resale_negotiations",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", index=True),
        _fk("seller_id", "users.id", index=True),
        _fk("buyer_id", "users.id", index=True),
        sa.Column("offered_price", sa.Float(), nullable=False),
        sa.Column("platform_fee", sa.Float(), nullable=False),
        sa.Column(
            "status",
            _enum("open", "accepted", "completed", "cancelled", name="negotiationstatus"),
            nullable=False,
            index=True,
        ),
        sa.Column("accepted_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        _created_at(),
    )

    op.create_table(
        "escrow_transactions",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", index=True),
        _fk("buyer_id", "users.id", index=True),
        _fk("seller_id", "users.id", nullable=True),
        _fk("negotiation_id", "resale_negotiations.id", nullable=True, index=True),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("status", _enum(*ESCROW_STATUS, name="escrowstatus"), nullable=False, index=True),
        sa.Column("dispute_window_ends", sa.DateTime(timezone=True), nullable=False),
        sa.Column("milestones", sa.JSON()),
        sa.Column("dispute_reason", sa.Text()),
        sa.Column("disputed_at", sa.DateTime(timezone=True)),
        sa.Column("released_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "certificates",
        _pk(),
        sa.Column("cert_id", sa.String(length=50), nullable=False, unique=True, index=True),
        _fk("masterpiece_id", "masterpieces.id", index=True),
        _fk("owner_id", "users.id", index=True),
        _fk("contract_id", "contracts.id", nullable=True),
        sa.Column("digital_signature", sa.String(length=128), nullable=False),
        sa.Column("blockchain_hash", sa.String(length=128)),
        sa.Column("issued_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "auctions",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", index=True),
        sa.Column("start_price", sa.Float(), nullable=False),
        sa.Column("current_bid", sa.Float(), nullable=False),
        _fk("highest_bidder_id", "users.id", nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True)),
        sa.Column(
            "status", _enum("active", "ended", name="auctionstatus"), nullable=False, index=True
        ),
        sa.Column("vip_only", sa.Boolean(), nullable=False, server_default=sa.false(), index=True),
        sa.Column("terms", sa.Text()),
        sa.Column("closed_at", sa.DateTime(timezone=True)),
        _created_at(),
    )

    op.create_table(
        "bids",
        _pk(),
        _fk("auction_id", "auctions.id", index=True),
        _fk("user_id", "users.id", index=True),
        sa.Column("amount", sa.Float(), nullable=False),
        _created_at(),
    )

    op.create_table(
        "private_messages",
        _pk(),
        _fk("negotiation_id", "resale_negotiations.id", index=True),
        _fk("sender_id", "users.id"),
        sa.Column("message", sa.Text(), nullable=False),
        _created_at(),
    )

    op.create_table(
        "fractional_shares",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", index=True),
        _fk("owner_id", "users.id", index=True),
        sa.Column("percentage", sa.Float(), nullable=False),
        _created_at(),
    )

    op.create_table(
        "fractional_transfers",
        _pk(),
        _fk("share_id", "fractional_shares.id", index=True),
        _fk("from_user_id", "users.id"),
        _fk("to_user_id", "users.id"),
        sa.Column("percentage", sa.Float(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("fee", sa.Float(), nullable=False, server_default="0"),
        _created_at(),
    )

    op.create_table(
        "revenue_ledger",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", nullable=True, index=True),
        sa.Column("entry_type", sa.String(length=32), nullable=False, index=True),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("description", sa.Text()),
        _created_at(),
    )

    op.create_table(
        "production_progress",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", index=True),
        sa.Column("step_index", sa.Integer(), nullable=False),
        sa.Column("step_name", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("notes", sa.Text()),
        _updated_at(),
        sa.UniqueConstraint("masterpiece_id", "step_index", name="uq_production_progress_step"),
    )

    op.create_table(
        "delivery_details",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", unique=True, index=True),
        sa.Column("address", sa.Text()),
        sa.Column("scheduled_date", sa.DateTime(timezone=True)),
        sa.Column("courier", sa.String(length=128)),
        sa.Column("tracking_number", sa.String(length=128)),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("notes", sa.Text()),
        _updated_at(),
    )

    op.create_table(
        "shipping_orchestration",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", unique=True, index=True),
        sa.Column("carrier", sa.String(length=128)),
        sa.Column("tracking_number", sa.String(length=128)),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("insured_value", sa.Float()),
        sa.Column("custody_log", sa.JSON(), nullable=False),
        _updated_at(),
    )

    op.create_table(
        "insurance_policies",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", index=True),
        sa.Column("provider", sa.String(length=128), nullable=False),
        sa.Column("policy_number", sa.String(length=64), nullable=False),
        sa.Column("coverage_amount", sa.Float(), nullable=False),
        sa.Column("premium", sa.Float()),
        sa.Column("valid_until", sa.DateTime(timezone=True)),
        _created_at(),
    )

    op.create_table(
        "atelier_moments",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", index=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("media_url", sa.String(length=512)),
        _created_at(),
    )

    op.create_table(
        "waitlist",
        _pk(),
        _fk("user_id", "users.id", index=True),
        _fk("masterpiece_id", "masterpieces.id", nullable=True, index=True),
        sa.Column("category", sa.String(length=64)),
        sa.Column("notes", sa.Text()),
        _created_at(),
    )

    op.create_table(
        "reservations",
        _pk(),
        _fk("masterpiece_id", "masterpieces.id", index=True),
        _fk("user_id", "users.id", index=True),
        sa.Column("reservation_type", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, index=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
    )

    op.create_table(
        "collector_profiles",
        _pk(),
        _fk("user_id", "users.id", unique=True, index=True),
        sa.Column("preferences", sa.JSON()),
        sa.Column("favorite_materials", sa.String(length=255)),
        sa.Column("budget_min", sa.Float()),
        sa.Column("budget_max", sa.Float()),
        sa.Column("notes", sa.Text()),
        _updated_at(),
    )

    op.create_table(
        "concierge_requests",
        _pk(),
        _fk("user_id", "users.id", index=True),
        _fk("masterpiece_id", "masterpieces.id", nullable=True, index=True),
        sa.Column("request_type", sa.String(length=64), nullable=False),
        sa.Column("details", sa.Text()),
        sa.Column(
            "status",
            _enum("open", "in_progress", "completed", "cancelled", name="conciergestatus"),
            nullable=False,
            index=True,
        ),
        sa.Column("admin_notes", sa.Text()),
        _created_at(),
        _updated_at(),
    )

    op.create_table(
        "concierge_messages",
        _pk(),
        _fk("request_id", "concierge_requests.id", index=True),
        _fk("sender_id", "users.id"),
        sa.Column("message", sa.Text(), nullable=False),
        _created_at(),
    )

    op.create_table(
        "user_applications",
        _pk(),
        _fk("user_id", "users.id", index=True),
        sa.Column("application_type", _enum(*ROLES, name="rolename"), nullable=False),
        sa.Column("motivation", sa.Text()),
        sa.Column("status", _enum(*APPROVAL, name="approvalstatus"), nullable=False, index=True),
        _fk("reviewed_by", "users.id", nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True)),
        _created_at(),
    )

    op.create_table(
        "crm_interactions",
        _pk(),
        _fk("user_id", "users.id", index=True),
        _fk("admin_id", "users.id", nullable=True),
        sa.Column("interaction_type", sa.String(length=32), nullable=False),
        sa.Column("notes", sa.Text()),
        _created_at(),
    )

    op.create_table(
        "investor_requests",
        _pk(),
        _fk("user_id", "users.id", index=True),
        sa.Column("request_type", sa.String(length=64), nullable=False),
        sa.Column("details", sa.Text()),
        sa.Column("status", sa.String(length=16), nullable=False),
        _created_at(),
    )

    op.create_table(
        "investor_view_logs",
        _pk(),
        _fk("user_id", "users.id", index=True),
        sa.Column("resource", sa.String(length=128), nullable=False),
        _created_at(),
    )

    op.create_table(
        "private_events",
        _pk(),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("location", sa.String(length=255)),
        sa.Column("starts_at", sa.DateTime(timezone=True)),
        sa.Column("capacity", sa.Integer()),
        sa.Column("vip_only", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )

    op.create_table(
        "event_rsvps",
        _pk(),
        _fk("event_id", "private_events.id", index=True),
        _fk("user_id", "users.id", index=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("guests", sa.Integer(), nullable=False, server_default="0"),
        _updated_at(),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_rsvps_event_user"),
    )

    op.create_table(
        "collaborations",
        _pk(),
        sa.Column("partner_name", sa.String(length=255), nullable=False),
        _fk("partner_user_id", "users.id", nullable=True),
        _fk("masterpiece_id", "masterpieces.id", nullable=True),
        sa.Column("description", sa.Text()),
        sa.Column("status", sa.String(length=16), nullable=False),
        _created_at(),
    )


def downgrade() -> None:
    for table in (
        "collaborations",
        "event_rsvps",
        "private_events",
        "investor_view_logs",
        "investor_requests",
        "crm_interactions",
        "user_applications",
        "concierge_messages",
        "concierge_requests",
        "collector_profiles",
        "reservations",
        "waitlist",
        "atelier_moments",
        "insurance_policies",
        "shipping_orchestration",
        "delivery_details",
        "production_progress",
        "revenue_ledger",
        "fractional_transfers",
        "fractional_shares",
        "private_messages",
        "bids",
        "auctions",
        "certificates",
        "escrow_transactions",
        "resale_negotiations",
        "contracts",
        "payments",
        "purchase_workflows",
        "service_history",
        "provenance_timeline",
        "ownership_history",
        "masterpieces",
        "document_sequences",
        "notifications",
        "audit_logs",
        "users",
    ):
        op.drop_table(table)
