from datetime import datetime

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

PRODUCTION_STEP_NAMES: tuple[str, ...] = (
    "Deposit received",
    "Production started",
    "Production finished",
    "Quality control",
    "Ready for delivery",
    "Final payment requested",
    "Final payment received",
    "Shipped",
    "Delivered",
    "Completed",
)


class ProductionStep(Base):
    __tablename__ = "production_progress"
    __table_args__ = (
        UniqueConstraint("masterpiece_id", "step_index", name="uq_production_progress_step"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, index=True
    )
    step_index: Mapped[int] = mapped_column(Integer, nullable=False)
    step_name: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    notes: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class DeliveryDetail(Base):
    __tablename__ = "delivery_details"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, unique=True, index=True
    )
    address: Mapped[str | None] = mapped_column(Text)
    scheduled_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    courier: Mapped[str | None] = mapped_column(String(128))
    tracking_number: Mapped[str | None] = mapped_column(String(128))
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="scheduled")
    notes: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class ShippingOrder(Base):
    __tablename__ = "shipping_orchestration"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, unique=True, index=True
    )
    carrier: Mapped[str | None] = mapped_column(String(128))
    tracking_number: Mapped[str | None] = mapped_column(String(128))
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="preparing")
    insured_value: Mapped[float | None] = mapped_column(Float)
    # Ordered list of {"at", "status", "location", "note"} entries.
    custody_log: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class InsurancePolicy(Base):
    __tablename__ = "insurance_policies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, index=True
    )
    provider: Mapped[str] = mapped_column(String(128), nullable=False)
    policy_number: Mapped[str] = mapped_column(String(64), nullable=False)
    coverage_amount: Mapped[float] = mapped_column(Float, nullable=False)
    premium: Mapped[float | None] = mapped_column(Float)
    valid_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AtelierMoment(Base):
    __tablename__ = "atelier_moments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    media_url: Mapped[str | None] = mapped_column(String(512))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
