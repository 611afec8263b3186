from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class AuctionStatus(PyEnum):
    active = "active"
    ended = "ended"


class NegotiationStatus(PyEnum):
    open = "open"
    accepted = "accepted"
    completed = "completed"
    cancelled = "cancelled"


class Auction(Base):
    __tablename__ = "auctions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, index=True
    )
    start_price: Mapped[float] = mapped_column(Float, nullable=False)
    current_bid: Mapped[float] = mapped_column(Float, nullable=False)
    highest_bidder_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    status: Mapped[AuctionStatus] = mapped_column(
        Enum(AuctionStatus, native_enum=False),
        nullable=False,
        default=AuctionStatus.active,
        index=True,
    )
    vip_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    terms: Mapped[str | None] = mapped_column(Text)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    masterpiece = relationship("Masterpiece", lazy="joined")


class Bid(Base):
    __tablename__ = "bids"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auction_id: Mapped[int] = mapped_column(ForeignKey("auctions.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ResaleNegotiation(Base):
    __tablename__ = "resale_negotiations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, index=True
    )
    seller_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    buyer_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    offered_price: Mapped[float] = mapped_column(Float, nullable=False)
    platform_fee: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[NegotiationStatus] = mapped_column(
        Enum(NegotiationStatus, native_enum=False),
        nullable=False,
        default=NegotiationStatus.open,
        index=True,
    )
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    messages = relationship(
        "NegotiationMessage",
        back_populates="negotiation",
        order_by="NegotiationMessage.id",
        cascade="all, delete-orphan",
    )


class NegotiationMessage(Base):
    __tablename__ = "private_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    negotiation_id: Mapped[int] = mapped_column(
        ForeignKey("resale_negotiations.id"), nullable=False, index=True
    )
    sender_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    negotiation = relationship("ResaleNegotiation", back_populates="messages")


class FractionalShare(Base):
    __tablename__ = "fractional_shares"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    masterpiece_id: Mapped[int] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=False, index=True
    )
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    percentage: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class FractionalTransfer(Base):
    __tablename__ = "fractional_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    share_id: Mapped[int] = mapped_column(
        ForeignKey("fractional_shares.id"), nullable=False, index=True
    )
    from_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    to_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    percentage: Mapped[float] = mapped_column(Float, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    fee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class RevenueEntry(Base):
    __tablename__ = "revenue_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    masterpiece_id: Mapped[int | None] = mapped_column(
        ForeignKey("masterpieces.id"), nullable=True, index=True
    )
    entry_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
