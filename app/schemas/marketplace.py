from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.marketplace import AuctionStatus, NegotiationStatus


class AuctionCreate(BaseModel):
    masterpiece_id: int
    start_price: float = Field(gt=0)
    end_time: Optional[datetime] = None
    vip_only: bool = False
    terms: Optional[str] = None


class AuctionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    masterpiece_id: int
    start_price: float
    current_bid: float
    highest_bidder_id: Optional[int] = None
    end_time: Optional[datetime] = None
    status: AuctionStatus
    vip_only: bool
    terms: Optional[str] = None
    closed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class BidCreate(BaseModel):
    auction_id: int
    amount: float = Field(gt=0)


class BidRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    auction_id: int
    user_id: int
    amount: float
    created_at: Optional[datetime] = None


class ResaleListing(BaseModel):
    masterpiece_id: int
    price: float = Field(gt=0)
    private: bool = False


class ResaleReview(BaseModel):
    masterpiece_id: int
    approve: bool


class NegotiationCreate(BaseModel):
    masterpiece_id: int
    offered_price: float = Field(gt=0)


class NegotiationMessageCreate(BaseModel):
    negotiation_id: int
    message: str = Field(min_length=1)


class NegotiationAction(BaseModel):
    negotiation_id: int


class NegotiationMessageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    negotiation_id: int
    sender_id: int
    message: str
    created_at: Optional[datetime] = None


class NegotiationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    masterpiece_id: int
    seller_id: int
    buyer_id: int
    offered_price: float
    platform_fee: float
    status: NegotiationStatus
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    messages: list[NegotiationMessageRead] = []


class ShareAllocation(BaseModel):
    user_id: int
    percentage: float = Field(gt=0, le=100)


class FractionalInitialize(BaseModel):
    masterpiece_id: int
    shares: list[ShareAllocation] = Field(min_length=1)


class ShareRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    masterpiece_id: int
    owner_id: int
    percentage: float
    created_at: Optional[datetime] = None


class ShareTransferCreate(BaseModel):
    share_id: int
    to_user_id: int
    percentage: float = Field(gt=0, le=100)
    price: float = Field(ge=0)


class ShareTransferRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    share_id: int
    from_user_id: int
    to_user_id: int
    percentage: float
    price: float
    fee: float
    created_at: Optional[datetime] = None


class RevenueCreate(BaseModel):
    entry_type: str = Field(min_length=1, max_length=32)
    amount: float
    masterpiece_id: Optional[int] = None
    description: Optional[str] = None


class RevenueRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    masterpiece_id: Optional[int] = None
    entry_type: str
    amount: float
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class RevenueSummary(BaseModel):
    entries: list[RevenueRead]
    totals: dict[str, float]
    total: float
