from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.clienteling import ConciergeStatus
from app.models.domain import ApprovalStatus, RoleName


class WaitlistJoin(BaseModel):
    masterpiece_id: Optional[int] = None
    category: Optional[str] = None
    notes: Optional[str] = None


class WaitlistRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    masterpiece_id: Optional[int] = None
    category: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class ReservationCreate(BaseModel):
    masterpiece_id: int
    user_id: int
    hours: float = Field(default=48, gt=0)
    vip: bool = False


class ReservationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    masterpiece_id: int
    user_id: int
    reservation_type: str
    status: str
    expires_at: datetime
    created_at: Optional[datetime] = None


class CollectorProfileUpdate(BaseModel):
    preferences: Optional[dict[str, Any]] = None
    favorite_materials: Optional[str] = None
    budget_min: Optional[float] = Field(default=None, ge=0)
    budget_max: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class CollectorProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    preferences: Optional[dict[str, Any]] = None
    favorite_materials: Optional[str] = None
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None


class ConciergeRequestCreate(BaseModel):
    request_type: str = Field(min_length=1, max_length=64)
    details: Optional[str] = None
    masterpiece_id: Optional[int] = None


class ConciergeMessageCreate(BaseModel):
    request_id: int
    message: str = Field(min_length=1)


class ConciergeUpdate(BaseModel):
    request_id: int
    status: ConciergeStatus
    admin_notes: Optional[str] = None


class ConciergeMessageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: int
    sender_id: int
    message: str
    created_at: Optional[datetime] = None


class ConciergeRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    masterpiece_id: Optional[int] = None
    request_type: str
    details: Optional[str] = None
    status: ConciergeStatus
    admin_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    messages: list[ConciergeMessageRead] = []


class ApplicationCreate(BaseModel):
    application_type: RoleName
    motivation: Optional[str] = None


class ApplicationReview(BaseModel):
    application_id: int
    approve: bool


class ApplicationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    application_type: RoleName
    motivation: Optional[str] = None
    status: ApprovalStatus
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class CrmInteractionCreate(BaseModel):
    user_id: int
    interaction_type: str = Field(min_length=1, max_length=32)
    notes: Optional[str] = None


class CrmInteractionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    admin_id: Optional[int] = None
    interaction_type: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class InvestorRequestCreate(BaseModel):
    request_type: str = Field(min_length=1, max_length=64)
    details: Optional[str] = None


class InvestorRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    request_type: str
    details: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None


class InvestorViewCreate(BaseModel):
    resource: str = Field(min_length=1, max_length=128)


class InvestorViewRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    resource: str
    created_at: Optional[datetime] = None


class InvestorAnalytics(BaseModel):
    masterpieces: int
    total_valuation: float
    sold: int
    available: int
    average_rarity: float
    active_auctions: int
    completed_resales: int
    revenue_total: float


class PrivateEventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = None
    starts_at: Optional[datetime] = None
    capacity: Optional[int] = Field(default=None, ge=1)
    vip_only: bool = False


class PrivateEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    starts_at: Optional[datetime] = None
    capacity: Optional[int] = None
    vip_only: bool
    created_at: Optional[datetime] = None


class RsvpCreate(BaseModel):
    event_id: int
    status: str = Field(default="attending", pattern="^(attending|declined|maybe)$")
    guests: int = Field(default=0, ge=0)


class RsvpRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    user_id: int
    status: str
    guests: int
    updated_at: Optional[datetime] = None


class CollaborationCreate(BaseModel):
    partner_name: str = Field(min_length=1, max_length=255)
    partner_user_id: Optional[int] = None
    masterpiece_id: Optional[int] = None
    description: Optional[str] = None
    status: str = "proposed"


class CollaborationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    partner_name: str
    partner_user_id: Optional[int] = None
    masterpiece_id: Optional[int] = None
    description: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
