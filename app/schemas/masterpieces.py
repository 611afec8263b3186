from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.domain import MasterpieceStatus, ProvenanceEventType


class MasterpieceCreate(BaseModel):
    serial_id: str = Field(min_length=1, max_length=64)
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    materials: Optional[str] = None
    gemstones: Optional[str] = None
    image_url: Optional[str] = None
    rarity_category: str = "Standard"
    valuation: float = Field(ge=0)
    deposit_pct: float = Field(default=10.0, ge=0, le=100)


class MasterpieceUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    materials: Optional[str] = None
    gemstones: Optional[str] = None
    image_url: Optional[str] = None
    rarity_category: Optional[str] = None
    valuation: Optional[float] = Field(default=None, ge=0)
    deposit_pct: Optional[float] = Field(default=None, ge=0, le=100)


class MasterpieceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    serial_id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    materials: Optional[str] = None
    gemstones: Optional[str] = None
    image_url: Optional[str] = None
    rarity_category: str
    rarity_score: int
    valuation: float
    deposit_pct: float
    status: MasterpieceStatus
    current_owner_id: Optional[int] = None
    blockchain_hash: Optional[str] = None
    nft_token_id: Optional[str] = None
    created_at: Optional[datetime] = None


class AssignRequest(BaseModel):
    user_id: int
    price: Optional[float] = Field(default=None, ge=0)


class ServiceRecordCreate(BaseModel):
    service_type: str = Field(min_length=1, max_length=64)
    description: Optional[str] = None
    cost: float = Field(default=0.0, ge=0)


class ServiceRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    masterpiece_id: int
    service_type: str
    description: Optional[str] = None
    cost: float
    recorded_by: Optional[int] = None
    performed_at: Optional[datetime] = None


class ProvenanceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    masterpiece_id: int
    event_type: ProvenanceEventType
    description: str
    meta: Optional[dict[str, Any]] = None
    occurred_at: Optional[datetime] = None


class OwnershipRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    masterpiece_id: int
    owner_id: int
    price: Optional[float] = None
    source: str
    acquired_at: Optional[datetime] = None


class RarityRead(BaseModel):
    masterpiece_id: int
    rarity_score: int
    breakdown: dict[str, Any]
