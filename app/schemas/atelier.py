from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductionUpdate(BaseModel):
    masterpiece_id: int
    step_index: int = Field(ge=0)
    status: Literal["pending", "in_progress", "completed"]
    notes: Optional[str] = None


class ProductionStepRead(BaseModel):
    step_index: int
    step_name: str
    status: str
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None


class DeliveryUpdate(BaseModel):
    masterpiece_id: int
    address: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    courier: Optional[str] = None
    tracking_number: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None


class DeliveryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    masterpiece_id: int
    address: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    courier: Optional[str] = None
    tracking_number: Optional[str] = None
    status: str
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None


class ShippingUpdate(BaseModel):
    masterpiece_id: int
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    status: Optional[str] = None
    insured_value: Optional[float] = Field(default=None, ge=0)
    location: Optional[str] = None
    note: Optional[str] = None


class ShippingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    masterpiece_id: int
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    status: str
    insured_value: Optional[float] = None
    custody_log: list[dict[str, Any]] = []
    updated_at: Optional[datetime] = None


class InsuranceCreate(BaseModel):
    masterpiece_id: int
    provider: str = Field(min_length=1, max_length=128)
    policy_number: str = Field(min_length=1, max_length=64)
    coverage_amount: float
    premium: Optional[float] = None
    valid_until: Optional[datetime] = None


class InsuranceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    masterpiece_id: int
    provider: str
    policy_number: str
    coverage_amount: float
    premium: Optional[float] = None
    valid_until: Optional[datetime] = None
    created_at: Optional[datetime] = None


class MomentCreate(BaseModel):
    masterpiece_id: int
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    media_url: Optional[str] = None


class MomentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    masterpiece_id: int
    title: str
    description: Optional[str] = None
    media_url: Optional[str] = None
    created_at: Optional[datetime] = None
