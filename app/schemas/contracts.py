from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.domain import ContractStatus, ContractType, EscrowStatus
from app.schemas.masterpieces import MasterpieceRead


class ContractRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    masterpiece_id: Optional[int] = None
    contract_type: ContractType
    doc_ref: str
    title: str
    content: str
    status: ContractStatus
    version: int
    parent_id: Optional[int] = None
    signature_method: Optional[str] = None
    signed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ContractSign(BaseModel):
    contract_id: int
    method: str = Field(default="typed", max_length=32)
    data: Optional[dict[str, Any]] = None


class ContractRevise(BaseModel):
    body: str = Field(min_length=1)


class CertificateCreate(BaseModel):
    masterpiece_id: int


class CertificateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    cert_id: str
    masterpiece_id: int
    owner_id: int
    contract_id: Optional[int] = None
    digital_signature: str
    blockchain_hash: Optional[str] = None
    issued_at: Optional[datetime] = None


class EscrowRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    masterpiece_id: int
    buyer_id: int
    seller_id: Optional[int] = None
    negotiation_id: Optional[int] = None
    amount: float
    status: EscrowStatus
    dispute_window_ends: datetime
    milestones: Optional[list[Any]] = None
    dispute_reason: Optional[str] = None
    disputed_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    created_at: datetime


class DisputeCreate(BaseModel):
    reason: str = Field(min_length=1)


class VaultRead(BaseModel):
    user_id: int
    masterpieces: list[MasterpieceRead]
    certificates: list[CertificateRead]
    contracts: list[ContractRead]
