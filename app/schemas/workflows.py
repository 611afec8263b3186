from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.models.domain import PaymentStatus, PaymentType, WorkflowStatus


class PurchaseRequest(BaseModel):
    masterpiece_id: int


class PurchaseReview(BaseModel):
    masterpiece_id: int
    approve: bool


class WorkflowAdvance(BaseModel):
    masterpiece_id: int
    # Validated by the service so unknown steps map to a domain error.
    step: str


class WorkflowRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    masterpiece_id: int
    user_id: int
    status: WorkflowStatus
    approved_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    deposit_contract_sent_at: Optional[datetime] = None
    deposit_paid_at: Optional[datetime] = None
    production_started_at: Optional[datetime] = None
    production_finished_at: Optional[datetime] = None
    final_payment_requested_at: Optional[datetime] = None
    final_payment_received_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class PurchaseReviewResult(BaseModel):
    approved: bool
    workflow: Optional[WorkflowRead] = None


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    masterpiece_id: int
    payment_type: PaymentType
    amount: float
    status: PaymentStatus
    iban: Optional[str] = None
    reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    confirmed_by: Optional[int] = None
    created_at: Optional[datetime] = None
