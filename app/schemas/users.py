from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.domain import ApprovalStatus, RoleName


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RegisterRequest(BaseModel):
    email: str  # plain str: .local domains are used in dev
    name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=8)
    wants_vip: bool = False
    account_type: str = "individual"
    language: str = "en"


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: RoleName
    status: ApprovalStatus
    is_vip: bool
    account_type: str
    language: str
    reputation_score: int
    created_at: Optional[datetime] = None


class ClientCreate(BaseModel):
    email: str
    name: str = Field(min_length=1, max_length=255)
    role: RoleName = RoleName.client
    is_vip: bool = False


class ClientCreated(BaseModel):
    user: UserRead
    one_time_password: str


class ReviewDecision(BaseModel):
    approve: bool


class AdminStats(BaseModel):
    revenue: float
    approved_users: int
    pending_users: int


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    message: str
    kind: str
    is_read: bool
    created_at: Optional[datetime] = None
