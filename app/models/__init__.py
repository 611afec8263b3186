from app.models.atelier import (
    PRODUCTION_STEP_NAMES,
    AtelierMoment,
    DeliveryDetail,
    InsurancePolicy,
    ProductionStep,
    ShippingOrder,
)
from app.models.clienteling import (
    Collaboration,
    CollectorProfile,
    ConciergeMessage,
    ConciergeRequest,
    ConciergeStatus,
    CrmInteraction,
    EventRsvp,
    InvestorRequest,
    InvestorViewLog,
    PrivateEvent,
    Reservation,
    UserApplication,
    WaitlistEntry,
)
from app.models.domain import (
    ApprovalStatus,
    AuditLog,
    Certificate,
    Contract,
    ContractStatus,
    ContractType,
    DocumentSequence,
    EscrowStatus,
    EscrowTransaction,
    Masterpiece,
    MasterpieceStatus,
    Notification,
    OwnershipRecord,
    Payment,
    PaymentStatus,
    PaymentType,
    ProvenanceEvent,
    ProvenanceEventType,
    PurchaseWorkflow,
    RoleName,
    ServiceRecord,
    User,
    WorkflowStatus,
    WorkflowStep,
)
from app.models.marketplace import (
    Auction,
    AuctionStatus,
    Bid,
    FractionalShare,
    FractionalTransfer,
    NegotiationMessage,
    NegotiationStatus,
    ResaleNegotiation,
    RevenueEntry,
)

__all__ = [
    "PRODUCTION_STEP_NAMES",
    "ApprovalStatus",
    "AtelierMoment",
    "AuditLog",
    "Auction",
    "AuctionStatus",
    "Bid",
    "Certificate",
    "Collaboration",
    "CollectorProfile",
    "ConciergeMessage",
    "ConciergeRequest",
    "ConciergeStatus",
    "Contract",
    "ContractStatus",
    "ContractType",
    "CrmInteraction",
    "DeliveryDetail",
    "DocumentSequence",
    "EscrowStatus",
    "EscrowTransaction",
    "EventRsvp",
    "FractionalShare",
    "FractionalTransfer",
    "InsurancePolicy",
    "InvestorRequest",
    "InvestorViewLog",
    "Masterpiece",
    "MasterpieceStatus",
    "NegotiationMessage",
    "NegotiationStatus",
    "Notification",
    "OwnershipRecord",
    "Payment",
    "PaymentStatus",
    "PaymentType",
    "PrivateEvent",
    "ProductionStep",
    "ProvenanceEvent",
    "ProvenanceEventType",
    "PurchaseWorkflow",
    "Reservation",
    "ResaleNegotiation",
    "RevenueEntry",
    "RoleName",
    "ServiceRecord",
    "ShippingOrder",
    "User",
    "UserApplication",
    "WaitlistEntry",
    "WorkflowStatus",
    "WorkflowStep",
]
