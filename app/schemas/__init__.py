from app.schemas.atelier import (
    DeliveryRead,
    DeliveryUpdate,
    InsuranceCreate,
    InsuranceRead,
    MomentCreate,
    MomentRead,
    ProductionStepRead,
    ProductionUpdate,
    ShippingRead,
    ShippingUpdate,
)
from app.schemas.clienteling import (
    ApplicationCreate,
    ApplicationRead,
    ApplicationReview,
    CollaborationCreate,
    CollaborationRead,
    CollectorProfileRead,
    CollectorProfileUpdate,
    ConciergeMessageCreate,
    ConciergeMessageRead,
    ConciergeRequestCreate,
    ConciergeRequestRead,
    ConciergeUpdate,
    CrmInteractionCreate,
    CrmInteractionRead,
    InvestorAnalytics,
    InvestorRequestCreate,
    InvestorRequestRead,
    InvestorViewCreate,
    InvestorViewRead,
    PrivateEventCreate,
    PrivateEventRead,
    ReservationCreate,
    ReservationRead,
    RsvpCreate,
    RsvpRead,
    WaitlistJoin,
    WaitlistRead,
)
from app.schemas.contracts import (
    CertificateCreate,
    CertificateRead,
    ContractRead,
    ContractRevise,
    ContractSign,
    DisputeCreate,
    EscrowRead,
    VaultRead,
)
from app.schemas.marketplace import (
    AuctionCreate,
    AuctionRead,
    BidCreate,
    BidRead,
    FractionalInitialize,
    NegotiationAction,
    NegotiationCreate,
    NegotiationMessageCreate,
    NegotiationMessageRead,
    NegotiationRead,
    ResaleListing,
    ResaleReview,
    RevenueCreate,
    RevenueRead,
    RevenueSummary,
    ShareAllocation,
    ShareRead,
    ShareTransferCreate,
    ShareTransferRead,
)
from app.schemas.masterpieces import (
    AssignRequest,
    MasterpieceCreate,
    MasterpieceRead,
    MasterpieceUpdate,
    OwnershipRead,
    ProvenanceRead,
    RarityRead,
    ServiceRecordCreate,
    ServiceRecordRead,
)
from app.schemas.users import (
    AdminStats,
    ClientCreate,
    ClientCreated,
    NotificationRead,
    RegisterRequest,
    ReviewDecision,
    Token,
    UserRead,
)
from app.schemas.workflows import (
    PaymentRead,
    PurchaseRequest,
    PurchaseReview,
    PurchaseReviewResult,
    WorkflowAdvance,
    WorkflowRead,
)

__all__ = [
    "AdminStats",
    "ApplicationCreate",
    "ApplicationRead",
    "ApplicationReview",
    "AssignRequest",
    "AuctionCreate",
    "AuctionRead",
    "BidCreate",
    "BidRead",
    "CertificateCreate",
    "CertificateRead",
    "ClientCreate",
    "ClientCreated",
    "CollaborationCreate",
    "CollaborationRead",
    "CollectorProfileRead",
    "CollectorProfileUpdate",
    "ConciergeMessageCreate",
    "ConciergeMessageRead",
    "ConciergeRequestCreate",
    "ConciergeRequestRead",
    "ConciergeUpdate",
    "ContractRead",
    "ContractRevise",
    "ContractSign",
    "CrmInteractionCreate",
    "CrmInteractionRead",
    "DeliveryRead",
    "DeliveryUpdate",
    "DisputeCreate",
    "EscrowRead",
    "FractionalInitialize",
    "InsuranceCreate",
    "InsuranceRead",
    "InvestorAnalytics",
    "InvestorRequestCreate",
    "InvestorRequestRead",
    "InvestorViewCreate",
    "InvestorViewRead",
    "MasterpieceCreate",
    "MasterpieceRead",
    "MasterpieceUpdate",
    "MomentCreate",
    "MomentRead",
    "NegotiationAction",
    "NegotiationCreate",
    "NegotiationMessageCreate",
    "NegotiationMessageRead",
    "NegotiationRead",
    "NotificationRead",
    "OwnershipRead",
    "PaymentRead",
    "PrivateEventCreate",
    "PrivateEventRead",
    "ProductionStepRead",
    "ProductionUpdate",
    "ProvenanceRead",
    "PurchaseRequest",
    "PurchaseReview",
    "PurchaseReviewResult",
    "RarityRead",
    "RegisterRequest",
    "ReservationCreate",
    "ReservationRead",
    "ResaleListing",
    "ResaleReview",
    "RevenueCreate",
    "RevenueRead",
    "RevenueSummary",
    "ReviewDecision",
    "RsvpCreate",
    "RsvpRead",
    "ServiceRecordCreate",
    "ServiceRecordRead",
    "ShareAllocation",
    "ShareRead",
    "ShareTransferCreate",
    "ShareTransferRead",
    "ShippingRead",
    "ShippingUpdate",
    "Token",
    "UserRead",
    "VaultRead",
    "WaitlistJoin",
    "WaitlistRead",
    "WorkflowAdvance",
    "WorkflowRead",
]
