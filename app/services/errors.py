from __future__ import annotations

from enum import Enum as PyEnum


class ErrorCode(PyEnum):
    # validation / uniqueness
    duplicate_email = "duplicate_email"
    duplicate_serial = "duplicate_serial"
    document_ref_conflict = "document_ref_conflict"
    already_approved = "already_approved"
    invalid_transition = "invalid_transition"
    concurrent_modification = "concurrent_modification"
    contract_not_draft = "contract_not_draft"
    # invalid input
    invalid_step = "invalid_step"
    invalid_amount = "invalid_amount"
    invalid_shares = "invalid_shares"
    invalid_field = "invalid_field"
    # missing prerequisites
    user_not_found = "user_not_found"
    masterpiece_not_found = "masterpiece_not_found"
    workflow_not_found = "workflow_not_found"
    contract_not_found = "contract_not_found"
    payment_not_found = "payment_not_found"
    escrow_not_found = "escrow_not_found"
    auction_not_found = "auction_not_found"
    negotiation_not_found = "negotiation_not_found"
    share_not_found = "share_not_found"
    request_not_found = "request_not_found"
    application_not_found = "application_not_found"
    event_not_found = "event_not_found"
    owner_not_found = "owner_not_found"
    # business rules
    masterpiece_unavailable = "masterpiece_unavailable"
    contract_not_signed = "contract_not_signed"
    bid_too_low = "bid_too_low"
    auction_closed = "auction_closed"
    escrow_disputed = "escrow_disputed"
    dispute_window_closed = "dispute_window_closed"
    reserved_for_other = "reserved_for_other"
    payment_not_pending = "payment_not_pending"
    self_dealing = "self_dealing"
    # actor checks
    not_owner = "not_owner"
    not_seller = "not_seller"
    not_participant = "not_participant"
    not_buyer = "not_buyer"


class DomainError(Exception):
    """Base class for expected, caller-facing failures raised by services."""

    kind = "internal"
    status_code = 500

    def __init__(self, code: ErrorCode, message: str | None = None) -> None:
        self.code = code
        self.message = message or code.value.replace("_", " ")
        super().__init__(self.message)


class ConflictError(DomainError):
    kind = "conflict"
    status_code = 409


class ValidationFailed(DomainError):
    kind = "validation"
    status_code = 400


class NotFoundError(DomainError):
    kind = "not_found"
    status_code = 404


class RejectedError(DomainError):
    kind = "rejected"
    status_code = 400


class ForbiddenError(DomainError):
    kind = "forbidden"
    status_code = 403
