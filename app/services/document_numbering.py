from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import models
from app.core.clock import utc_now
from app.services.errors import ConflictError, ErrorCode

DOCUMENT_PREFIXES: dict[models.ContractType, str] = {
    models.ContractType.deposit: "DEP",
    models.ContractType.invoice: "INV",
    models.ContractType.certificate: "CERT",
    models.ContractType.vip: "VIP",
    models.ContractType.resale: "RES",
    models.ContractType.purchase: "PUR",
}


@dataclass(frozen=True)
class DocumentNumber:
    doc_type: str
    year_month: str  # YYYYMM
    seq: int
    formatted: str


def format_document_ref(*, prefix: str, seq: int, now: datetime) -> str:
    """`DEP_007-10.26`: three-digit minimum sequence, then month and two-digit year."""

    return f"{prefix}_{seq:03d}-{now:%m.%y}"


def next_document_ref(
    db: Session,
    *,
    doc_type: models.ContractType,
    now: datetime | None = None,
) -> DocumentNumber:
    """Allocate the next reference for a document type from a monthly sequence row.

    The sequence row is locked where the dialect supports it. If two first
    allocations of a month race on creating the row, the loser gets a
    retryable `document_ref_conflict`.
    """

    now = now or utc_now()
    year_month = now.strftime("%Y%m")
    key = doc_type.value

    q = db.query(models.DocumentSequence).filter(
        models.DocumentSequence.doc_type == key,
        models.DocumentSequence.year_month == year_month,
    )

    if db.get_bind().dialect.name != "sqlite":
        q = q.with_for_update()

    row = q.first()
    if row is None:
        row = models.DocumentSequence(doc_type=key, year_month=year_month, last_seq=0)
        db.add(row)
        try:
            db.flush()
        except IntegrityError as exc:
            raise ConflictError(
                ErrorCode.document_ref_conflict,
                "document reference allocation collided, retry the request",
            ) from exc

    row.last_seq = int(row.last_seq or 0) + 1
    db.flush()

    seq = int(row.last_seq)
    return DocumentNumber(
        doc_type=key,
        year_month=year_month,
        seq=seq,
        formatted=format_document_ref(prefix=DOCUMENT_PREFIXES[doc_type], seq=seq, now=now),
    )
