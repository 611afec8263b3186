from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from app import models


def record_provenance(
    *,
    db: Session,
    masterpiece_id: int,
    event_type: models.ProvenanceEventType,
    description: str,
    meta: dict[str, Any] | None = None,
    occurred_at: datetime | None = None,
) -> models.ProvenanceEvent:
    """Append an entry to a masterpiece's provenance timeline.

    Entries are never updated; callers control commit/rollback.
    """

    entry = models.ProvenanceEvent(
        masterpiece_id=int(masterpiece_id),
        event_type=event_type,
        description=description,
        meta=meta or None,
    )
    if occurred_at is not None:
        entry.occurred_at = occurred_at
    db.add(entry)
    db.flush()
    return entry


def list_provenance(db: Session, masterpiece_id: int) -> list[models.ProvenanceEvent]:
    return (
        db.query(models.ProvenanceEvent)
        .filter(models.ProvenanceEvent.masterpiece_id == int(masterpiece_id))
        .order_by(models.ProvenanceEvent.occurred_at.asc(), models.ProvenanceEvent.id.asc())
        .all()
    )
