from __future__ import annotations

from collections import defaultdict
from typing import Optional

from sqlalchemy.orm import Session

from app import models


def record_revenue(
    db: Session,
    *,
    entry_type: str,
    amount: float,
    masterpiece_id: Optional[int] = None,
    description: Optional[str] = None,
) -> models.RevenueEntry:
    entry = models.RevenueEntry(
        entry_type=entry_type,
        amount=round(float(amount), 2),
        masterpiece_id=masterpiece_id,
        description=description,
    )
    db.add(entry)
    db.flush()
    return entry


def revenue_summary(db: Session) -> dict:
    entries = db.query(models.RevenueEntry).order_by(models.RevenueEntry.id.desc()).all()
    totals: dict[str, float] = defaultdict(float)
    for entry in entries:
        totals[entry.entry_type] += float(entry.amount)
    return {
        "entries": entries,
        "totals": {k: round(v, 2) for k, v in sorted(totals.items())},
        "total": round(sum(totals.values()), 2),
    }
