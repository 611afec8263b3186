from __future__ import annotations

from dataclasses import asdict, dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from app import models
from app.services.errors import ErrorCode, NotFoundError

CATEGORY_POINTS: dict[str, int] = {
    "Unique": 40,
    "Limited": 25,
    "Rare": 15,
    "Standard": 5,
}
PRECIOUS_METALS = ("gold", "platinum")
PRECIOUS_METAL_POINTS = 10
GEMSTONE_POINTS = 10
GEMSTONE_THRESHOLD = 3
PROVENANCE_POINTS_EACH, PROVENANCE_CAP = 2, 20
SERVICE_POINTS_EACH, SERVICE_CAP = 2, 10
BID_POINTS_EACH, BID_CAP = 1, 10


@dataclass(frozen=True)
class RarityBreakdown:
    category: int
    materials: int
    gemstones: int
    provenance: int
    service: int
    bids: int

    @property
    def total(self) -> int:
        return min(
            100,
            self.category + self.materials + self.gemstones + self.provenance + self.service + self.bids,
        )

    def as_dict(self) -> dict[str, int]:
        return {**asdict(self), "total": self.total}


def score_rarity(
    *,
    rarity_category: str | None,
    materials: str | None,
    gemstones: str | None,
    provenance_count: int,
    service_count: int,
    bid_count: int,
) -> RarityBreakdown:
    """Additive 0-100 desirability score; each category is capped independently."""

    category = CATEGORY_POINTS.get(str(rarity_category or ""), 0)

    materials_text = str(materials or "").lower()
    metal = PRECIOUS_METAL_POINTS if any(m in materials_text for m in PRECIOUS_METALS) else 0

    # Entries are counted as split, blanks included.
    stones = str(gemstones or "").split(",")
    gems = GEMSTONE_POINTS if len(stones) > GEMSTONE_THRESHOLD else 0

    return RarityBreakdown(
        category=category,
        materials=metal,
        gemstones=gems,
        provenance=min(int(provenance_count) * PROVENANCE_POINTS_EACH, PROVENANCE_CAP),
        service=min(int(service_count) * SERVICE_POINTS_EACH, SERVICE_CAP),
        bids=min(int(bid_count) * BID_POINTS_EACH, BID_CAP),
    )


def rarity_breakdown(db: Session, masterpiece: models.Masterpiece) -> RarityBreakdown:
    provenance_count = (
        db.query(func.count(models.ProvenanceEvent.id))
        .filter(models.ProvenanceEvent.masterpiece_id == masterpiece.id)
        .scalar()
    )
    service_count = (
        db.query(func.count(models.ServiceRecord.id))
        .filter(models.ServiceRecord.masterpiece_id == masterpiece.id)
        .scalar()
    )
    bid_count = (
        db.query(func.count(models.Bid.id))
        .join(models.Auction, models.Auction.id == models.Bid.auction_id)
        .filter(models.Auction.masterpiece_id == masterpiece.id)
        .scalar()
    )
    return score_rarity(
        rarity_category=masterpiece.rarity_category,
        materials=masterpiece.materials,
        gemstones=masterpiece.gemstones,
        provenance_count=int(provenance_count or 0),
        service_count=int(service_count or 0),
        bid_count=int(bid_count or 0),
    )


def recompute_rarity(db: Session, masterpiece_id: int) -> int:
    """Re-derive the rarity score from current rows and write it back.

    Idempotent: with no intervening changes the same score is produced.
    """

    piece = db.get(models.Masterpiece, int(masterpiece_id))
    if piece is None:
        raise NotFoundError(ErrorCode.masterpiece_not_found)
    db.flush()
    score = rarity_breakdown(db, piece).total
    if piece.rarity_score != score:
        piece.rarity_score = score
        db.flush()
    return score
