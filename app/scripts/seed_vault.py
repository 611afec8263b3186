"""Seed the vault with demo accounts and a small catalogue.

Run with: python -m app.scripts.seed_vault
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from app import models
from app.database import SessionLocal, unit_of_work
from app.services.auth import hash_password
from app.services.masterpieces import create_masterpiece

DEMO_PASSWORD = "atelier-demo"

USERS = [
    ("Atelier Admin", "admin@atelier.local", models.RoleName.admin, False),
    ("Claire Client", "client@atelier.local", models.RoleName.client, False),
    ("Victor Vip", "vip@atelier.local", models.RoleName.vip, True),
    ("Iris Investor", "investor@atelier.local", models.RoleName.investor, False),
    ("Rene Reseller", "reseller@atelier.local", models.RoleName.reseller, False),
]

CATALOGUE = [
    {
        "serial_id": "AV-0001",
        "title": "Aurora Necklace",
        "description": "Hand-forged platinum collar set with graduated sapphires.",
        "category": "necklace",
        "materials": "platinum",
        "gemstones": "sapphire, diamond, tanzanite, spinel",
        "rarity_category": "Unique",
        "valuation": 185000.0,
        "deposit_pct": 10.0,
    },
    {
        "serial_id": "AV-0002",
        "title": "Meridian Cuff",
        "description": "Yellow gold cuff with engraved meridian lines.",
        "category": "bracelet",
        "materials": "18k yellow gold",
        "gemstones": "diamond",
        "rarity_category": "Limited",
        "valuation": 42000.0,
        "deposit_pct": 15.0,
    },
    {
        "serial_id": "AV-0003",
        "title": "Solstice Ring",
        "description": "Rose gold solitaire ring.",
        "category": "ring",
        "materials": "rose gold",
        "gemstones": "morganite",
        "rarity_category": "Standard",
        "valuation": 9800.0,
        "deposit_pct": 20.0,
    },
]


def seed_users(db: Session) -> models.User:
    """Create or refresh the demo accounts; returns the admin."""

    admin = None
    for name, email, role, is_vip in USERS:
        user = db.query(models.User).filter(models.User.email == email).first()
        if user is None:
            user = models.User(email=email)
            db.add(user)
            action = "Created"
        else:
            action = "Updated"
        user.name = name
        user.role = role
        user.is_vip = is_vip
        user.status = models.ApprovalStatus.approved
        user.hashed_password = hash_password(DEMO_PASSWORD)
        db.flush()
        print(f"{action} user: {email} ({role.value})")
        if role == models.RoleName.admin:
            admin = user
    return admin


def seed_catalogue(db: Session, admin: models.User) -> None:
    for data in CATALOGUE:
        exists = (
            db.query(models.Masterpiece.id)
            .filter(models.Masterpiece.serial_id == data["serial_id"])
            .first()
        )
        if exists:
            print(f"Skipped masterpiece: {data['serial_id']} (exists)")
            continue
        piece = create_masterpiece(db, admin=admin, data=data)
        print(f"Created masterpiece: {piece.serial_id} rarity={piece.rarity_score}")


def main():
    print("\nSeeding vault...")
    db = SessionLocal()
    try:
        with unit_of_work(db):
            admin = seed_users(db)
            seed_catalogue(db, admin)
        print(f"Done. Demo password: {DEMO_PASSWORD}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
