#!/usr/bin/env python3
"""
Reset the local development database: fresh schema plus demo accounts and catalogue.
Run from the project root.
"""
import os
from pathlib import Path

project_dir = Path(__file__).parent
os.chdir(project_dir)

# Load .env before importing app modules so SECRET_KEY and friends are set.
from dotenv import load_dotenv

load_dotenv(project_dir / ".env", override=True)

# Always target the local sqlite dev DB for this script.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///./vault-dev.db"

from app import models  # noqa: E402,F401
from app.database import Base, engine  # noqa: E402
from app.scripts.seed_vault import main as seed_main  # noqa: E402


def main():
    db_path = project_dir / "vault-dev.db"

    if db_path.exists():
        print(f"Removing existing database: {db_path}")
        engine.dispose()
        db_path.unlink()

    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("Tables created")

    seed_main()
    print(f"\nDevelopment database reset complete: {db_path}")


if __name__ == "__main__":
    main()
