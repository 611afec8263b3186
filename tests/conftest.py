import os
import tempfile

# CRITICAL: Set environment variables BEFORE any app imports
# These must be set before app.config.settings is loaded
_TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "test_vault.db")
os.environ["SECRET_KEY"] = "test-secret-key-1234567890"
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{_TEST_DB_PATH}"
os.environ["ENVIRONMENT"] = "test"
os.environ["API_V1_STR"] = "/api"  # Ensure /api prefix is used in tests
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["NFT_MINT_DELAY_SECONDS"] = "0"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app import models
from app.api import deps
from app.database import Base, get_db, unit_of_work
from app.database import engine as app_engine
from app.main import app
from app.services.auth import create_access_token, hash_password
from app.services.contracts import sign_contract
from app.services.masterpieces import create_masterpiece
from app.services.purchase_workflow import advance_workflow, get_workflow, request_purchase, review_purchase

# Use the same engine that the app uses
TEST_ENGINE = app_engine

TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=TEST_ENGINE, future=True
)

TEST_PASSWORD = "correct-horse-battery"

WORKFLOW_STEPS = (
    "deposit_paid",
    "production_finished",
    "final_payment_paid",
    "delivered",
    "completed",
)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


class RecordingMinter:
    """Stands in for the threaded minter; remembers what was scheduled."""

    def __init__(self):
        self.scheduled = []

    def schedule(self, masterpiece_id: int) -> None:
        self.scheduled.append(masterpiece_id)


@pytest.fixture(scope="function", autouse=True)
def setup_test_database():
    """
    Fresh tables for every test; dependency overrides restored afterwards.
    """
    original_overrides = dict(app.dependency_overrides)

    Base.metadata.drop_all(bind=TEST_ENGINE)
    Base.metadata.create_all(bind=TEST_ENGINE)

    yield

    app.dependency_overrides.clear()
    app.dependency_overrides.update(original_overrides)

    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def minter():
    recorder = RecordingMinter()
    app.dependency_overrides[deps.get_token_minter] = lambda: recorder
    return recorder


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(
        name: str = "Test Collector",
        *,
        role: models.RoleName = models.RoleName.client,
        is_vip: bool = False,
        status: models.ApprovalStatus = models.ApprovalStatus.approved,
        email: str | None = None,
    ) -> models.User:
        counter["n"] += 1
        user = models.User(
            email=email or f"user{counter['n']}@vault.test",
            name=name,
            hashed_password=hash_password(TEST_PASSWORD),
            role=role,
            is_vip=is_vip,
            status=status,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("Ada Admin", role=models.RoleName.admin)


@pytest.fixture
def buyer(make_user):
    return make_user("Bruno Buyer")


@pytest.fixture
def vip(make_user):
    return make_user("Vera Vip", role=models.RoleName.vip, is_vip=True)


@pytest.fixture
def auth_headers():
    def _headers(user: models.User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(subject=user.email)}"}

    return _headers


@pytest.fixture
def make_masterpiece(db_session, admin):
    counter = {"n": 0}

    def _make(**overrides) -> models.Masterpiece:
        counter["n"] += 1
        data = {
            "serial_id": f"AV-T{counter['n']:03d}",
            "title": f"Test Piece {counter['n']}",
            "description": "Hand-finished test piece.",
            "materials": "18k gold",
            "gemstones": "diamond",
            "rarity_category": "Limited",
            "valuation": 100000.0,
            "deposit_pct": 10.0,
        }
        data.update(overrides)
        with unit_of_work(db_session):
            piece = create_masterpiece(db_session, admin=admin, data=data)
        return piece

    return _make


@pytest.fixture
def drive_purchase(db_session, admin):
    """Run a purchase through request, signature, approval and workflow steps.

    `until` names the last workflow step to apply; None stops after approval.
    """

    def _drive(piece, buyer, *, until=None, minter=None, now=None):
        with unit_of_work(db_session):
            contract = request_purchase(db_session, buyer=buyer, masterpiece_id=piece.id, now=now)
        with unit_of_work(db_session):
            sign_contract(
                db_session, contract_id=contract.id, actor=buyer, method="click", now=now
            )
        with unit_of_work(db_session):
            review_purchase(db_session, masterpiece_id=piece.id, approve=True, admin=admin, now=now)

        if until is not None:
            for step in WORKFLOW_STEPS:
                with unit_of_work(db_session):
                    advance_workflow(
                        db_session,
                        masterpiece_id=piece.id,
                        step=step,
                        actor=admin,
                        minter=minter,
                        now=now,
                    )
                if step == until:
                    break
        return get_workflow(db_session, piece.id)

    return _drive
