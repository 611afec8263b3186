from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from app.config import settings
from app.core.clock import utc_now
from app.database import SessionLocal, unit_of_work
from app.services.clienteling import expire_reservations
from app.services.errors import DomainError
from app.services.minting import TokenMinter, default_minter
from app.services.purchase_workflow import advance_workflow, expired_delivered_workflows

logger = logging.getLogger("vault.scheduler")

SWEEP_LOCK_KEY = 714203  # stable key for the escrow sweep


@dataclass(frozen=True)
class SweepResult:
    completed: int
    failed: int
    expired_reservations: int


@contextmanager
def hold_sweep_lock(bind, key: int = SWEEP_LOCK_KEY) -> Iterator[bool]:
    """Hold the Postgres advisory lock on one dedicated connection for the whole sweep.

    The sweep session commits per completion and returns its connection to the
    pool, so lock and unlock must not go through it. Other dialects always sweep.
    """

    if bind.dialect.name != "postgresql":
        yield True
        return

    with bind.connect() as conn:
        got_lock = bool(conn.execute(text("SELECT pg_try_advisory_lock(:k)"), {"k": int(key)}).scalar())
        try:
            yield got_lock
        finally:
            if got_lock:
                conn.execute(text("SELECT pg_advisory_unlock(:k)"), {"k": int(key)})


def run_escrow_sweep(
    *,
    session_factory: Callable[[], Session] = SessionLocal,
    minter: Optional[TokenMinter] = None,
    auto_release: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> SweepResult:
    """Complete delivered purchases whose dispute window lapsed, then expire reservations.

    Each completion is its own transaction, so one failure does not block the rest.
    """

    now = now or utc_now()
    auto_release = settings.escrow_auto_release if auto_release is None else auto_release

    db = session_factory()
    try:
        with hold_sweep_lock(db.get_bind()) as got_lock:
            if not got_lock:
                logger.info("escrow_sweep_skipped_locked")
                return SweepResult(completed=0, failed=0, expired_reservations=0)
            return _sweep(db, minter=minter, auto_release=auto_release, now=now)
    finally:
        db.close()


def _sweep(
    db: Session, *, minter: Optional[TokenMinter], auto_release: bool, now: datetime
) -> SweepResult:
    completed = failed = 0
    if auto_release:
        due = [wf.masterpiece_id for wf in expired_delivered_workflows(db, now)]
        for masterpiece_id in due:
            try:
                with unit_of_work(db):
                    advance_workflow(
                        db,
                        masterpiece_id=masterpiece_id,
                        step="completed",
                        actor=None,
                        minter=minter,
                        now=now,
                    )
                completed += 1
                logger.info("escrow_auto_released", extra={"masterpiece_id": masterpiece_id})
            except DomainError as exc:
                failed += 1
                logger.warning(
                    "escrow_auto_release_failed",
                    extra={"masterpiece_id": masterpiece_id, "code": exc.code.value},
                )

    with unit_of_work(db):
        expired = expire_reservations(db, now)
    if expired:
        logger.info("reservations_expired", extra={"count": expired})
    return SweepResult(completed=completed, failed=failed, expired_reservations=expired)


class EscrowSweepRunner:
    """Daemon thread that runs the escrow sweep every `interval_seconds`.

    Each uvicorn worker starts its own runner; on Postgres only the worker
    holding the advisory lock sweeps.
    """

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        minter: Optional[TokenMinter] = None,
    ) -> None:
        self.interval_seconds = float(
            settings.escrow_sweep_interval_seconds if interval_seconds is None else interval_seconds
        )
        self.minter = minter or default_minter
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="escrow-sweep-runner", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                res = run_escrow_sweep(minter=self.minter)
                logger.info(
                    "escrow_sweep_ok",
                    extra={
                        "completed": res.completed,
                        "failed": res.failed,
                        "expired_reservations": res.expired_reservations,
                    },
                )
            except Exception as exc:
                logger.exception("escrow_sweep_failed", extra={"error": str(exc)})


# Singleton runner for FastAPI lifecycle
runner = EscrowSweepRunner()
