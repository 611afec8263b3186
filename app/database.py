import logging
import os
from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from app.config import settings

db_url = str(settings.database_url)
is_postgres = db_url.startswith("postgresql")
is_sqlite = db_url.startswith("sqlite")


def _env_bool(key: str, default: str = "false") -> bool:
    v = os.getenv(key, default)
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


connect_args: dict = {}
engine_kwargs: dict = {"future": True}
POOL_CONFIG: dict[str, int | str | None] = {
    "pool_size": None,
    "max_overflow": None,
    "use_null_pool": None,
}

if is_postgres:
    # Avoid long hangs on DB outages (psycopg3 supports connect_timeout in seconds).
    connect_args = {"connect_timeout": int(os.getenv("DB_CONNECT_TIMEOUT_SECONDS", "10"))}
    engine_kwargs["pool_pre_ping"] = True

    if _env_bool("DB_USE_NULL_POOL", "false"):
        engine_kwargs["poolclass"] = NullPool
        POOL_CONFIG["use_null_pool"] = "true"
    else:
        pool_size = int(os.getenv("DB_POOL_SIZE", "5"))
        max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "10"))
        engine_kwargs.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=int(os.getenv("DB_POOL_TIMEOUT_SECONDS", "30")),
            pool_recycle=int(os.getenv("DB_POOL_RECYCLE_SECONDS", "1800")),
        )
        POOL_CONFIG.update(
            {"pool_size": pool_size, "max_overflow": max_overflow, "use_null_pool": "false"}
        )
elif is_sqlite:
    # Request handlers run in a threadpool; background jobs open their own sessions.
    connect_args = {"check_same_thread": False}
    if db_url.endswith(":memory:"):
        engine_kwargs["poolclass"] = StaticPool

engine_kwargs["connect_args"] = connect_args
engine = create_engine(db_url, **engine_kwargs)

if is_sqlite:

    @event.listens_for(engine, "connect")
    def _sqlite_enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        if is_postgres:
            timeout_ms = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000"))
            if timeout_ms > 0:
                db.execute(text(f"SET statement_timeout = {timeout_ms}"))
        yield db
    finally:
        db.close()


_AFTER_COMMIT_KEY = "vault_after_commit"


def run_after_commit(db: Session, callback: Callable[[], None]) -> None:
    """Defer `callback` until the session's current transaction commits.

    Callbacks are dropped if the transaction rolls back.
    """

    db.info.setdefault(_AFTER_COMMIT_KEY, []).append(callback)


@event.listens_for(Session, "after_commit")
def _run_after_commit_callbacks(session: Session) -> None:
    for callback in session.info.pop(_AFTER_COMMIT_KEY, None) or []:
        try:
            callback()
        except Exception:
            logging.getLogger("vault").exception("after_commit_callback_failed")


@event.listens_for(Session, "after_rollback")
def _drop_after_commit_callbacks(session: Session) -> None:
    session.info.pop(_AFTER_COMMIT_KEY, None)


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Run one logical operation as a single transaction.

    Every row written inside the block is committed together; any exception
    rolls the whole block back and is re-raised to the caller.
    """

    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
