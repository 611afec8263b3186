import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import create_engine

sys.path.append(str(Path(__file__).resolve().parents[1]))

from app import models  # noqa: E402,F401  registers every vault table
from app.config import settings  # noqa: E402
from app.database import Base  # noqa: E402

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def _configure(**kwargs) -> None:
    context.configure(target_metadata=target_metadata, compare_type=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


def migrate_offline() -> None:
    """Emit SQL for the vault schema without a database connection."""

    _configure(url=settings.database_url, literal_binds=True)


def migrate_online() -> None:
    """Upgrade over the connection handed in by app.main, or a fresh one."""

    shared = config.attributes.get("connection")
    if shared is not None:
        _configure(connection=shared, render_as_batch=shared.dialect.name == "sqlite")
        return

    with create_engine(settings.database_url, future=True).connect() as connection:
        _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")


if context.is_offline_mode():
    migrate_offline()
else:
    migrate_online()
