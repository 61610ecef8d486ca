from __future__ import annotations

import logging
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

# Project root on sys.path so `alembic upgrade` works from a source checkout.
BASE_DIR = Path(__file__).resolve().parents[4]
if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))

from finbackup.config import settings  # noqa: E402
from finbackup.infrastructure.db.models_sqlalchemy import Base  # noqa: E402

config = context.config
target_metadata = Base.metadata


def _resolve_url() -> str:
    """`-x url=...` wins, then alembic.ini, then the runtime settings."""
    x_args = context.get_x_argument(as_dictionary=True)
    return x_args.get("url") or config.get_main_option("sqlalchemy.url") or settings.database_url


def _configure_logging() -> None:
    # The CLI configures logging before running migrations; keep its handlers.
    if not config.config_file_name or logging.getLogger().handlers:
        return
    try:
        fileConfig(config.config_file_name, disable_existing_loggers=False)
    except KeyError:
        logging.getLogger(__name__).warning("alembic.ini has no logging sections; skipping fileConfig")


def _configure_options() -> dict:
    # SQLite cannot ALTER constraints in place; batch mode recreates tables instead.
    return {"target_metadata": target_metadata, "render_as_batch": True, "compare_type": True}


def run_migrations_offline(url: str) -> None:
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online(url: str) -> None:
    section = dict(config.get_section(config.config_ini_section, {}))
    section["sqlalchemy.url"] = url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_options())
        with context.begin_transaction():
            context.run_migrations()


_configure_logging()
if context.is_offline_mode():
    run_migrations_offline(_resolve_url())
else:
    run_migrations_online(_resolve_url())
