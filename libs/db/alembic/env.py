# ruff: noqa: I001
"""Alembic environment for the ``db`` library.

``DATABASE_URL`` (from the process environment or the nearest ``.env``)
wins over ``sqlalchemy.url`` in ``alembic.ini``. Offline mode renders SQL for
review; online mode applies migrations through a throwaway ``NullPool``
engine.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from dotenv import find_dotenv, load_dotenv
from sqlalchemy import engine_from_config, pool

from db import metadata as target_metadata


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# usecwd=True finds the workspace .env from the repo root or from libs/db
_dotenv = find_dotenv(usecwd=True)
if _dotenv:
    load_dotenv(dotenv_path=_dotenv, override=False)


def _database_url() -> str:
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set. Export it, add it to .env, or set "
            "'sqlalchemy.url' in alembic.ini."
        )
    return url


def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = dict(config.get_section(config.config_ini_section) or {})
    section["sqlalchemy.url"] = _database_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
