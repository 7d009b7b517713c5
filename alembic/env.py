from __future__ import annotations

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import String
from sqlalchemy.engine import Connection, Engine
from dotenv import load_dotenv

# Ensure project root is on path and load environment variables
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))
load_dotenv(ROOT_DIR / ".env")

from vrflottery.db.engine import DEFAULT_SQLITE_URL, make_engine  # noqa: E402
from vrflottery.db.utils import resolve_sqlite_url  # noqa: E402
from vrflottery.models import Base  # noqa: E402,F401 - import populates metadata
from vrflottery.models.types import Uint256  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def _configured_database_url() -> str:
    env_url = os.getenv("DB_URL")
    if env_url:
        return resolve_sqlite_url(env_url, ROOT_DIR)
    return DEFAULT_SQLITE_URL


DATABASE_URL = _configured_database_url()

# Percent signs need to be escaped due to ConfigParser interpolation rules.
config.set_main_option("sqlalchemy.url", DATABASE_URL.replace("%", "%%"))


def render_item(type_, obj, autogen_context):
    """Render ``Uint256`` columns as their storage type in migration scripts.

    Migrations then stay importable even if the decorator moves.
    """
    if type_ == "type" and isinstance(obj, Uint256):
        return "sa.String(length=78)"
    return False


def _compare_type(context, inspected_column, metadata_column, inspected_type, metadata_type):
    # Uint256 is stored as VARCHAR(78); anything else is a real difference.
    if isinstance(metadata_type, Uint256):
        return not (isinstance(inspected_type, String) and inspected_type.length == 78)
    return None


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""

    context.configure(
        url=DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=_compare_type,
        render_item=render_item,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""

    connectable: Engine | Connection = make_engine(database_url=DATABASE_URL)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=_compare_type,
            render_item=render_item,
            render_as_batch=connection.engine.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
