"""
Alembic environment for the eventbook schema.

Migrations run on a synchronous driver. The URL comes from `-x url=...`,
then DATABASE_URL_SYNC, then DATABASE_URL with its async driver removed.
SQLite runs in batch mode so CHECK constraints and the partial unique
index on active reservations survive ALTER emulation.
"""

from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import make_url
from alembic import context

from eventbook.db.base import Base
from eventbook.models import User, Event, Reservation, RefreshToken  # noqa: F401 - register tables on Base.metadata
from eventbook.core.config import get_settings

config = context.config
settings = get_settings()

_ASYNC_DRIVERS = {"asyncpg": "psycopg2", "aiosqlite": "pysqlite"}


def _migration_url() -> str:
    override = context.get_x_argument(as_dictionary=True).get("url")
    if override:
        return override
    if settings.DATABASE_URL_SYNC:
        return settings.DATABASE_URL_SYNC

    url = make_url(settings.DATABASE_URL)
    backend, _, driver = url.drivername.partition("+")
    if driver in _ASYNC_DRIVERS:
        url = url.set(drivername=f"{backend}+{_ASYNC_DRIVERS[driver]}")
    return url.render_as_string(hide_password=False)


config.set_main_option("sqlalchemy.url", _migration_url())

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _configure_options(url) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": make_url(url).get_backend_name() == "sqlite",
    }


def run_migrations_offline() -> None:
    """Emit the migration as SQL for a DBA to review."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_options(connection.engine.url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
