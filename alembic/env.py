from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from xion_oauth.config import DEFAULT_RUNTIME_CONFIG_PATH, AppSettings
from xion_oauth.db import models as _models  # noqa: F401
from xion_oauth.db.base import Base
from xion_oauth.db.session import create_app_engine

config = context.config

if config.config_file_name:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def _database_url() -> str:
    """Runtime config (with its DATABASE_URL override) wins over alembic.ini.

    Only the database URL is needed here, so OAuth settings are not validated.
    """
    runtime_config_path = os.environ.get(
        "XION_OAUTH_RUNTIME_CONFIG_PATH", DEFAULT_RUNTIME_CONFIG_PATH
    )
    if os.environ.get("DATABASE_URL") or os.path.isfile(runtime_config_path):
        return AppSettings.from_yaml(runtime_config_path).database_url
    return str(config.get_main_option("sqlalchemy.url"))


def run_migrations_offline(database_url: str) -> None:
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=database_url.startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online(database_url: str) -> None:
    engine = create_app_engine(database_url)
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                compare_type=True,
                # SQLite cannot ALTER most constraints in place.
                render_as_batch=connection.dialect.name == "sqlite",
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline(_database_url())
else:
    run_migrations_online(_database_url())
