from logging.config import fileConfig

from sqlalchemy import engine_from_config, event, pool
from alembic import context

from shot_core.infra.config import settings

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Sync variant of the engine URL.
db_url = settings.database_url_sync
config.set_main_option("sqlalchemy.url", db_url)

from shot_core.models.db_models import Base
target_metadata = Base.metadata


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        render_as_batch=True,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    _configure(url=config.get_main_option("sqlalchemy.url"), literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    # SQLite foreign keys
    if db_url.startswith("sqlite"):

        @event.listens_for(connectable, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    with connectable.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
