"""Alembic environment for the HoraMed tables.

Revisions are raw SQL (``op.execute``) with no SQLAlchemy metadata. When
``horamed.target_schema`` is set, the schema is created and put first on
``search_path`` before Alembic looks for its version table.
"""

from __future__ import annotations

from sqlalchemy import create_engine, pool

from alembic import context
from horamed.db import ConnectionSettings, normalize_schema_name


def _database_url() -> str:
    # Empty in alembic.ini; set by horamed.migrations or taken from the environment
    url = context.config.get_main_option("sqlalchemy.url")
    return url or ConnectionSettings.from_env().url("horamed")


def run_migrations() -> None:
    config = context.config
    target_schema = normalize_schema_name(config.get_main_option("horamed.target_schema"))
    engine = create_engine(_database_url(), poolclass=pool.NullPool)

    with engine.connect() as connection:
        if target_schema is not None:
            quoted = '"' + target_schema.replace('"', '""') + '"'
            connection.exec_driver_sql(f"CREATE SCHEMA IF NOT EXISTS {quoted}")
            connection.exec_driver_sql(f"SET search_path TO {quoted}, public")
            connection.commit()

        context.configure(
            connection=connection,
            target_metadata=None,
            version_table_schema=target_schema,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    raise RuntimeError("HoraMed migrations run against a live database; --sql is not supported")
run_migrations()
