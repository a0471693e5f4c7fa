# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from alembic import context

import common.config
import common.db.postgres as db
import common.db.document_store  # noqa: F401 registers the tables on the metadata

config = context.config
db_config = common.config.DBConfig()
config.set_main_option("sqlalchemy.url", db_config.SQLALCHEMY_DATABASE_URL)

target_metadata = db.Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    # Sets up the schema and search path for postgres
    engine, _ = db._setup_db(db_config.SQLALCHEMY_DATABASE_URL, db_config.SQLALCHEMY_DATABASE_SCHEMA)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
