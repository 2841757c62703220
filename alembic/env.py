from logging.config import fileConfig
from alembic import context
from sqlalchemy import engine_from_config, pool
import os
import models

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

url = os.getenv('MNEMONIC_DATABASE_URL')
if not url:
    raise RuntimeError('MNEMONIC_DATABASE_URL must be set to run migrations')

target_metadata = models.metadata


def run_migrations_offline():
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        compare_server_default=True,
        dialect_opts={'paramstyle': 'named'},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        {'sqlalchemy.url': url},
        prefix='sqlalchemy.',
        poolclass=pool.NullPool,
        future=True,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
            render_as_batch=connection.dialect.name == 'sqlite',
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
