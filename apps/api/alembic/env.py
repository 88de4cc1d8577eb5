from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from entitlement_api.business.catalog import models as catalog_models  # noqa: F401
from entitlement_api.business.entitlement import models as entitlement_models  # noqa: F401
from entitlement_api.business.subscription import models as subscription_models  # noqa: F401
from entitlement_api.core.config import get_settings
from entitlement_api.core.database import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    # DATABASE_URL (via settings) wins over the ini default
    return get_settings().database_url or config.get_main_option("sqlalchemy.url") or ""


def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(_database_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
