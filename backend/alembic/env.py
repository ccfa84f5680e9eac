"""Alembic environment configuration.

Reads the database URL from planning_service.config and registers the
planning models so autogenerate can detect schema changes.
"""
from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context

# Import our app's config and models
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from planning_service.config import settings
from planning_service.database import Base

# Import all models so they register with Base.metadata
from planning_service.models.planning_event import PlanningEvent  # noqa: F401
from planning_service.models.comment import PlanningEventComment  # noqa: F401
from planning_service.models.document import Document, PlanningEventDocument  # noqa: F401
from planning_service.models.audit_log import AuditLog  # noqa: F401

# Catalog and user tables belong to other modules; keep them out of autogenerate
EXTERNAL_TABLES = {
    "users", "machines", "workstations", "clients", "parts",
    "manufacturing_orders", "manufacturing_operations",
}

config = context.config
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def include_object(obj, name, type_, reflected, compare_to):
    if type_ == "table" and name in EXTERNAL_TABLES:
        return False
    return True


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        include_object=include_object,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
