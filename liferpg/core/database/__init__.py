"""
Database subsystem for LifeRPG.

Provides the async SQLAlchemy engine, session and transaction management,
and the ORM base classes and mixins used by model definitions.
"""

from liferpg.core.database.base import (
    Base,
    IdMixin,
    JSONType,
    TimestampMixin,
    utc_now,
)
from liferpg.core.database.bootstrap import (
    create_schema,
    drop_schema,
    initialize_database_subsystem,
    shutdown_database_subsystem,
)
from liferpg.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "IdMixin",
    "TimestampMixin",
    "JSONType",
    "utc_now",
    # Main service
    "DatabaseService",
    # Bootstrap
    "initialize_database_subsystem",
    "shutdown_database_subsystem",
    "create_schema",
    "drop_schema",
    # Exceptions
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
