"""
Database subsystem bootstrap.

Single entry point for bringing the database layer up and down:

1. ``initialize_database_subsystem()`` initializes DatabaseService, optionally
   creates the schema, and optionally verifies connectivity with a bounded
   health check.
2. ``shutdown_database_subsystem()`` disposes the engine.

Schema creation uses ``Base.metadata.create_all`` and is intended for local
development and tests; production deployments manage schema out of band.
"""

from __future__ import annotations

import asyncio

from liferpg.core.config.config import Config
from liferpg.core.database.base import Base
from liferpg.core.database.service import (
    DatabaseInitializationError,
    DatabaseService,
)
from liferpg.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Schema
# ============================================================================


async def create_schema() -> None:
    """Create all tables registered on ``Base.metadata`` (idempotent)."""
    # Registers the model tables on Base.metadata
    import liferpg.database.models  # noqa: F401

    engine = DatabaseService.get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info(
        "Database schema ensured",
        extra={"tables": sorted(Base.metadata.tables.keys())},
    )


async def drop_schema() -> None:
    """Drop every LifeRPG table. Test and development use only."""
    import liferpg.database.models  # noqa: F401

    engine = DatabaseService.get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    logger.warning("Database schema dropped")


# ============================================================================
# Subsystem Lifecycle
# ============================================================================


async def initialize_database_subsystem(
    *,
    verify_health: bool = True,
    ensure_schema: bool = False,
) -> None:
    """
    Initialize the database subsystem.

    Parameters
    ----------
    verify_health : bool, default=True
        Run a health check after initialization, bounded by
        ``DATABASE_BOOTSTRAP_HEALTH_TIMEOUT_SECONDS``.
    ensure_schema : bool, default=False
        Create missing tables.

    Raises
    ------
    DatabaseInitializationError
        If initialization fails or the health check fails or times out.
    """
    logger.info("Initializing database subsystem")

    await DatabaseService.initialize()

    if ensure_schema:
        await create_schema()

    if not verify_health:
        logger.info("Database subsystem initialized (health check skipped)")
        return

    health_timeout = float(Config.DATABASE_BOOTSTRAP_HEALTH_TIMEOUT_SECONDS)

    try:
        healthy = await asyncio.wait_for(DatabaseService.health_check(), timeout=health_timeout)
    except asyncio.TimeoutError as exc:
        logger.error(
            "Database health check timed out during bootstrap",
            extra={"timeout_seconds": health_timeout},
        )
        raise DatabaseInitializationError(
            f"Database health check timed out after {health_timeout}s"
        ) from exc

    if not healthy:
        logger.error("Database health check failed during bootstrap")
        raise DatabaseInitializationError(
            "Database is unreachable or unhealthy after initialization"
        )

    logger.info("Database subsystem initialized and healthy")


async def shutdown_database_subsystem() -> None:
    """Dispose the engine. Safe to call more than once."""
    logger.info("Shutting down database subsystem")
    await DatabaseService.shutdown()
