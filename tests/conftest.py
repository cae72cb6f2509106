"""
Pytest Configuration and Fixtures for the LifeRPG XP Engine
===========================================================

Purpose
-------
Shared fixtures for the test suite: environment setup, a throwaway SQLite
database behind the real ``DatabaseService``, service instances and small
factories for stats.

Architecture Notes
------------------
- Environment variables are set before ``liferpg`` is imported, because
  ``Config`` and logging read them at import time
- Unit tests use no database
- Service tests run against a fresh SQLite file per test (NullPool; an
  in-memory database would not survive between connections)
- Integration tests bring their own PostgreSQL testcontainer
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./liferpg-test.db")

import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from liferpg.core.config import Config
from liferpg.core.database import DatabaseService, create_schema
from liferpg.core.logging import get_logger
from liferpg.domain.models import StatSnapshot
from liferpg.modules.stats import StatService
from liferpg.modules.xp import XpAwardService, XpGrantLedger

logger = get_logger(__name__)


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Register markers (mirrors pyproject.toml so single-file runs work)."""
    config.addinivalue_line("markers", "unit: fast tests with no database")
    config.addinivalue_line("markers", "database: tests that use a real database")
    config.addinivalue_line("markers", "integration: tests that need Docker/PostgreSQL")
    config.addinivalue_line("markers", "slow: long-running tests")


# ============================================================================
# DATABASE FIXTURES (Service Tests)
# ============================================================================


@pytest_asyncio.fixture
async def sqlite_database(tmp_path, monkeypatch) -> AsyncGenerator[str, None]:
    """
    Fresh SQLite database with the schema created.

    Scope: function (new file per test, clean slate)
    Uses: Service tests that exercise real transactions
    """
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'liferpg.db'}"

    # Make sure no engine from a previous test is still bound
    await DatabaseService.shutdown()
    monkeypatch.setattr(Config, "DATABASE_URL", database_url)

    await DatabaseService.initialize()
    await create_schema()

    logger.debug("Test database ready", extra={"database_url": database_url})

    yield database_url

    await DatabaseService.shutdown()


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def stat_service() -> StatService:
    return StatService()


@pytest.fixture
def ledger() -> XpGrantLedger:
    return XpGrantLedger()


@pytest.fixture
def award_service(ledger: XpGrantLedger) -> XpAwardService:
    return XpAwardService(ledger=ledger)


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def other_user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest_asyncio.fixture
async def strength_stat(sqlite_database, stat_service, user_id) -> StatSnapshot:
    """A freshly created stat at 0 XP / level 1."""
    return await stat_service.create_stat(
        user_id,
        "Strength",
        description="Physical power and endurance",
        example_activities=[{"description": "Workout session", "suggested_xp": 10}],
    )
