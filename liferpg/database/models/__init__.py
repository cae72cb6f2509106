"""
Database Models Package
========================

SQLAlchemy ORM models for the LifeRPG XP engine.

- Schema-only, no business logic
- ``Mapped[]`` syntax with ``mapped_column()``
- UUID primary keys via ``IdMixin``
- Explicit foreign keys with CASCADE rules
- Optimistic locking via ``version`` on mutable rows

Tables
------
- ``character_stats``: one row per user-defined stat
- ``xp_grants``: append-only XP ledger, one row per award
"""

from liferpg.core.database.base import Base

from .enums import XpSourceType
from .progression import CharacterStat, XpGrant

__all__ = [
    "Base",
    "CharacterStat",
    "XpGrant",
    "XpSourceType",
]
