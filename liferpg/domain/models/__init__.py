"""
Domain models package for LifeRPG.

Immutable read models built from the ORM rows after a transaction ends.
Database models (``liferpg.database.models``) are anemic schemas; these
types are what the services return.
"""

from liferpg.modules.shared.formulas import LevelProgress, LevelRequirement

from .stat import AwardResult, ExampleActivity, StatSnapshot, XpGrantRecord

__all__ = [
    "AwardResult",
    "ExampleActivity",
    "LevelProgress",
    "LevelRequirement",
    "StatSnapshot",
    "XpGrantRecord",
]
