"""
Database Model Enums
====================

Type-safe constants for categorical columns. Declarative schema helpers
only; services own the rules that use them.
"""

from __future__ import annotations

import enum
from typing import Tuple


class XpSourceType(str, enum.Enum):
    """
    Where an XP grant came from.

    Stored as the lowercase string value in ``xp_grants.source_type``.
    ``source_id`` on the grant is an opaque reference into the owning
    subsystem (task id, journal entry id, ...) and is never dereferenced.
    """

    TASK = "task"
    JOURNAL = "journal"
    ADHOC = "adhoc"
    QUEST = "quest"
    EXPERIMENT = "experiment"

    @classmethod
    def values(cls) -> Tuple[str, ...]:
        return tuple(member.value for member in cls)
