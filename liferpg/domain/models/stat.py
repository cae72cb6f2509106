"""
Stat read models for LifeRPG.

Purpose
-------
Immutable snapshots handed back to callers of the XP engine. They are
detached from the ORM session, safe to cache and serialise, and never
written back. Services build them with ``from_db`` after their
transaction has finished.

Usage Example
-------------
>>> snapshot = StatSnapshot.from_db(stat_row)
>>> snapshot.current_level, snapshot.xp_to_next_level
(3, 150)
>>> payload = snapshot.to_dict()
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from liferpg.database.models.enums import XpSourceType
from liferpg.modules.shared.formulas import (
    LevelProgress,
    calculate_level_progress,
    xp_to_next_level,
)

if TYPE_CHECKING:
    from liferpg.database.models.progression.character_stat import CharacterStat
    from liferpg.database.models.progression.xp_grant import XpGrant


# ============================================================================
# VALUE OBJECTS
# ============================================================================


@dataclass(frozen=True)
class ExampleActivity:
    """Advisory hint: something that earns a stat XP, and roughly how much."""

    description: str
    suggested_xp: int

    def to_dict(self) -> Dict[str, Any]:
        return {"description": self.description, "suggested_xp": self.suggested_xp}


@dataclass(frozen=True)
class StatSnapshot:
    """
    Point-in-time view of one stat.

    Attributes
    ----------
    cumulative_xp : int
        Sum of every grant ever applied to the stat
    current_level : int
        Level derived from ``cumulative_xp``
    xp_to_next_level : int
        XP still needed for the next level (display only)
    can_level_up : bool
        Always False; levels are applied automatically on every award
    progress : LevelProgress
        In-level progress breakdown
    """

    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    description: str
    example_activities: Tuple[ExampleActivity, ...]
    cumulative_xp: int
    current_level: int
    xp_to_next_level: int
    progress: LevelProgress
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    can_level_up: bool = field(default=False)

    def __post_init__(self) -> None:
        if self.cumulative_xp < 0:
            raise ValueError(f"cumulative_xp cannot be negative, got {self.cumulative_xp}")
        if self.current_level < 1:
            raise ValueError(f"current_level must be >= 1, got {self.current_level}")

    @classmethod
    def from_db(cls, stat: "CharacterStat", current_level: Optional[int] = None) -> "StatSnapshot":
        """
        Build a snapshot from an ORM row.

        ``current_level`` overrides the stored level, used when the stored
        value was found to disagree with ``cumulative_xp``.
        """
        level = stat.current_level if current_level is None else current_level
        activities = tuple(
            ExampleActivity(
                description=item.get("description", ""),
                suggested_xp=int(item.get("suggested_xp", item.get("suggestedXp", 0))),
            )
            for item in (stat.example_activities or [])
        )

        return cls(
            id=stat.id,
            user_id=stat.user_id,
            name=stat.name,
            description=stat.description or "",
            example_activities=activities,
            cumulative_xp=stat.cumulative_xp,
            current_level=level,
            xp_to_next_level=xp_to_next_level(stat.cumulative_xp, level),
            progress=calculate_level_progress(stat.cumulative_xp),
            created_at=stat.created_at,
            updated_at=stat.updated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "name": self.name,
            "description": self.description,
            "example_activities": [activity.to_dict() for activity in self.example_activities],
            "cumulative_xp": self.cumulative_xp,
            "current_level": self.current_level,
            "xp_to_next_level": self.xp_to_next_level,
            "can_level_up": self.can_level_up,
            "progress": self.progress.to_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class XpGrantRecord:
    """One immutable ledger entry."""

    id: uuid.UUID
    stat_id: uuid.UUID
    user_id: uuid.UUID
    amount: int
    source_type: XpSourceType
    source_id: Optional[str]
    reason: Optional[str]
    created_at: datetime

    @classmethod
    def from_db(cls, grant: "XpGrant") -> "XpGrantRecord":
        return cls(
            id=grant.id,
            stat_id=grant.stat_id,
            user_id=grant.user_id,
            amount=grant.amount,
            source_type=XpSourceType(grant.source_type),
            source_id=grant.source_id,
            reason=grant.reason,
            created_at=grant.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "stat_id": str(self.stat_id),
            "user_id": str(self.user_id),
            "amount": self.amount,
            "source_type": self.source_type.value,
            "source_id": self.source_id,
            "reason": self.reason,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class AwardResult:
    """
    Outcome of a single XP award.

    ``new_level`` is only set when the award crossed at least one level
    boundary; for multi-level jumps it is the final level reached.
    """

    stat: StatSnapshot
    grant: XpGrantRecord
    previous_level: int
    leveled_up: bool
    new_level: Optional[int] = None

    @property
    def levels_gained(self) -> int:
        return self.stat.current_level - self.previous_level if self.leveled_up else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stat": self.stat.to_dict(),
            "grant": self.grant.to_dict(),
            "leveled_up": self.leveled_up,
            "new_level": self.new_level,
        }
