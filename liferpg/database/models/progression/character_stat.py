"""
CharacterStat: a user-defined axis of personal growth.
Pure schema only.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Dict, List

from sqlalchemy import BigInteger, CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from liferpg.core.database.base import Base, IdMixin, JSONType, TimestampMixin

if TYPE_CHECKING:
    from .xp_grant import XpGrant


class CharacterStat(Base, IdMixin, TimestampMixin):
    """
    A stat such as "Strength" or "Wisdom" owned by exactly one user.

    ``cumulative_xp`` and ``current_level`` are written only by the award
    service; ``current_level`` is always derivable from ``cumulative_xp``.
    ``version`` is the optimistic-concurrency counter checked on every
    UPDATE.
    """

    __tablename__ = "character_stats"
    __table_args__ = (
        Index("ix_character_stats_user_name", "user_id", "name"),
        CheckConstraint("cumulative_xp >= 0", name="cumulative_xp_non_negative"),
        CheckConstraint("current_level >= 1", name="current_level_positive"),
    )

    # ========================================================================
    # OWNERSHIP & IDENTITY
    # ========================================================================

    user_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        index=True,
        doc="Owning user; every query filters on this",
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Display name, trimmed and non-empty",
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        doc="Free-form description",
    )

    example_activities: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        doc="Ordered [{description, suggested_xp}] hints; advisory only",
    )

    # ========================================================================
    # PROGRESSION
    # ========================================================================

    cumulative_xp: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        doc="Sum of all grant amounts for this stat",
    )

    current_level: Mapped[int] = mapped_column(
        nullable=False,
        default=1,
        doc="level_for_xp(cumulative_xp)",
    )

    version: Mapped[int] = mapped_column(
        nullable=False,
        default=1,
        doc="Optimistic locking version for concurrent updates",
    )

    __mapper_args__ = {"version_id_col": version}

    # ========================================================================
    # RELATIONSHIPS
    # ========================================================================

    grants: Mapped[List["XpGrant"]] = relationship(
        "XpGrant",
        back_populates="stat",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
        doc="Grant ledger rows; never loaded implicitly",
    )
