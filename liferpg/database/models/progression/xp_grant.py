"""
XpGrant: immutable XP ledger row.
Pure schema only.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from liferpg.core.database.base import Base, IdMixin, utc_now
from ..enums import XpSourceType

if TYPE_CHECKING:
    from .character_stat import CharacterStat


def _source_type_check() -> str:
    allowed = ", ".join(f"'{value}'" for value in XpSourceType.values())
    return f"source_type IN ({allowed})"


class XpGrant(Base, IdMixin):
    """
    One XP award (or deduction) against one stat.

    Schema-only:
    - stat_id / user_id
    - amount (non-zero, may be negative)
    - source_type / source_id / reason
    - created_at (assigned on insert, the ordering key)

    No TimestampMixin: ledger rows are never updated.
    """

    __tablename__ = "xp_grants"
    __table_args__ = (
        Index("ix_xp_grants_stat_created", "stat_id", "created_at"),
        Index("ix_xp_grants_user_created", "user_id", "created_at"),
        Index("ix_xp_grants_user_source", "user_id", "source_type", "source_id"),
        CheckConstraint("amount <> 0", name="amount_non_zero"),
        CheckConstraint(_source_type_check(), name="source_type_known"),
    )

    stat_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("character_stats.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        doc="Owner of the stat at grant time",
    )

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    source_type: Mapped[str] = mapped_column(String(20), nullable=False)

    source_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Opaque reference into the source subsystem",
    )

    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=utc_now,
    )

    stat: Mapped["CharacterStat"] = relationship("CharacterStat", back_populates="grants")
