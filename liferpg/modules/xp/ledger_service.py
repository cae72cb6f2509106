"""
XP Grant Ledger
===============

Append-only record of every XP award. Each row captures the amount, where it
came from (``source_type`` / ``source_id``) and an optional reason. Rows are
never updated; they disappear only when their stat is deleted.

Invariant: for every stat, ``SUM(xp_grants.amount) == cumulative_xp``.

Writes happen inside the caller's transaction (``record_grant`` takes a
session) so the grant and the stat update commit or roll back together.
Reads open their own session.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import func, select

from liferpg.core.config.config import Config
from liferpg.core.database.service import DatabaseService
from liferpg.core.logging.logger import get_logger
from liferpg.core.validation.input_validator import InputValidator
from liferpg.database.models import CharacterStat, XpGrant, XpSourceType
from liferpg.domain.models.stat import XpGrantRecord
from liferpg.modules.shared.base_repository import BaseRepository
from liferpg.modules.shared.base_service import BaseService
from liferpg.modules.shared.exceptions import NotFoundError, ValidationError
from liferpg.modules.stats.service import StatRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


class XpGrantRepository(BaseRepository[XpGrant]):
    """Repository for ledger rows."""

    async def history_for_stat(
        self,
        session: AsyncSession,
        stat_id: uuid.UUID,
        limit: int,
        offset: int,
    ) -> List[XpGrant]:
        return await self.find_many_where(
            session,
            XpGrant.stat_id == stat_id,
            order_by=(XpGrant.created_at.desc(), XpGrant.id.desc()),
            limit=limit,
            offset=offset,
        )

    async def total_for_stat(self, session: AsyncSession, stat_id: uuid.UUID) -> int:
        return await self.sum_column(session, XpGrant.amount, XpGrant.stat_id == stat_id)

    async def totals_by_source(self, session: AsyncSession, stat_id: uuid.UUID) -> Dict[str, int]:
        stmt = (
            select(XpGrant.source_type, func.coalesce(func.sum(XpGrant.amount), 0))
            .where(XpGrant.stat_id == stat_id)
            .group_by(XpGrant.source_type)
        )
        rows = (await session.execute(stmt)).all()
        return {source_type: int(total) for source_type, total in rows}


class XpGrantLedger(BaseService):
    """
    Service wrapper around the XP ledger.

    Public Methods
    --------------
    - record_grant() -> Append a grant inside an existing transaction
    - get_history() -> Paged grants for one owned stat, newest first
    - sum_for_stat() -> Ledger total for a stat
    - get_recent_grants() -> Latest grants across all of a user's stats
    - get_grants_for_source() -> Grants that reference one external source
    - get_breakdown_by_source() -> Ledger total per source type for a stat
    """

    def __init__(self, logger: Optional[Logger] = None) -> None:
        super().__init__(logger or get_logger(__name__))

        self._grant_repo = XpGrantRepository(
            model_class=XpGrant,
            logger=get_logger(f"{__name__}.XpGrantRepository"),
        )
        self._stat_repo = StatRepository(
            model_class=CharacterStat,
            logger=get_logger(f"{__name__}.StatRepository"),
        )

    @property
    def repository(self) -> XpGrantRepository:
        return self._grant_repo

    # ========================================================================
    # WRITE (caller-owned transaction)
    # ========================================================================

    async def record_grant(
        self,
        session: AsyncSession,
        *,
        stat_id: uuid.UUID,
        user_id: uuid.UUID,
        amount: int,
        source_type: XpSourceType,
        resulting_total: int,
        source_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> XpGrant:
        """
        Append one grant. Must be called inside the transaction that applies
        the same amount to the stat.

        Args:
            resulting_total: The stat's cumulative XP after this grant; used
                only to refuse grants that would take the total below zero

        Raises:
            ValidationError: Zero amount, unknown source type, or a resulting
                total below zero
        """
        amount = InputValidator.validate_xp_amount(amount)
        source_type = InputValidator.validate_source_type(source_type)
        source_id = InputValidator.validate_source_id(source_id)
        reason = InputValidator.validate_optional_text(reason, "reason") or None

        if resulting_total < 0:
            raise ValidationError(
                "amount",
                f"Grant of {amount} XP would leave the stat at {resulting_total} XP; totals cannot go below zero",
            )

        grant = self._grant_repo.add(
            session,
            XpGrant(
                stat_id=stat_id,
                user_id=user_id,
                amount=amount,
                source_type=source_type.value,
                source_id=source_id,
                reason=reason,
            ),
        )
        await self._grant_repo.flush(session)

        self.log.debug(
            "Ledger grant recorded",
            extra={
                "stat_id": str(stat_id),
                "user_id": str(user_id),
                "amount": amount,
                "source_type": source_type.value,
                "source_id": source_id,
            },
        )

        return grant

    # ========================================================================
    # READ
    # ========================================================================

    async def get_history(
        self,
        stat_id: Any,
        user_id: Any,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[XpGrantRecord]:
        """
        Grants for one owned stat, newest first.

        Raises:
            NotFoundError: If the stat does not exist or is not owned by user_id
            ValidationError: Bad limit/offset
        """
        stat_id = InputValidator.validate_uuid(stat_id, "stat_id")
        user_id = InputValidator.validate_uuid(user_id, "user_id")
        if limit is None:
            limit = Config.XP_HISTORY_DEFAULT_LIMIT
        limit, offset = InputValidator.validate_pagination(
            limit, offset, max_limit=Config.XP_HISTORY_MAX_LIMIT
        )

        async with DatabaseService.get_session() as session:
            if await self._stat_repo.find_owned(session, stat_id, user_id) is None:
                raise NotFoundError("CharacterStat", stat_id)

            grants = await self._grant_repo.history_for_stat(session, stat_id, limit, offset)

        return [XpGrantRecord.from_db(grant) for grant in grants]

    async def sum_for_stat(self, stat_id: Any, session: Optional[AsyncSession] = None) -> int:
        """Ledger total for a stat (0 when it has no grants)."""
        stat_id = InputValidator.validate_uuid(stat_id, "stat_id")

        if session is not None:
            return await self._grant_repo.total_for_stat(session, stat_id)

        async with DatabaseService.get_session() as own_session:
            return await self._grant_repo.total_for_stat(own_session, stat_id)

    async def get_recent_grants(self, user_id: Any, limit: int = 10) -> List[XpGrantRecord]:
        """Most recent grants across every stat owned by ``user_id``."""
        user_id = InputValidator.validate_uuid(user_id, "user_id")
        limit, _ = InputValidator.validate_pagination(
            limit, 0, max_limit=Config.XP_HISTORY_MAX_LIMIT
        )

        async with DatabaseService.get_session() as session:
            grants = await self._grant_repo.find_many_where(
                session,
                XpGrant.user_id == user_id,
                order_by=(XpGrant.created_at.desc(), XpGrant.id.desc()),
                limit=limit,
            )

        return [XpGrantRecord.from_db(grant) for grant in grants]

    async def get_grants_for_source(
        self,
        user_id: Any,
        source_type: Any,
        source_id: Any,
    ) -> List[XpGrantRecord]:
        """
        Every grant a user received from one external source, e.g. all XP
        awarded for a particular task. Oldest first.
        """
        user_id = InputValidator.validate_uuid(user_id, "user_id")
        source_type = InputValidator.validate_source_type(source_type)
        source_id = InputValidator.validate_source_id(source_id)
        if source_id is None:
            raise ValidationError("source_id", "Value is required")

        async with DatabaseService.get_session() as session:
            grants = await self._grant_repo.find_many_where(
                session,
                XpGrant.user_id == user_id,
                XpGrant.source_type == source_type.value,
                XpGrant.source_id == source_id,
                order_by=(XpGrant.created_at.asc(), XpGrant.id.asc()),
            )

        return [XpGrantRecord.from_db(grant) for grant in grants]

    async def get_breakdown_by_source(self, stat_id: Any, user_id: Any) -> Dict[XpSourceType, int]:
        """
        Net XP per source type for one owned stat. Source types with no
        grants are reported as 0.

        Raises:
            NotFoundError: If the stat does not exist or is not owned by user_id
        """
        stat_id = InputValidator.validate_uuid(stat_id, "stat_id")
        user_id = InputValidator.validate_uuid(user_id, "user_id")

        async with DatabaseService.get_session() as session:
            if await self._stat_repo.find_owned(session, stat_id, user_id) is None:
                raise NotFoundError("CharacterStat", stat_id)

            totals = await self._grant_repo.totals_by_source(session, stat_id)

        return {source: totals.get(source.value, 0) for source in XpSourceType}
