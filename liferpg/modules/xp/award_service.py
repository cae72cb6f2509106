"""
XP Award Service
================

Purpose
-------
The single entry point that changes a stat's XP or level. Every award is one
atomic transaction that:

1. Locks the stat row (``SELECT ... FOR UPDATE``)
2. Checks the resulting total stays between zero and ``MAX_XP_MAGNITUDE``
3. Appends an immutable grant to the ledger
4. Writes the new cumulative XP and derived level (version-checked)

If any step fails the whole transaction rolls back, so a grant row never
exists without the matching stat update and vice versa.

Concurrency
-----------
On PostgreSQL the row lock serialises awards on the same stat; awards on
different stats proceed in parallel. On SQLite ``BEGIN IMMEDIATE`` serialises
all writers. The ``version`` column is a second line of defence: a stale
write raises ``StaleDataError``, which becomes ``ConflictError`` and is
retried up to ``Config.XP_AWARD_MAX_ATTEMPTS`` times.

Logging
-------
- INFO: level changes
- WARNING: conflict retries, ledger drift found by ``reconcile_stat``
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy.orm.exc import StaleDataError

from liferpg.core.database.service import DatabaseService
from liferpg.core.logging.logger import LogContext, get_logger
from liferpg.core.validation.input_validator import MAX_XP_MAGNITUDE, InputValidator
from liferpg.database.models import CharacterStat
from liferpg.domain.models.stat import AwardResult, StatSnapshot, XpGrantRecord
from liferpg.modules.shared.base_service import BaseService
from liferpg.modules.shared.exceptions import ConflictError, NotFoundError, ValidationError
from liferpg.modules.shared.formulas import level_for_xp
from liferpg.modules.stats.service import StatRepository
from liferpg.modules.xp.ledger_service import XpGrantLedger

if TYPE_CHECKING:
    import uuid
    from logging import Logger

    from liferpg.database.models import XpSourceType


class XpAwardService(BaseService):
    """
    Applies XP grants to stats and detects level-ups.

    Public Methods
    --------------
    - award_xp() -> Grant (or deduct) XP, returning the new stat state
    - reconcile_stat() -> Rebuild a stat's total from its ledger
    """

    def __init__(
        self,
        ledger: Optional[XpGrantLedger] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        super().__init__(logger or get_logger(__name__))

        self.ledger = ledger or XpGrantLedger()
        self._stat_repo = StatRepository(
            model_class=CharacterStat,
            logger=get_logger(f"{__name__}.StatRepository"),
        )

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def award_xp(
        self,
        user_id: Any,
        stat_id: Any,
        amount: Any,
        source_type: Any,
        source_id: Any = None,
        reason: Any = None,
    ) -> AwardResult:
        """
        Apply an XP grant to one of the user's stats.

        Args:
            user_id: Owner of the stat
            stat_id: Stat to award
            amount: Non-zero integer; negative amounts are corrections and may
                not take the stat below 0 XP
            source_type: One of ``XpSourceType`` (or its string value)
            source_id: Optional opaque reference to the originating item
            reason: Optional free text

        Returns:
            AwardResult with the post-award stat, the ledger entry and level-up
            information (``new_level`` is the final level for multi-level jumps)

        Raises:
            ValidationError: Bad input, or the grant would push the total below 0
                or above ``MAX_XP_MAGNITUDE``
            NotFoundError: If the stat does not exist or is not owned by user_id
            ConflictError: Concurrent modification persisted through every retry

        Example:
            >>> result = await award_service.award_xp(user_id, stat_id, 150, "task")
            >>> result.leveled_up, result.new_level
            (True, 2)
        """
        user_id = InputValidator.validate_uuid(user_id, "user_id")
        stat_id = InputValidator.validate_uuid(stat_id, "stat_id")
        amount = InputValidator.validate_xp_amount(amount)
        source_type = InputValidator.validate_source_type(source_type)
        source_id = InputValidator.validate_source_id(source_id)
        reason = InputValidator.validate_optional_text(reason, "reason") or None

        max_attempts = self.get_config("XP_AWARD_MAX_ATTEMPTS", 3)

        async with LogContext(user_id=user_id, stat_id=stat_id, operation="award_xp"):
            for attempt in range(1, max_attempts + 1):
                try:
                    result = await self._award_once(
                        user_id, stat_id, amount, source_type, source_id, reason
                    )
                except ConflictError as exc:
                    self.log.warning(
                        f"Concurrent modification while awarding XP (attempt {attempt}/{max_attempts})",
                        extra={"attempt": attempt, "max_attempts": max_attempts, "error": str(exc)},
                    )
                    continue

                self.log_operation(
                    "award_xp",
                    amount=amount,
                    source_type=source_type.value,
                    cumulative_xp=result.stat.cumulative_xp,
                    current_level=result.stat.current_level,
                    leveled_up=result.leveled_up,
                    attempt=attempt,
                )
                return result

            self.log.warning(
                "Giving up on XP award after repeated conflicts",
                extra={"attempts": max_attempts},
            )
            raise ConflictError("CharacterStat", stat_id, attempts=max_attempts)

    async def reconcile_stat(self, stat_id: Any, user_id: Any) -> StatSnapshot:
        """
        Rebuild ``cumulative_xp`` from the ledger and re-derive the level.

        Recovery path for data written outside ``award_xp``. A no-op when the
        stat already agrees with its ledger.

        Raises:
            NotFoundError: If the stat does not exist or is not owned by user_id
            ValidationError: If the ledger sums to a negative total
        """
        stat_id = InputValidator.validate_uuid(stat_id, "stat_id")
        user_id = InputValidator.validate_uuid(user_id, "user_id")

        try:
            async with DatabaseService.get_transaction() as session:
                stat = await self._stat_repo.find_owned(session, stat_id, user_id, for_update=True)
                if stat is None:
                    raise NotFoundError("CharacterStat", stat_id)

                ledger_total = await self.ledger.sum_for_stat(stat_id, session=session)
                if ledger_total < 0:
                    raise ValidationError(
                        "cumulative_xp",
                        f"Ledger for stat {stat_id} sums to {ledger_total}; cannot reconcile",
                    )

                derived_level = level_for_xp(ledger_total)
                if stat.cumulative_xp != ledger_total or stat.current_level != derived_level:
                    self.log.warning(
                        "Stat drifted from its ledger; reconciling",
                        extra={
                            "stat_id": str(stat_id),
                            "stored_xp": stat.cumulative_xp,
                            "ledger_xp": ledger_total,
                            "stored_level": stat.current_level,
                            "derived_level": derived_level,
                        },
                    )
                    stat.cumulative_xp = ledger_total
                    stat.current_level = derived_level
                    await self._stat_repo.flush(session)

        except StaleDataError as exc:
            raise ConflictError("CharacterStat", stat_id) from exc

        return StatSnapshot.from_db(stat)

    # ========================================================================
    # INTERNAL
    # ========================================================================

    async def _award_once(
        self,
        user_id: uuid.UUID,
        stat_id: uuid.UUID,
        amount: int,
        source_type: XpSourceType,
        source_id: Optional[str],
        reason: Optional[str],
    ) -> AwardResult:
        """One transactional attempt. ConflictError means safe to retry."""
        try:
            async with DatabaseService.get_transaction() as session:
                stat = await self._stat_repo.find_owned(session, stat_id, user_id, for_update=True)
                if stat is None:
                    raise NotFoundError("CharacterStat", stat_id)

                previous_xp = stat.cumulative_xp
                previous_level = stat.current_level
                new_total = previous_xp + amount

                if new_total < 0:
                    raise ValidationError(
                        "amount",
                        f"Cannot remove {-amount} XP from a stat with {previous_xp} XP",
                    )
                if new_total > MAX_XP_MAGNITUDE:
                    raise ValidationError(
                        "amount",
                        f"Adding {amount} XP to {previous_xp} XP exceeds the maximum of {MAX_XP_MAGNITUDE}",
                    )

                grant = await self.ledger.record_grant(
                    session,
                    stat_id=stat_id,
                    user_id=user_id,
                    amount=amount,
                    source_type=source_type,
                    source_id=source_id,
                    reason=reason,
                    resulting_total=new_total,
                )

                new_level = level_for_xp(new_total)
                stat.cumulative_xp = new_total
                stat.current_level = new_level
                await self._stat_repo.flush(session)

        except StaleDataError as exc:
            raise ConflictError("CharacterStat", stat_id) from exc

        leveled_up = new_level > previous_level
        if new_level != previous_level:
            self.log.info(
                f"Stat '{stat.name}' {'leveled up' if leveled_up else 'dropped'} "
                f"from {previous_level} to {new_level}",
                extra={
                    "previous_level": previous_level,
                    "new_level": new_level,
                    "cumulative_xp": new_total,
                },
            )

        return AwardResult(
            stat=StatSnapshot.from_db(stat),
            grant=XpGrantRecord.from_db(grant),
            previous_level=previous_level,
            leveled_up=leveled_up,
            new_level=new_level if leveled_up else None,
        )
