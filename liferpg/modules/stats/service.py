"""
Stat Store Service
==================

Purpose
-------
CRUD for user-owned character stats. Every operation is scoped to the
requesting user; a stat that exists but belongs to someone else is
indistinguishable from a stat that does not exist.

Domain
------
- Create stats (free-form or from the predefined catalog)
- List and fetch stats, correcting any stored level that has drifted from
  the level derived from cumulative XP ("self-heal")
- Edit descriptive fields (name, description, example activities)
- Delete a stat together with its XP ledger

``cumulative_xp`` and ``current_level`` are never writable here; they are
owned by ``XpAwardService``.

Concurrency
-----------
Self-heal writes are conditional on the cumulative XP that was read
(``UPDATE ... WHERE cumulative_xp = :observed``), so they are idempotent and
a concurrent award always wins. Edits and deletes lock the row first.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlalchemy.orm.exc import StaleDataError

from liferpg.core.database.service import DatabaseService
from liferpg.core.logging.logger import get_logger
from liferpg.core.validation.input_validator import InputValidator
from liferpg.database.models import CharacterStat, XpGrant
from liferpg.domain.models.stat import StatSnapshot
from liferpg.modules.shared.base_repository import BaseRepository
from liferpg.modules.shared.base_service import BaseService
from liferpg.modules.shared.exceptions import ConflictError, NotFoundError, ValidationError
from liferpg.modules.shared.formulas import level_for_xp
from liferpg.modules.stats.catalog import PredefinedStat, find_predefined_stat, get_predefined_stats

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

EDITABLE_FIELDS = frozenset({"name", "description", "example_activities"})


# ============================================================================
# Repository
# ============================================================================


class StatRepository(BaseRepository[CharacterStat]):
    """Repository for CharacterStat rows, always filtered by owner."""

    async def find_owned(
        self,
        session: AsyncSession,
        stat_id: uuid.UUID,
        user_id: uuid.UUID,
        for_update: bool = False,
    ) -> Optional[CharacterStat]:
        return await self.find_one_where(
            session,
            CharacterStat.id == stat_id,
            CharacterStat.user_id == user_id,
            for_update=for_update,
        )

    async def list_for_user(self, session: AsyncSession, user_id: uuid.UUID) -> List[CharacterStat]:
        return await self.find_many_where(
            session,
            CharacterStat.user_id == user_id,
            order_by=(CharacterStat.name.asc(), CharacterStat.id.asc()),
        )

    async def heal_level(
        self,
        session: AsyncSession,
        stat_id: uuid.UUID,
        observed_xp: int,
        derived_level: int,
    ) -> bool:
        """
        Overwrite ``current_level`` only if ``cumulative_xp`` is still the
        value the caller derived the level from. Returns True if a row changed.
        """
        result = await session.execute(
            update(CharacterStat)
            .where(
                CharacterStat.id == stat_id,
                CharacterStat.cumulative_xp == observed_xp,
                CharacterStat.current_level != derived_level,
            )
            .values(current_level=derived_level)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0


# ============================================================================
# StatService
# ============================================================================


class StatService(BaseService):
    """
    Service for user-owned character stats.

    Public Methods
    --------------
    - create_stat() -> New stat at 0 XP / level 1
    - create_from_catalog() -> New stat copied from a predefined entry
    - list_predefined_stats() -> The predefined catalog
    - get_stats_for_user() -> All of a user's stats, by name
    - get_stat() -> One owned stat
    - update_stat() -> Edit descriptive fields
    - delete_stat() -> Remove a stat and its grants
    """

    def __init__(self, logger: Optional[Logger] = None) -> None:
        super().__init__(logger or get_logger(__name__))

        self._stat_repo = StatRepository(
            model_class=CharacterStat,
            logger=get_logger(f"{__name__}.StatRepository"),
        )
        self._grant_repo = BaseRepository(
            model_class=XpGrant,
            logger=get_logger(f"{__name__}.GrantRepository"),
        )

    @property
    def repository(self) -> StatRepository:
        return self._stat_repo

    # ========================================================================
    # PUBLIC API - Create
    # ========================================================================

    async def create_stat(
        self,
        user_id: Any,
        name: Any,
        description: Any = "",
        example_activities: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> StatSnapshot:
        """
        Create a stat at 0 XP and level 1.

        Raises:
            ValidationError: Empty name, non-string description or malformed
                example activities

        Example:
            >>> stat = await stat_service.create_stat(user_id, "Strength")
            >>> (stat.cumulative_xp, stat.current_level)
            (0, 1)
        """
        user_id = InputValidator.validate_uuid(user_id, "user_id")
        name = InputValidator.validate_stat_name(name)
        description = InputValidator.validate_optional_text(description, "description") or ""
        activities = InputValidator.validate_example_activities(example_activities)

        async with DatabaseService.get_transaction() as session:
            stat = self._stat_repo.add(
                session,
                CharacterStat(
                    user_id=user_id,
                    name=name,
                    description=description,
                    example_activities=activities,
                    cumulative_xp=0,
                    current_level=1,
                ),
            )
            await self._stat_repo.flush(session)

        self.log_operation("create_stat", user_id=str(user_id), stat_id=str(stat.id), stat_name=name)

        return StatSnapshot.from_db(stat)

    async def create_from_catalog(self, user_id: Any, catalog_name: str) -> StatSnapshot:
        """
        Create a stat from the predefined catalog (case-insensitive name).

        Raises:
            NotFoundError: If the catalog has no entry with that name
        """
        entry = find_predefined_stat(catalog_name)
        if entry is None:
            raise NotFoundError("PredefinedStat", catalog_name)

        return await self.create_stat(
            user_id,
            entry.name,
            description=entry.description,
            example_activities=entry.activities_payload(),
        )

    def list_predefined_stats(self) -> Tuple[PredefinedStat, ...]:
        return get_predefined_stats()

    # ========================================================================
    # PUBLIC API - Read (with self-heal)
    # ========================================================================

    async def get_stats_for_user(self, user_id: Any) -> List[StatSnapshot]:
        """
        All stats owned by ``user_id``, ordered by name.

        Any stored level that disagrees with its cumulative XP is corrected
        in storage before returning. An unknown user simply has no stats.
        """
        user_id = InputValidator.validate_uuid(user_id, "user_id")

        async with DatabaseService.get_session() as session:
            stats = await self._stat_repo.list_for_user(session, user_id)

        await self._heal_drifted_levels(stats)

        return [self._snapshot(stat) for stat in stats]

    async def get_stat(self, stat_id: Any, user_id: Any) -> StatSnapshot:
        """
        One stat owned by ``user_id``, level self-healed.

        Raises:
            NotFoundError: If the stat does not exist or is not owned by user_id
        """
        stat_id = InputValidator.validate_uuid(stat_id, "stat_id")
        user_id = InputValidator.validate_uuid(user_id, "user_id")

        async with DatabaseService.get_session() as session:
            stat = await self._stat_repo.find_owned(session, stat_id, user_id)

        if stat is None:
            raise NotFoundError("CharacterStat", stat_id)

        await self._heal_drifted_levels([stat])

        return self._snapshot(stat)

    # ========================================================================
    # PUBLIC API - Update / Delete
    # ========================================================================

    async def update_stat(
        self,
        stat_id: Any,
        user_id: Any,
        changes: Mapping[str, Any],
    ) -> StatSnapshot:
        """
        Edit a stat's descriptive fields.

        ``changes`` may contain ``name``, ``description`` and
        ``example_activities``. Any other key is rejected; in particular the
        XP total and level can only change through XP awards.

        Raises:
            ValidationError: Disallowed key or invalid value
            NotFoundError: If the stat does not exist or is not owned by user_id
        """
        stat_id = InputValidator.validate_uuid(stat_id, "stat_id")
        user_id = InputValidator.validate_uuid(user_id, "user_id")

        if not isinstance(changes, Mapping):
            raise ValidationError("changes", "Must be a mapping of field names to values")

        rejected = sorted(set(changes) - EDITABLE_FIELDS)
        if rejected:
            raise ValidationError(
                rejected[0],
                f"Field cannot be modified directly; editable fields: {', '.join(sorted(EDITABLE_FIELDS))}",
            )

        validated: Dict[str, Any] = {}
        if "name" in changes:
            validated["name"] = InputValidator.validate_stat_name(changes["name"])
        if "description" in changes:
            validated["description"] = (
                InputValidator.validate_optional_text(changes["description"], "description") or ""
            )
        if "example_activities" in changes:
            validated["example_activities"] = InputValidator.validate_example_activities(
                changes["example_activities"]
            )

        try:
            async with DatabaseService.get_transaction() as session:
                stat = await self._stat_repo.find_owned(session, stat_id, user_id, for_update=True)
                if stat is None:
                    raise NotFoundError("CharacterStat", stat_id)

                for field_name, value in validated.items():
                    setattr(stat, field_name, value)

                # Rows written before level derivation was enforced
                derived = level_for_xp(stat.cumulative_xp)
                if stat.current_level != derived:
                    stat.current_level = derived

                await self._stat_repo.flush(session)

        except StaleDataError as exc:
            raise ConflictError("CharacterStat", stat_id) from exc

        self.log_operation(
            "update_stat",
            user_id=str(user_id),
            stat_id=str(stat_id),
            fields=sorted(validated),
        )

        return StatSnapshot.from_db(stat)

    async def delete_stat(self, stat_id: Any, user_id: Any) -> bool:
        """
        Delete a stat and every grant recorded against it, atomically.

        Returns:
            True if a stat was deleted, False if none matched (missing or
            owned by another user)
        """
        stat_id = InputValidator.validate_uuid(stat_id, "stat_id")
        user_id = InputValidator.validate_uuid(user_id, "user_id")

        async with DatabaseService.get_transaction() as session:
            stat = await self._stat_repo.find_owned(session, stat_id, user_id, for_update=True)
            if stat is None:
                self.log.debug(
                    "delete_stat: no owned stat",
                    extra={"stat_id": str(stat_id), "user_id": str(user_id)},
                )
                return False

            grants_deleted = await self._grant_repo.delete_where(session, XpGrant.stat_id == stat_id)
            await self._stat_repo.delete(session, stat)

        self.log_operation(
            "delete_stat",
            user_id=str(user_id),
            stat_id=str(stat_id),
            grants_deleted=grants_deleted,
        )

        return True

    # ========================================================================
    # INTERNAL HELPERS
    # ========================================================================

    @staticmethod
    def _snapshot(stat: CharacterStat) -> StatSnapshot:
        return StatSnapshot.from_db(stat, current_level=level_for_xp(stat.cumulative_xp))

    async def _heal_drifted_levels(self, stats: Sequence[CharacterStat]) -> int:
        drifted = [
            (stat, level_for_xp(stat.cumulative_xp))
            for stat in stats
            if stat.current_level != level_for_xp(stat.cumulative_xp)
        ]
        if not drifted:
            return 0

        healed = 0
        async with DatabaseService.get_transaction() as session:
            for stat, derived in drifted:
                if await self._stat_repo.heal_level(session, stat.id, stat.cumulative_xp, derived):
                    healed += 1

        for stat, derived in drifted:
            self.log.warning(
                "Stored level disagreed with cumulative XP; corrected",
                extra={
                    "stat_id": str(stat.id),
                    "cumulative_xp": stat.cumulative_xp,
                    "stored_level": stat.current_level,
                    "derived_level": derived,
                },
            )

        return healed
