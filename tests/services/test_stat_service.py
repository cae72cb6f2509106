"""
Service Tests for StatService
=============================

Test Coverage
-------------
- Create (free-form and from the catalog)
- Listing order and ownership isolation
- Read-time level self-heal
- Editable-field whitelist
- Delete cascading to the ledger

Testing Strategy
----------------
Runs against a real SQLite database through ``DatabaseService``; each test
gets a fresh file.
"""

import uuid

import pytest
from sqlalchemy import func, select, update

from liferpg.core.database import DatabaseService
from liferpg.database.models import CharacterStat, XpGrant
from liferpg.modules.shared.exceptions import NotFoundError, ValidationError

pytestmark = [pytest.mark.database]


async def _set_stored_level(stat_id, level):
    async with DatabaseService.get_transaction() as session:
        await session.execute(
            update(CharacterStat).where(CharacterStat.id == stat_id).values(current_level=level)
        )


async def _stored_level(stat_id):
    async with DatabaseService.get_session() as session:
        return (
            await session.execute(select(CharacterStat.current_level).where(CharacterStat.id == stat_id))
        ).scalar_one()


# ============================================================================
# CREATE
# ============================================================================


class TestCreateStat:
    async def test_new_stat_starts_at_level_one(self, sqlite_database, stat_service, user_id):
        # Act
        stat = await stat_service.create_stat(user_id, "  Wisdom ", description="Learning")

        # Assert
        assert stat.name == "Wisdom"
        assert stat.user_id == user_id
        assert stat.cumulative_xp == 0
        assert stat.current_level == 1
        assert stat.xp_to_next_level == 100
        assert stat.can_level_up is False
        assert stat.example_activities == ()

    async def test_example_activities_round_trip(self, sqlite_database, stat_service, user_id):
        created = await stat_service.create_stat(
            user_id,
            "Strength",
            example_activities=[{"description": "Hike", "suggestedXp": 30}],
        )

        fetched = await stat_service.get_stat(created.id, user_id)

        assert [a.to_dict() for a in fetched.example_activities] == [
            {"description": "Hike", "suggested_xp": 30}
        ]

    async def test_empty_name_rejected(self, sqlite_database, stat_service, user_id):
        with pytest.raises(ValidationError) as exc_info:
            await stat_service.create_stat(user_id, "   ")

        assert exc_info.value.field == "name"
        assert await stat_service.get_stats_for_user(user_id) == []

    async def test_malformed_activities_rejected(self, sqlite_database, stat_service, user_id):
        with pytest.raises(ValidationError):
            await stat_service.create_stat(
                user_id, "Strength", example_activities=[{"description": "Run", "suggested_xp": -3}]
            )

    async def test_create_from_catalog(self, sqlite_database, stat_service, user_id):
        stat = await stat_service.create_from_catalog(user_id, "creativity")

        assert stat.name == "Creativity"
        assert len(stat.example_activities) == 4
        assert stat.cumulative_xp == 0

    async def test_create_from_unknown_catalog_entry(self, sqlite_database, stat_service, user_id):
        with pytest.raises(NotFoundError):
            await stat_service.create_from_catalog(user_id, "Juggling")

    def test_list_predefined_stats(self, stat_service):
        assert len(stat_service.list_predefined_stats()) == 6


# ============================================================================
# READ / OWNERSHIP
# ============================================================================


class TestReadStats:
    async def test_list_ordered_by_name(self, sqlite_database, stat_service, user_id):
        for name in ("Wisdom", "Adventure", "Strength"):
            await stat_service.create_stat(user_id, name)

        stats = await stat_service.get_stats_for_user(user_id)

        assert [s.name for s in stats] == ["Adventure", "Strength", "Wisdom"]

    async def test_unknown_user_has_no_stats(self, sqlite_database, stat_service):
        assert await stat_service.get_stats_for_user(uuid.uuid4()) == []

    async def test_other_users_stats_are_invisible(
        self, strength_stat, stat_service, user_id, other_user_id
    ):
        await stat_service.create_stat(other_user_id, "Wisdom")

        mine = await stat_service.get_stats_for_user(user_id)
        theirs = await stat_service.get_stats_for_user(other_user_id)

        assert [s.name for s in mine] == ["Strength"]
        assert [s.name for s in theirs] == ["Wisdom"]

    async def test_get_stat_not_owned(self, strength_stat, stat_service, other_user_id):
        with pytest.raises(NotFoundError) as exc_info:
            await stat_service.get_stat(strength_stat.id, other_user_id)

        assert exc_info.value.resource_type == "CharacterStat"

    async def test_get_missing_stat_looks_like_unowned(self, sqlite_database, stat_service, user_id):
        with pytest.raises(NotFoundError) as missing:
            await stat_service.get_stat(uuid.uuid4(), user_id)

        assert missing.value.error_code == "CHARACTERSTAT_NOT_FOUND"


# ============================================================================
# SELF-HEAL
# ============================================================================


class TestSelfHeal:
    async def test_get_stat_corrects_stored_level(
        self, strength_stat, stat_service, award_service, user_id
    ):
        # Arrange - 350 XP is level 3, corrupt the stored level
        await award_service.award_xp(user_id, strength_stat.id, 350, "task")
        await _set_stored_level(strength_stat.id, 1)

        # Act
        stat = await stat_service.get_stat(strength_stat.id, user_id)

        # Assert
        assert stat.current_level == 3
        assert await _stored_level(strength_stat.id) == 3

    async def test_list_corrects_every_drifted_stat(
        self, sqlite_database, stat_service, award_service, user_id
    ):
        a = await stat_service.create_stat(user_id, "A")
        b = await stat_service.create_stat(user_id, "B")
        await award_service.award_xp(user_id, a.id, 100, "task")
        await award_service.award_xp(user_id, b.id, 1000, "task")
        await _set_stored_level(a.id, 7)
        await _set_stored_level(b.id, 2)

        stats = await stat_service.get_stats_for_user(user_id)

        assert [s.current_level for s in stats] == [2, 5]
        assert await _stored_level(a.id) == 2
        assert await _stored_level(b.id) == 5

    async def test_consistent_stats_are_untouched(self, strength_stat, stat_service, user_id, mocker):
        spy = mocker.spy(stat_service.repository, "heal_level")

        await stat_service.get_stats_for_user(user_id)

        spy.assert_not_called()

    async def test_heal_is_conditional_on_observed_xp(self, strength_stat, stat_service, award_service, user_id):
        """A heal computed from a stale XP total must not overwrite a newer row."""
        await award_service.award_xp(user_id, strength_stat.id, 300, "task")

        async with DatabaseService.get_transaction() as session:
            changed = await stat_service.repository.heal_level(session, strength_stat.id, 0, 1)

        assert changed is False
        assert await _stored_level(strength_stat.id) == 3


# ============================================================================
# UPDATE / DELETE
# ============================================================================


class TestUpdateStat:
    async def test_update_descriptive_fields(self, strength_stat, stat_service, user_id):
        updated = await stat_service.update_stat(
            strength_stat.id,
            user_id,
            {
                "name": "Power",
                "description": "Lift things",
                "example_activities": [{"description": "Squat", "suggested_xp": 20}],
            },
        )

        assert updated.name == "Power"
        assert updated.description == "Lift things"
        assert updated.example_activities[0].description == "Squat"
        assert (await stat_service.get_stat(strength_stat.id, user_id)).name == "Power"

    @pytest.mark.parametrize("field", ["cumulative_xp", "current_level", "user_id", "version"])
    async def test_derived_fields_are_not_editable(self, strength_stat, stat_service, user_id, field):
        with pytest.raises(ValidationError) as exc_info:
            await stat_service.update_stat(strength_stat.id, user_id, {"name": "X", field: 9000})

        assert exc_info.value.field == field
        stat = await stat_service.get_stat(strength_stat.id, user_id)
        assert stat.name == "Strength"
        assert stat.cumulative_xp == 0

    async def test_update_not_owned(self, strength_stat, stat_service, other_user_id):
        with pytest.raises(NotFoundError):
            await stat_service.update_stat(strength_stat.id, other_user_id, {"name": "Mine now"})

    async def test_update_with_blank_name(self, strength_stat, stat_service, user_id):
        with pytest.raises(ValidationError):
            await stat_service.update_stat(strength_stat.id, user_id, {"name": ""})


class TestDeleteStat:
    async def test_delete_removes_stat_and_grants(
        self, strength_stat, stat_service, award_service, user_id
    ):
        # Arrange
        await award_service.award_xp(user_id, strength_stat.id, 50, "task")
        await award_service.award_xp(user_id, strength_stat.id, 75, "journal")

        # Act
        deleted = await stat_service.delete_stat(strength_stat.id, user_id)

        # Assert
        assert deleted is True
        async with DatabaseService.get_session() as session:
            remaining = (
                await session.execute(
                    select(func.count()).select_from(XpGrant).where(XpGrant.stat_id == strength_stat.id)
                )
            ).scalar_one()
        assert remaining == 0
        with pytest.raises(NotFoundError):
            await stat_service.get_stat(strength_stat.id, user_id)

    async def test_delete_not_owned_returns_false(self, strength_stat, stat_service, user_id, other_user_id):
        assert await stat_service.delete_stat(strength_stat.id, other_user_id) is False
        assert (await stat_service.get_stat(strength_stat.id, user_id)).name == "Strength"

    async def test_delete_missing_returns_false(self, sqlite_database, stat_service, user_id):
        assert await stat_service.delete_stat(uuid.uuid4(), user_id) is False
