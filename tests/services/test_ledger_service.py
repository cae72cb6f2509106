"""
Service tests for XpGrantLedger.

History ordering and paging, ownership checks, aggregation by source, and
the validation performed by ``record_grant``.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from liferpg.core.database import DatabaseService
from liferpg.database.models import XpGrant, XpSourceType
from liferpg.modules.shared.exceptions import NotFoundError, ValidationError

pytestmark = [pytest.mark.database]


@pytest.fixture
async def awarded_stat(strength_stat, award_service, user_id):
    """Strength with three grants: task 100, journal 40, task -20."""
    await award_service.award_xp(user_id, strength_stat.id, 100, "task", source_id="task-1")
    await award_service.award_xp(user_id, strength_stat.id, 40, "journal", source_id="entry-9", reason="Reflection")
    await award_service.award_xp(user_id, strength_stat.id, -20, "task", source_id="task-1", reason="Correction")
    return strength_stat


class TestHistory:
    async def test_newest_first(self, awarded_stat, ledger, user_id):
        history = await ledger.get_history(awarded_stat.id, user_id)

        assert [g.amount for g in history] == [-20, 40, 100]
        assert history[1].source_type is XpSourceType.JOURNAL
        assert history[1].reason == "Reflection"

    async def test_paging(self, awarded_stat, ledger, user_id):
        first = await ledger.get_history(awarded_stat.id, user_id, limit=2)
        rest = await ledger.get_history(awarded_stat.id, user_id, limit=2, offset=2)

        assert [g.amount for g in first] == [-20, 40]
        assert [g.amount for g in rest] == [100]

    async def test_paging_with_identical_timestamps(self, strength_stat, ledger, user_id):
        """Grants written in the same instant page by id, with no gaps or repeats."""
        # Arrange
        instant = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        async with DatabaseService.get_transaction() as session:
            tied = [
                XpGrant(
                    stat_id=strength_stat.id,
                    user_id=user_id,
                    amount=10,
                    source_type=XpSourceType.TASK.value,
                    created_at=instant,
                )
                for _ in range(7)
            ]
            older = XpGrant(
                stat_id=strength_stat.id,
                user_id=user_id,
                amount=5,
                source_type=XpSourceType.ADHOC.value,
                created_at=instant - timedelta(seconds=1),
            )
            session.add_all([*tied, older])

        # Act
        pages = [
            await ledger.get_history(strength_stat.id, user_id, limit=2, offset=offset)
            for offset in range(0, 8, 2)
        ]

        # Assert
        assert [len(page) for page in pages] == [2, 2, 2, 2]
        walked = [g.id for page in pages for g in page]
        assert walked[:7] == sorted((g.id for g in tied), reverse=True)
        assert walked[7] == older.id
        assert len(set(walked)) == 8

    async def test_empty_history(self, strength_stat, ledger, user_id):
        assert await ledger.get_history(strength_stat.id, user_id) == []

    async def test_not_owned(self, awarded_stat, ledger, other_user_id):
        with pytest.raises(NotFoundError):
            await ledger.get_history(awarded_stat.id, other_user_id)

    @pytest.mark.parametrize("limit, offset", [(0, 0), (501, 0), (10, -1)])
    async def test_invalid_paging(self, awarded_stat, ledger, user_id, limit, offset):
        with pytest.raises(ValidationError):
            await ledger.get_history(awarded_stat.id, user_id, limit=limit, offset=offset)


class TestAggregates:
    async def test_sum_matches_cumulative_xp(self, awarded_stat, ledger, stat_service, user_id):
        total = await ledger.sum_for_stat(awarded_stat.id)
        stat = await stat_service.get_stat(awarded_stat.id, user_id)

        assert total == 120
        assert stat.cumulative_xp == total

    async def test_sum_without_grants_is_zero(self, strength_stat, ledger):
        assert await ledger.sum_for_stat(strength_stat.id) == 0

    async def test_breakdown_by_source(self, awarded_stat, ledger, user_id):
        breakdown = await ledger.get_breakdown_by_source(awarded_stat.id, user_id)

        assert breakdown[XpSourceType.TASK] == 80
        assert breakdown[XpSourceType.JOURNAL] == 40
        assert breakdown[XpSourceType.QUEST] == 0
        assert set(breakdown) == set(XpSourceType)

    async def test_breakdown_not_owned(self, awarded_stat, ledger, other_user_id):
        with pytest.raises(NotFoundError):
            await ledger.get_breakdown_by_source(awarded_stat.id, other_user_id)

    async def test_grants_for_source(self, awarded_stat, ledger, user_id):
        grants = await ledger.get_grants_for_source(user_id, "task", "task-1")

        assert [g.amount for g in grants] == [100, -20]

    async def test_grants_for_source_scoped_to_user(self, awarded_stat, ledger, other_user_id):
        assert await ledger.get_grants_for_source(other_user_id, "task", "task-1") == []

    async def test_recent_grants_across_stats(
        self, awarded_stat, ledger, stat_service, award_service, user_id
    ):
        wisdom = await stat_service.create_stat(user_id, "Wisdom")
        await award_service.award_xp(user_id, wisdom.id, 15, "adhoc")

        recent = await ledger.get_recent_grants(user_id, limit=2)

        assert [g.amount for g in recent] == [15, -20]
        assert recent[0].stat_id == wisdom.id


class TestRecordGrant:
    async def test_rejects_negative_resulting_total(self, strength_stat, ledger, user_id):
        with pytest.raises(ValidationError):
            async with DatabaseService.get_transaction() as session:
                await ledger.record_grant(
                    session,
                    stat_id=strength_stat.id,
                    user_id=user_id,
                    amount=-10,
                    source_type=XpSourceType.ADHOC,
                    resulting_total=-10,
                )

        assert await ledger.sum_for_stat(strength_stat.id) == 0

    async def test_rejects_zero_amount(self, strength_stat, ledger, user_id):
        with pytest.raises(ValidationError):
            async with DatabaseService.get_transaction() as session:
                await ledger.record_grant(
                    session,
                    stat_id=strength_stat.id,
                    user_id=user_id,
                    amount=0,
                    source_type="task",
                    resulting_total=0,
                )

    async def test_rejects_unknown_source_type(self, strength_stat, ledger, user_id):
        with pytest.raises(ValidationError):
            async with DatabaseService.get_transaction() as session:
                await ledger.record_grant(
                    session,
                    stat_id=strength_stat.id,
                    user_id=user_id,
                    amount=5,
                    source_type="gift",
                    resulting_total=5,
                )

    async def test_recorded_in_callers_transaction(self, strength_stat, ledger, user_id):
        """Rolling back the caller's transaction discards the grant."""

        class Abort(Exception):
            pass

        with pytest.raises(Abort):
            async with DatabaseService.get_transaction() as session:
                grant = await ledger.record_grant(
                    session,
                    stat_id=strength_stat.id,
                    user_id=user_id,
                    amount=25,
                    source_type="quest",
                    source_id=uuid.uuid4(),
                    resulting_total=25,
                )
                assert grant.id is not None
                raise Abort()

        assert await ledger.sum_for_stat(strength_stat.id) == 0
