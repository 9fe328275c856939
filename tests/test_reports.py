from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from workscore.exceptions import InvalidWeekError, ScoringConfigError
from workscore.models.scoring import WeeklyReport
from workscore.models.work_item import COMPLETED
from workscore.repositories import work_items as items_repo
from workscore.schemas.scoring import ScoringWeights
from workscore.services import reports

MONDAY = date(2026, 10, 5)
NOW = datetime(2026, 10, 12, 3, 0)


def _weights(completion, timeliness, quality, kra):
    return SimpleNamespace(
        completion_weight=completion,
        timeliness_weight=timeliness,
        quality_weight=quality,
        kra_alignment_weight=kra,
    )


class TestScoringConfig:
    @pytest.mark.asyncio
    async def test_default_config_when_nothing_saved(self, db):
        config = await reports.get_scoring_config(db)
        assert (config.completion_weight, config.timeliness_weight,
                config.quality_weight, config.kra_alignment_weight) == (40, 30, 20, 10)

    @pytest.mark.asyncio
    async def test_update_persists_weights_and_actor(self, db):
        weights = ScoringWeights(completion_weight=25, timeliness_weight=25, quality_weight=25, kra_alignment_weight=25)
        await reports.update_scoring_config(db, weights, actor_id="42", now=NOW)

        config = await reports.get_scoring_config(db)
        assert config.completion_weight == 25
        assert config.updated_by == "42"
        assert config.updated_at == NOW

    @pytest.mark.asyncio
    async def test_update_rejects_bad_sum(self, db):
        with pytest.raises(ScoringConfigError):
            await reports.update_scoring_config(db, _weights(40, 30, 20, 20), actor_id="42")

        config = await reports.get_scoring_config(db)
        assert config.kra_alignment_weight == 10


class TestWeeklyReport:
    @pytest.mark.asyncio
    async def test_regenerating_overwrites_single_row(self, db, add_user, add_item, add_completed):
        user = await add_user()
        await add_completed([user.id])
        pending = await add_item([user.id], due_date=datetime(2026, 10, 9, 17, 0))

        first = await reports.generate_weekly_report(db, user.id, MONDAY, now=NOW)
        assert first.tasks_completed == 1
        assert first.completion_score == 50

        pending.status = COMPLETED
        pending.completed_at = datetime(2026, 10, 9, 12, 0)
        await db.commit()

        second = await reports.generate_weekly_report(db, user.id, MONDAY, now=NOW)
        assert second.id == first.id
        assert second.tasks_completed == 2
        assert second.completion_score == 100
        count = (await db.execute(select(func.count(WeeklyReport.id)))).scalar_one()
        assert count == 1

    @pytest.mark.asyncio
    async def test_same_inputs_give_identical_report(self, db, add_user, add_completed):
        user = await add_user()
        await add_completed([user.id], days_late=1)

        first = await reports.generate_weekly_report(db, user.id, MONDAY, now=NOW)
        snapshot = (first.total_score, first.timeliness_score, first.delay_count)
        second = await reports.generate_weekly_report(db, user.id, MONDAY, now=NOW)
        assert (second.total_score, second.timeliness_score, second.delay_count) == snapshot

    @pytest.mark.asyncio
    async def test_empty_week_still_produces_report(self, db, add_user):
        user = await add_user()
        report = await reports.generate_weekly_report(db, user.id, MONDAY, now=NOW)
        assert report.tasks_assigned == 0
        assert report.total_score == 0

    @pytest.mark.asyncio
    async def test_week_must_start_on_monday(self, db, add_user):
        user = await add_user()
        with pytest.raises(InvalidWeekError):
            await reports.generate_weekly_report(db, user.id, MONDAY + timedelta(days=1))

    @pytest.mark.asyncio
    async def test_history_newest_first(self, db, add_user):
        user = await add_user()
        for weeks_back in range(3):
            await reports.generate_weekly_report(db, user.id, MONDAY - timedelta(weeks=weeks_back), now=NOW)

        history = await reports.get_user_weekly_reports(db, user.id, limit=2)
        assert [r.week_start for r in history] == [MONDAY, MONDAY - timedelta(weeks=1)]

    @pytest.mark.asyncio
    async def test_only_the_users_items_are_loaded(self, db, add_user, add_item):
        users = [await add_user() for _ in range(3)]
        owned = {}
        for user in users:
            owned[user.id] = [
                (await add_item([user.id], due_date=datetime(2026, 10, 6 + n, 17, 0))).id
                for n in range(4)
            ]
        shared = await add_item([users[0].id, users[1].id], due_date=datetime(2026, 10, 8, 17, 0))
        # outside the week for everyone
        await add_item([users[0].id], assigned_at=datetime(2026, 9, 1, 9, 0), due_date=datetime(2026, 9, 4, 17, 0))

        start, end = datetime(2026, 10, 5), datetime(2026, 10, 11, 23, 59, 59)
        first = await items_repo.list_user_items_in_window(db, users[0].id, start, end)
        third = await items_repo.list_user_items_in_window(db, users[2].id, start, end)

        assert [item.id for item in first] == owned[users[0].id] + [shared.id]
        assert [item.id for item in third] == owned[users[2].id]
        assert all(item.is_assigned_to(users[2].id) for item in third)

        report = await reports.generate_weekly_report(db, users[1].id, MONDAY, now=NOW)
        assert report.tasks_assigned == 5


class TestTeamAndAdminReports:
    @pytest.mark.asyncio
    async def test_team_report_aggregates_members(self, session_factory, add_team, add_user, add_completed):
        team = await add_team()
        members = [await add_user(team_id=team.id) for _ in range(2)]
        await add_user()  # not on the team
        await add_completed([members[0].id])
        await add_completed([members[1].id], days_late=2)

        team_report = await reports.generate_team_report(
            session_factory, team.id, MONDAY + timedelta(days=2), concurrency=1, now=NOW
        )

        assert team_report.week_start == MONDAY
        assert [r.user_id for r in team_report.member_reports] == [m.id for m in members]
        assert team_report.team_stats.total_tasks_completed == 2
        assert team_report.team_stats.on_time_percentage == 50

    @pytest.mark.asyncio
    async def test_missing_team_returns_none(self, session_factory):
        assert await reports.generate_team_report(session_factory, 999, MONDAY, concurrency=1) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("report_type,key", [
        ("overview", "score_distribution"),
        ("teams", "teams"),
        ("users", "users"),
        ("performance", "average_breakdown"),
    ])
    async def test_admin_report_types(self, session_factory, add_team, add_user, add_completed, report_type, key):
        team = await add_team()
        user = await add_user(team_id=team.id)
        await add_completed([user.id])

        report = await reports.generate_admin_report(session_factory, report_type, MONDAY, concurrency=1, now=NOW)

        assert report.report_type == report_type
        assert report.week_start == MONDAY
        assert key in report.data
        assert report.data["errors"] == []

    @pytest.mark.asyncio
    async def test_unknown_admin_report_type(self, session_factory):
        with pytest.raises(ValueError):
            await reports.generate_admin_report(session_factory, "payroll")
