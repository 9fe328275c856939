from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import select

from workscore.models.queue import RecalculationRequest
from workscore.models.work_item import COMPLETED
from workscore.services import jobs

NOW = datetime(2026, 10, 19, 6, 0)  # a Monday


async def _queued_weeks(db):
    result = await db.execute(select(RecalculationRequest).order_by(RecalculationRequest.user_id))
    return [(r.user_id, r.week_start) for r in result.scalars().all()]


class TestAutoOverdue:
    @pytest.mark.asyncio
    async def test_stamps_open_past_due_items_and_queues_due_week(self, session_factory, db, add_user, add_item):
        user = await add_user()
        late = await add_item([user.id], due_date=NOW - timedelta(days=2))
        await add_item([user.id], due_date=NOW + timedelta(days=2))
        await add_item([user.id], status=COMPLETED, due_date=NOW - timedelta(days=2),
                       completed_at=NOW - timedelta(days=3))

        result = await jobs.run_auto_overdue(session_factory, now=NOW)

        assert result.success is True
        assert result.processed_count == 1
        await db.refresh(late)
        assert late.marked_overdue_at == NOW
        assert await _queued_weeks(db) == [(user.id, date(2026, 10, 12))]

    @pytest.mark.asyncio
    async def test_second_run_does_not_restamp(self, session_factory, add_user, add_item):
        user = await add_user()
        await add_item([user.id], due_date=NOW - timedelta(days=2))

        await jobs.run_auto_overdue(session_factory, now=NOW)
        again = await jobs.run_auto_overdue(session_factory, now=NOW + timedelta(hours=1))

        assert again.success is True
        assert again.processed_count == 0

    @pytest.mark.asyncio
    async def test_pushed_due_date_that_lapses_again_is_restamped(self, session_factory, db, add_user, add_item):
        pushed_owner = await add_user()
        stale_owner = await add_user()
        # stamped on the 14th, then the due date moved to the 18th and lapsed again
        pushed = await add_item(
            [pushed_owner.id], due_date=NOW - timedelta(days=1), revision_count=1,
            assigned_at=NOW - timedelta(days=10), marked_overdue_at=NOW - timedelta(days=5),
        )
        # stamped after its current due date; nothing changed since
        stale = await add_item(
            [stale_owner.id], due_date=NOW - timedelta(days=3),
            assigned_at=NOW - timedelta(days=10), marked_overdue_at=NOW - timedelta(days=2),
        )

        result = await jobs.run_auto_overdue(session_factory, now=NOW)

        assert result.success is True
        assert result.processed_count == 1
        await db.refresh(pushed)
        await db.refresh(stale)
        assert pushed.marked_overdue_at == NOW
        assert stale.marked_overdue_at == NOW - timedelta(days=2)
        assert await _queued_weeks(db) == [(pushed_owner.id, date(2026, 10, 12))]


class TestRecordStoreUnavailable:
    @pytest.mark.asyncio
    async def test_score_recalculation_reports_failure(self, unreachable_factory):
        result = await jobs.run_score_recalculation(unreachable_factory, now=NOW)

        assert result.success is False
        assert result.processed_count == 0
        assert len(result.errors) == 1
        assert result.errors[0].startswith("record store error")

    @pytest.mark.asyncio
    async def test_auto_overdue_reports_failure(self, unreachable_factory):
        result = await jobs.run_auto_overdue(unreachable_factory, now=NOW)

        assert result.success is False
        assert result.errors[0].startswith("record store error")

    @pytest.mark.asyncio
    async def test_weekly_snapshots_reports_failure(self, unreachable_factory):
        result = await jobs.run_weekly_snapshots(unreachable_factory, today=NOW.date(), now=NOW)

        assert result.success is False
        assert result.errors[0].startswith("record store error")

    @pytest.mark.asyncio
    async def test_intelligence_marks_every_analysis_failed(self, unreachable_factory):
        result = await jobs.run_intelligence(unreachable_factory, now=NOW)

        assert result.success is False
        assert all(outcome.errors for outcome in result.results.values())
