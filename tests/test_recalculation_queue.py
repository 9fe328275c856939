from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import select

from workscore.models.queue import RecalculationRequest, DONE, PROCESSING, QUEUED
from workscore.models.scoring import ScoringConfig, WeeklyReport
from workscore.repositories import queue as queue_repo
from workscore.services import recalculation_queue

MONDAY = date(2026, 10, 5)
NOW = datetime(2026, 10, 12, 2, 0)


async def _requests(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(RecalculationRequest).order_by(RecalculationRequest.id))
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_enqueue_same_week_twice_keeps_one_request(db, add_user):
    user = await add_user()
    await recalculation_queue.enqueue(db, user.id, MONDAY, now=NOW)
    await recalculation_queue.enqueue(db, user.id, MONDAY + timedelta(days=3), now=NOW)

    assert await recalculation_queue.pending_count(db) == 1
    request = await queue_repo.get_request(db, user.id, MONDAY)
    assert request.week_start == MONDAY
    assert request.status == QUEUED


@pytest.mark.asyncio
async def test_drain_respects_max_items(db, session_factory, add_user):
    users = [await add_user() for _ in range(5)]
    for user in users:
        await recalculation_queue.enqueue(db, user.id, MONDAY, now=NOW)

    result = await recalculation_queue.drain(session_factory, max_items=2, concurrency=1, now=NOW)

    assert result.success is True
    assert result.processed_count == 2
    assert result.errors == []
    statuses = [r.status for r in await _requests(session_factory)]
    assert statuses.count(DONE) == 2
    assert statuses.count(QUEUED) == 3


@pytest.mark.asyncio
async def test_drain_writes_weekly_reports(db, session_factory, add_user, add_completed):
    user = await add_user()
    await add_completed([user.id])
    await recalculation_queue.enqueue(db, user.id, MONDAY, now=NOW)

    result = await recalculation_queue.drain(session_factory, concurrency=1, now=NOW)

    assert result.processed_count == 1
    async with session_factory() as session:
        reports = (await session.execute(select(WeeklyReport))).scalars().all()
    assert len(reports) == 1
    assert reports[0].week_start == MONDAY
    assert reports[0].tasks_completed == 1


@pytest.mark.asyncio
async def test_failed_item_returns_to_queue(db, session_factory, add_user, monkeypatch):
    ok_user = await add_user()
    bad_user = await add_user()
    for user in (ok_user, bad_user):
        await recalculation_queue.enqueue(db, user.id, MONDAY, now=NOW)

    real_generate = recalculation_queue.generate_weekly_report

    async def flaky_generate(session, user_id, week_start, **kwargs):
        if user_id == bad_user.id:
            raise RuntimeError("work item store timed out")
        return await real_generate(session, user_id, week_start, **kwargs)

    monkeypatch.setattr(recalculation_queue, "generate_weekly_report", flaky_generate)

    result = await recalculation_queue.drain(session_factory, concurrency=1, now=NOW)

    assert result.success is True
    assert result.processed_count == 1
    assert len(result.errors) == 1
    assert result.errors[0].startswith(f"user {bad_user.id} week {MONDAY}")

    by_user = {r.user_id: r for r in await _requests(session_factory)}
    assert by_user[ok_user.id].status == DONE
    assert by_user[bad_user.id].status == QUEUED
    assert by_user[bad_user.id].attempts == 1
    assert "timed out" in by_user[bad_user.id].last_error


@pytest.mark.asyncio
async def test_invalid_config_aborts_and_releases_claims(db, session_factory, add_user):
    user = await add_user()
    db.add(ScoringConfig(
        id=1, completion_weight=40, timeliness_weight=30, quality_weight=20,
        kra_alignment_weight=0, updated_by="test", updated_at=NOW,
    ))
    await db.commit()
    await recalculation_queue.enqueue(db, user.id, MONDAY, now=NOW)

    result = await recalculation_queue.drain(session_factory, concurrency=1, now=NOW)

    assert result.success is False
    assert result.processed_count == 0
    assert "sum to 100" in result.errors[0]
    requests = await _requests(session_factory)
    assert [r.status for r in requests] == [QUEUED]


@pytest.mark.asyncio
async def test_stale_claims_are_recovered(db, session_factory, add_user):
    user = await add_user()
    db.add(RecalculationRequest(
        user_id=user.id, week_start=MONDAY, status=PROCESSING,
        enqueued_at=NOW - timedelta(hours=3), claimed_at=NOW - timedelta(hours=2),
    ))
    await db.commit()

    result = await recalculation_queue.drain(session_factory, concurrency=1, now=NOW)

    assert result.processed_count == 1
    assert [r.status for r in await _requests(session_factory)] == [DONE]


@pytest.mark.asyncio
async def test_reenqueue_during_processing_keeps_request_queued(db, session_factory, add_user):
    user = await add_user()
    await recalculation_queue.enqueue(db, user.id, MONDAY, now=NOW)

    claimed = await queue_repo.claim_batch(db, 10, NOW)
    await db.commit()
    assert len(claimed) == 1
    claimed_at = claimed[0].claimed_at

    # New data arrives while the recompute is still running
    await recalculation_queue.enqueue(db, user.id, MONDAY, now=NOW + timedelta(minutes=1))

    assert await queue_repo.mark_done(db, claimed[0].id, claimed_at) is False
    await db.commit()
    assert [r.status for r in await _requests(session_factory)] == [QUEUED]
