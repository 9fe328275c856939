# workscore/services/recalculation_queue.py
"""Deduplicated backlog of (user, week) score recalculations.

Lifecycle of a request: queued -> processing -> done on success, or
processing -> queued with `last_error` set on failure. The next drain is the
only retry; `attempts` is kept for operators.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from workscore.config import settings
from workscore.exceptions import ScoringConfigError
from workscore.models.queue import RecalculationRequest
from workscore.repositories import queue as queue_repo
from workscore.schemas.scoring import BatchResult
from workscore.services.reports import generate_weekly_report, get_scoring_config
from workscore.services.scoring_engine import validate_weights
from workscore.utils.concurrency import gather_bounded
from workscore.utils.dates import utcnow, week_bounds

logger = logging.getLogger(__name__)


async def enqueue(
    db: AsyncSession, user_id: int, week: Union[date, datetime], now: Optional[datetime] = None
) -> RecalculationRequest:
    """Mark the week containing `week` as needing a recompute for `user_id`.

    Re-enqueueing a request that is still queued is a no-op.
    """
    week_start, _ = week_bounds(week)
    now = now or utcnow()
    try:
        request = await queue_repo.upsert_request(db, user_id, week_start, now)
        await db.commit()
    except IntegrityError:
        # Another writer inserted the same (user, week) first
        await db.rollback()
        request = await queue_repo.get_request(db, user_id, week_start)
    logger.debug("Recalculation queued for user %s week %s", user_id, week_start)
    return request


async def pending_count(db: AsyncSession) -> int:
    return await queue_repo.pending_count(db)


async def _process_one(
    session_factory: async_sessionmaker, request_id: int, user_id: int,
    week_start: date, claimed_at: datetime, config,
) -> Optional[str]:
    """Recompute one request in its own session; returns an error message on failure."""
    async with session_factory() as db:
        try:
            await generate_weekly_report(db, user_id, week_start, config=config)
            finalized = await queue_repo.mark_done(db, request_id, claimed_at)
            await db.commit()
            if not finalized:
                logger.info("Request %s was re-enqueued while processing; left queued", request_id)
            return None
        except Exception as e:
            await db.rollback()
            message = f"user {user_id} week {week_start}: {e}"
            await queue_repo.return_to_queue(db, request_id, claimed_at, str(e))
            await db.commit()
            logger.warning("Recalculation failed, returned to queue: %s", message)
            return message


async def drain(
    session_factory: async_sessionmaker,
    max_items: Optional[int] = None,
    concurrency: Optional[int] = None,
    now: Optional[datetime] = None,
) -> BatchResult:
    """Process at most `max_items` queued requests.

    Each request is finalized individually, so a crash mid-run leaves finished
    requests done and the rest in processing until the stale-claim sweep of a
    later drain puts them back in the queue.
    """
    max_items = settings.RECALC_BATCH_SIZE if max_items is None else max_items
    limit = concurrency or settings.FANOUT_CONCURRENCY
    now = now or utcnow()

    async with session_factory() as db:
        released = await queue_repo.release_stale_claims(
            db, now - timedelta(minutes=settings.QUEUE_STALE_AFTER_MINUTES)
        )
        claimed = await queue_repo.claim_batch(db, max_items, now)
        await db.commit()
        if released:
            logger.info("Released %d stale recalculation claim(s)", released)

        try:
            config = await get_scoring_config(db)
            validate_weights(config)
        except ScoringConfigError as e:
            await queue_repo.release_claims(db, [r.id for r in claimed])
            await db.commit()
            logger.error("Recalculation drain aborted, invalid scoring config: %s", e)
            return BatchResult(success=False, processed_count=0, errors=[str(e)])

    work = [(r.id, r.user_id, r.week_start, r.claimed_at) for r in claimed]

    async def _run(entry):
        request_id, user_id, week_start, claimed_at = entry
        return await _process_one(session_factory, request_id, user_id, week_start, claimed_at, config)

    outcomes = await gather_bounded(work, _run, limit)
    errors = [message for message in outcomes if message]
    processed = len(outcomes) - len(errors)

    logger.info("Recalculation drain: %d processed, %d failed", processed, len(errors))
    return BatchResult(success=True, processed_count=processed, errors=errors)
