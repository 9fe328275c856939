from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from workscore.models.queue import RecalculationRequest, QUEUED, PROCESSING, DONE


async def get_request(
    db: AsyncSession, user_id: int, week_start: date
) -> Optional[RecalculationRequest]:
    result = await db.execute(
        select(RecalculationRequest)
        .where(RecalculationRequest.user_id == user_id)
        .where(RecalculationRequest.week_start == week_start)
    )
    return result.scalar_one_or_none()


async def upsert_request(
    db: AsyncSession, user_id: int, week_start: date, now: datetime
) -> RecalculationRequest:
    """Insert a queued request, or put an existing non-queued one back in the backlog.

    A request that is already queued is left untouched.
    """
    request = await get_request(db, user_id, week_start)
    if request is None:
        request = RecalculationRequest(
            user_id=user_id, week_start=week_start, status=QUEUED, enqueued_at=now, attempts=0
        )
        db.add(request)
    elif request.status != QUEUED:
        request.status = QUEUED
        request.enqueued_at = now
        request.claimed_at = None
        db.add(request)
    await db.flush()
    return request


async def claim_batch(
    db: AsyncSession, max_items: int, now: datetime
) -> List[RecalculationRequest]:
    """Move up to `max_items` of the oldest queued requests to processing."""
    if max_items <= 0:
        return []
    result = await db.execute(
        select(RecalculationRequest.id)
        .where(RecalculationRequest.status == QUEUED)
        .order_by(RecalculationRequest.enqueued_at, RecalculationRequest.id)
        .limit(max_items)
    )
    candidate_ids = [row[0] for row in result.fetchall()]

    claimed_ids = []
    for request_id in candidate_ids:
        # Compare-and-set so a concurrent drain cannot claim the same row
        outcome = await db.execute(
            update(RecalculationRequest)
            .where(RecalculationRequest.id == request_id)
            .where(RecalculationRequest.status == QUEUED)
            .values(status=PROCESSING, claimed_at=now)
        )
        if outcome.rowcount:
            claimed_ids.append(request_id)

    if not claimed_ids:
        return []
    claimed = await db.execute(
        select(RecalculationRequest)
        .where(RecalculationRequest.id.in_(claimed_ids))
        .order_by(RecalculationRequest.enqueued_at, RecalculationRequest.id)
        .execution_options(populate_existing=True)
    )
    return list(claimed.scalars().all())


async def mark_done(db: AsyncSession, request_id: int, claimed_at: datetime) -> bool:
    """Finalize a claimed request; False if it was re-enqueued meanwhile."""
    outcome = await db.execute(
        update(RecalculationRequest)
        .where(RecalculationRequest.id == request_id)
        .where(RecalculationRequest.status == PROCESSING)
        .where(RecalculationRequest.claimed_at == claimed_at)
        .values(status=DONE, last_error=None)
    )
    return bool(outcome.rowcount)


async def return_to_queue(
    db: AsyncSession, request_id: int, claimed_at: datetime, error: str
) -> None:
    await db.execute(
        update(RecalculationRequest)
        .where(RecalculationRequest.id == request_id)
        .where(RecalculationRequest.status == PROCESSING)
        .where(RecalculationRequest.claimed_at == claimed_at)
        .values(
            status=QUEUED,
            claimed_at=None,
            attempts=RecalculationRequest.attempts + 1,
            last_error=error,
        )
    )


async def release_claims(db: AsyncSession, request_ids: List[int]) -> None:
    if not request_ids:
        return
    await db.execute(
        update(RecalculationRequest)
        .where(RecalculationRequest.id.in_(request_ids))
        .where(RecalculationRequest.status == PROCESSING)
        .values(status=QUEUED, claimed_at=None)
    )


async def release_stale_claims(db: AsyncSession, claimed_before: datetime) -> int:
    """Return requests orphaned in processing (crashed drain) to the backlog."""
    outcome = await db.execute(
        update(RecalculationRequest)
        .where(RecalculationRequest.status == PROCESSING)
        .where(RecalculationRequest.claimed_at < claimed_before)
        .values(status=QUEUED, claimed_at=None)
    )
    return outcome.rowcount or 0


async def pending_count(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count(RecalculationRequest.id))
        .where(RecalculationRequest.status == QUEUED)
    )
    return result.scalar_one()
