# workscore/services/jobs.py
"""Entry points for the external scheduler.

Every trigger opens its own sessions from the factory it is given and turns a
record-store failure into an unsuccessful result instead of raising, so the
scheduler always gets a structured answer back.
"""
import logging
import time
from datetime import date, datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from workscore.repositories import work_items as items_repo
from workscore.schemas.intelligence import AnalysisOutcome, IntelligenceRunResult
from workscore.schemas.scoring import BatchResult
from workscore.services import intelligence, recalculation_queue
from workscore.utils.dates import utcnow

logger = logging.getLogger(__name__)


async def run_score_recalculation(
    session_factory: async_sessionmaker,
    max_items: Optional[int] = None,
    concurrency: Optional[int] = None,
    now: Optional[datetime] = None,
) -> BatchResult:
    logger.info("Score recalculation triggered")
    try:
        return await recalculation_queue.drain(
            session_factory, max_items=max_items, concurrency=concurrency, now=now
        )
    except SQLAlchemyError as e:
        logger.exception("Score recalculation aborted by a record store error")
        return BatchResult(success=False, errors=[f"record store error: {e}"])


async def run_auto_overdue(
    session_factory: async_sessionmaker, now: Optional[datetime] = None
) -> BatchResult:
    """Stamp open items that passed their due date and queue a rescore of
    every assignee's due week."""
    now = now or utcnow()
    logger.info("Auto-overdue triggered at %s", now)
    try:
        async with session_factory() as db:
            items = await items_repo.list_unmarked_overdue_items(db, now)
            affected = set()
            for item in items:
                item.marked_overdue_at = now
                affected.update((user_id, item.due_date.date()) for user_id in item.assignees or [])
            await db.commit()

            for user_id, due_day in sorted(affected):
                await recalculation_queue.enqueue(db, user_id, due_day, now=now)
    except SQLAlchemyError as e:
        logger.exception("Auto-overdue aborted by a record store error")
        return BatchResult(success=False, errors=[f"record store error: {e}"])

    logger.info("Auto-overdue marked %d item(s)", len(items))
    return BatchResult(success=True, processed_count=len(items))


async def run_intelligence(
    session_factory: async_sessionmaker, now: Optional[datetime] = None
) -> IntelligenceRunResult:
    """Run every analysis independently; one failing analysis does not stop the rest."""
    now = now or utcnow()
    started = time.monotonic()
    analyses = {
        "chronic_overdue": lambda db: intelligence.detect_chronic_overdue_patterns(db, now=now),
        "department_trends": lambda db: intelligence.analyze_department_trends(db, now=now),
        "task_risks": lambda db: intelligence.assess_task_risks(db, now=now),
        "weekly_snapshots": lambda db: intelligence.create_weekly_snapshots(db, now=now),
    }

    results = {}
    for name, analysis in analyses.items():
        try:
            async with session_factory() as db:
                records = await analysis(db)
            results[name] = AnalysisOutcome(count=len(records))
        except Exception as e:
            logger.exception("Intelligence analysis '%s' failed", name)
            results[name] = AnalysisOutcome(errors=[str(e)])

    duration_ms = int((time.monotonic() - started) * 1000)
    success = not any(outcome.errors for outcome in results.values())
    logger.info("Intelligence run finished in %d ms: %s", duration_ms,
                {name: outcome.count for name, outcome in results.items()})
    return IntelligenceRunResult(success=success, results=results, duration_ms=duration_ms)


async def run_weekly_snapshots(
    session_factory: async_sessionmaker, today: Optional[date] = None, now: Optional[datetime] = None
) -> BatchResult:
    try:
        async with session_factory() as db:
            snapshots = await intelligence.create_weekly_snapshots(db, today=today, now=now)
    except SQLAlchemyError as e:
        logger.exception("Weekly snapshots aborted by a record store error")
        return BatchResult(success=False, errors=[f"record store error: {e}"])
    return BatchResult(success=True, processed_count=len(snapshots))
