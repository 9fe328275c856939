from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from workscore.models.intelligence import (
    ChronicOverduePattern,
    DepartmentTrend,
    TaskRiskAssessment,
    PerformanceSnapshot,
)
from workscore.repositories.work_items import assigned_item_ids


async def add_records(db: AsyncSession, records: Iterable) -> None:
    db.add_all(list(records))
    await db.flush()


async def list_patterns(
    db: AsyncSession, since: Optional[datetime] = None, user_id: Optional[int] = None, limit: int = 100
) -> List[ChronicOverduePattern]:
    query = select(ChronicOverduePattern)
    if since is not None:
        query = query.where(ChronicOverduePattern.detected_at >= since)
    if user_id is not None:
        query = query.where(ChronicOverduePattern.user_id == user_id)
    result = await db.execute(
        query.order_by(ChronicOverduePattern.detected_at.desc(), ChronicOverduePattern.id.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def list_risks(
    db: AsyncSession, since: Optional[datetime] = None, min_score: int = 0, limit: int = 100
) -> List[TaskRiskAssessment]:
    query = select(TaskRiskAssessment).where(TaskRiskAssessment.risk_score >= min_score)
    if since is not None:
        query = query.where(TaskRiskAssessment.assessed_at >= since)
    result = await db.execute(
        query.order_by(TaskRiskAssessment.assessed_at.desc(), TaskRiskAssessment.risk_score.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def list_user_risks(
    db: AsyncSession, user_id: int, since: datetime, limit: int = 5
) -> List[TaskRiskAssessment]:
    """Newest assessments of items currently assigned to `user_id`."""
    result = await db.execute(
        select(TaskRiskAssessment)
        .where(TaskRiskAssessment.work_item_id.in_(assigned_item_ids(user_id)))
        .where(TaskRiskAssessment.assessed_at >= since)
        .order_by(TaskRiskAssessment.assessed_at.desc(), TaskRiskAssessment.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def count_risks(db: AsyncSession, since: datetime, min_score: int) -> int:
    result = await db.execute(
        select(func.count(TaskRiskAssessment.id))
        .where(TaskRiskAssessment.assessed_at >= since)
        .where(TaskRiskAssessment.risk_score >= min_score)
    )
    return result.scalar_one()


async def count_patterns(db: AsyncSession, since: datetime) -> int:
    result = await db.execute(
        select(func.count(ChronicOverduePattern.id))
        .where(ChronicOverduePattern.detected_at >= since)
    )
    return result.scalar_one()


async def count_trends(db: AsyncSession, since: datetime, direction: str) -> int:
    result = await db.execute(
        select(func.count(DepartmentTrend.id))
        .where(DepartmentTrend.detected_at >= since)
        .where(DepartmentTrend.direction == direction)
    )
    return result.scalar_one()




async def list_snapshots_since(db: AsyncSession, since: datetime) -> List[PerformanceSnapshot]:
    result = await db.execute(
        select(PerformanceSnapshot).where(PerformanceSnapshot.snapshot_at >= since)
    )
    return list(result.scalars().all())


async def snapshot_exists(db: AsyncSession, user_id: int, iso_year: int, iso_week: int) -> bool:
    result = await db.execute(
        select(PerformanceSnapshot.id)
        .where(PerformanceSnapshot.user_id == user_id)
        .where(PerformanceSnapshot.iso_year == iso_year)
        .where(PerformanceSnapshot.iso_week == iso_week)
    )
    return result.first() is not None


async def latest_snapshot(db: AsyncSession, user_id: int) -> Optional[PerformanceSnapshot]:
    result = await db.execute(
        select(PerformanceSnapshot)
        .where(PerformanceSnapshot.user_id == user_id)
        .order_by(PerformanceSnapshot.week_start.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def latest_timestamp(db: AsyncSession, column) -> Optional[datetime]:
    result = await db.execute(select(func.max(column)))
    return result.scalar_one_or_none()
