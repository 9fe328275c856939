from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from workscore.models.scoring import ScoringConfig, WeeklyReport, SCORING_CONFIG_ID
from workscore.schemas.scoring import WeeklyReportData


async def get_config_row(db: AsyncSession) -> Optional[ScoringConfig]:
    result = await db.execute(
        select(ScoringConfig).where(ScoringConfig.id == SCORING_CONFIG_ID)
    )
    return result.scalar_one_or_none()


async def save_config(
    db: AsyncSession,
    completion_weight: int,
    timeliness_weight: int,
    quality_weight: int,
    kra_alignment_weight: int,
    updated_by: str,
    updated_at: datetime,
) -> ScoringConfig:
    row = await get_config_row(db)
    if row is None:
        row = ScoringConfig(id=SCORING_CONFIG_ID)
    row.completion_weight = completion_weight
    row.timeliness_weight = timeliness_weight
    row.quality_weight = quality_weight
    row.kra_alignment_weight = kra_alignment_weight
    row.updated_by = updated_by
    row.updated_at = updated_at
    db.add(row)
    return row


async def get_weekly_report(
    db: AsyncSession, user_id: int, week_start: date
) -> Optional[WeeklyReport]:
    result = await db.execute(
        select(WeeklyReport)
        .where(WeeklyReport.user_id == user_id)
        .where(WeeklyReport.week_start == week_start)
    )
    return result.scalar_one_or_none()


async def upsert_weekly_report(db: AsyncSession, data: WeeklyReportData) -> WeeklyReport:
    """Overwrite the (user, week) report in place; never append a second row."""
    report = await get_weekly_report(db, data.user_id, data.week_start)
    if report is None:
        report = WeeklyReport(user_id=data.user_id, week_start=data.week_start)

    report.week_end = data.week_end
    report.tasks_assigned = data.tasks_assigned
    report.tasks_completed = data.tasks_completed
    report.on_time_completion = data.on_time_completion
    report.delay_count = data.delay_count
    report.completion_score = data.breakdown.completion_score
    report.timeliness_score = data.breakdown.timeliness_score
    report.quality_score = data.breakdown.quality_score
    report.kra_alignment_score = data.breakdown.kra_alignment_score
    report.total_score = data.breakdown.total_score
    report.generated_at = data.generated_at
    db.add(report)
    await db.flush()
    return report


async def list_user_reports(
    db: AsyncSession, user_id: int, limit: int = 12
) -> List[WeeklyReport]:
    result = await db.execute(
        select(WeeklyReport)
        .where(WeeklyReport.user_id == user_id)
        .order_by(WeeklyReport.week_start.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_reports_for_week(db: AsyncSession, week_start: date) -> List[WeeklyReport]:
    result = await db.execute(
        select(WeeklyReport)
        .where(WeeklyReport.week_start == week_start)
        .order_by(WeeklyReport.user_id)
    )
    return list(result.scalars().all())
