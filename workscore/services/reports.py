# workscore/services/reports.py
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from workscore.config import settings
from workscore.models.scoring import ScoringConfig, WeeklyReport
from workscore.repositories import scoring as scoring_repo
from workscore.repositories import users as users_repo
from workscore.repositories import work_items as items_repo
from workscore.schemas.report import AdminReport, TeamStats, TeamWeeklyReport, REPORT_TYPES
from workscore.schemas.scoring import WeeklyReportResponse
from workscore.services.scoring_engine import compute_weekly_score, round_half_up, validate_weights
from workscore.utils.concurrency import gather_bounded
from workscore.utils.dates import require_calendar_week, utcnow, week_bounds, window_datetimes

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = {
    "completion_weight": 40,
    "timeliness_weight": 30,
    "quality_weight": 20,
    "kra_alignment_weight": 10,
}


def default_scoring_config() -> ScoringConfig:
    return ScoringConfig(updated_by="system", updated_at=datetime(1970, 1, 1), **DEFAULT_WEIGHTS)


async def get_scoring_config(db: AsyncSession) -> ScoringConfig:
    """Stored config, or the 40/30/20/10 default when none has been saved yet."""
    row = await scoring_repo.get_config_row(db)
    return row if row is not None else default_scoring_config()


async def update_scoring_config(
    db: AsyncSession, weights, actor_id: str, now: Optional[datetime] = None
) -> ScoringConfig:
    validate_weights(weights)
    row = await scoring_repo.save_config(
        db,
        completion_weight=weights.completion_weight,
        timeliness_weight=weights.timeliness_weight,
        quality_weight=weights.quality_weight,
        kra_alignment_weight=weights.kra_alignment_weight,
        updated_by=str(actor_id),
        updated_at=now or utcnow(),
    )
    await db.commit()
    await db.refresh(row)
    logger.info("Scoring config updated by %s: %s", actor_id, {
        "completion": row.completion_weight,
        "timeliness": row.timeliness_weight,
        "quality": row.quality_weight,
        "kra_alignment": row.kra_alignment_weight,
    })
    return row


async def generate_weekly_report(
    db: AsyncSession,
    user_id: int,
    week_start: date,
    week_end: Optional[date] = None,
    config=None,
    now: Optional[datetime] = None,
) -> WeeklyReport:
    """Score one user for one Monday-Sunday week and persist the result.

    Re-running for the same (user, week) overwrites the stored report.
    """
    if week_end is None:
        week_end = week_start + timedelta(days=6)
    require_calendar_week(week_start, week_end)

    if config is None:
        config = await get_scoring_config(db)
    validate_weights(config)

    start, end = window_datetimes(week_start, week_end)
    items = await items_repo.list_user_items_in_window(db, user_id, start, end)
    goal_ids = {item.parent_goal_id for item in items if item.parent_goal_id is not None}
    active_goal_ids = await items_repo.list_active_goal_ids(db, goal_ids)

    data = compute_weekly_score(
        user_id, week_start, week_end, items, config,
        active_goal_ids=active_goal_ids, generated_at=now,
    )
    report = await scoring_repo.upsert_weekly_report(db, data)
    await db.commit()
    await db.refresh(report)
    return report


async def get_user_weekly_reports(db: AsyncSession, user_id: int, limit: int = 12) -> List[WeeklyReport]:
    return await scoring_repo.list_user_reports(db, user_id, limit)


async def generate_reports_for_users(
    session_factory: async_sessionmaker,
    user_ids: Sequence[int],
    week_start: date,
    config,
    concurrency: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Tuple[Dict[int, WeeklyReport], List[str]]:
    """Fan out generate_weekly_report, one session per user.

    A failing user is reported in the error list; siblings still run.
    """
    limit = concurrency or settings.FANOUT_CONCURRENCY

    async def _one(user_id: int):
        try:
            async with session_factory() as db:
                report = await generate_weekly_report(db, user_id, week_start, config=config, now=now)
                return user_id, report, None
        except Exception as e:
            logger.warning("Report generation failed for user %s week %s: %s", user_id, week_start, e)
            return user_id, None, f"user {user_id} week {week_start}: {e}"

    results = await gather_bounded(list(user_ids), _one, limit)
    reports = {user_id: report for user_id, report, _ in results if report is not None}
    errors = [error for _, _, error in results if error]
    return reports, errors


def _team_stats(reports: Sequence[WeeklyReport]) -> TeamStats:
    total_assigned = sum(r.tasks_assigned for r in reports)
    total_completed = sum(r.tasks_completed for r in reports)
    total_on_time = sum(r.on_time_completion for r in reports)
    return TeamStats(
        total_tasks_assigned=total_assigned,
        total_tasks_completed=total_completed,
        average_score=round_half_up(sum(r.total_score for r in reports) / len(reports)) if reports else 0,
        on_time_percentage=round_half_up(100.0 * total_on_time / total_completed) if total_completed else 0,
    )


async def generate_team_report(
    session_factory: async_sessionmaker,
    team_id: int,
    week_start: date,
    config=None,
    concurrency: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Optional[TeamWeeklyReport]:
    week_start, week_end = week_bounds(week_start)
    async with session_factory() as db:
        team = await users_repo.get_team(db, team_id)
        if team is None:
            return None
        members = await users_repo.list_team_members(db, team_id)
        if config is None:
            config = await get_scoring_config(db)
    validate_weights(config)

    reports, errors = await generate_reports_for_users(
        session_factory, [m.id for m in members], week_start, config, concurrency, now
    )
    if errors:
        logger.warning("Team %s report skipped %d member(s): %s", team_id, len(errors), errors)

    member_reports = [reports[m.id] for m in members if m.id in reports]
    return TeamWeeklyReport(
        team_id=team.id,
        team_name=team.name,
        week_start=week_start,
        week_end=week_end,
        member_reports=[WeeklyReportResponse.from_record(r) for r in member_reports],
        team_stats=_team_stats(member_reports),
        generated_at=now or utcnow(),
    )


def _score_band(score: int) -> str:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "fair"
    return "poor"


def _completion_rate(assigned: int, completed: int) -> int:
    return round_half_up(100.0 * completed / assigned) if assigned else 0


def _overview(users, reports: Dict[int, WeeklyReport]) -> dict:
    rows = list(reports.values())
    stats = _team_stats(rows)
    distribution = {"excellent": 0, "good": 0, "fair": 0, "poor": 0}
    for report in rows:
        distribution[_score_band(report.total_score)] += 1
    return {
        "total_users": len(users),
        "reports_generated": len(rows),
        "average_score": stats.average_score,
        "total_tasks_assigned": stats.total_tasks_assigned,
        "total_tasks_completed": stats.total_tasks_completed,
        "completion_rate": _completion_rate(stats.total_tasks_assigned, stats.total_tasks_completed),
        "on_time_percentage": stats.on_time_percentage,
        "delayed_tasks": sum(r.delay_count for r in rows),
        "score_distribution": distribution,
    }


def _teams(teams, users, reports: Dict[int, WeeklyReport]) -> dict:
    rollups = []
    for team in teams:
        member_reports = [reports[u.id] for u in users if u.team_id == team.id and u.id in reports]
        stats = _team_stats(member_reports)
        rollups.append({
            "team_id": team.id,
            "team_name": team.name,
            "member_count": sum(1 for u in users if u.team_id == team.id),
            "average_score": stats.average_score,
            "tasks_assigned": stats.total_tasks_assigned,
            "tasks_completed": stats.total_tasks_completed,
            "completion_rate": _completion_rate(stats.total_tasks_assigned, stats.total_tasks_completed),
            "on_time_percentage": stats.on_time_percentage,
        })
    ranked = sorted(rollups, key=lambda t: (-t["average_score"], t["team_id"]))
    return {
        "teams": rollups,
        "summary": {
            "total_teams": len(rollups),
            "avg_completion_rate": (
                round_half_up(sum(t["completion_rate"] for t in rollups) / len(rollups)) if rollups else 0
            ),
            "top_team_id": ranked[0]["team_id"] if ranked else None,
        },
    }


def _users(users, reports: Dict[int, WeeklyReport]) -> dict:
    rows = []
    for user in users:
        report = reports.get(user.id)
        if report is None:
            continue
        rows.append({
            "user_id": user.id,
            "name": user.name,
            "team_id": user.team_id,
            "total_score": report.total_score,
            "completion_score": report.completion_score,
            "timeliness_score": report.timeliness_score,
            "quality_score": report.quality_score,
            "kra_alignment_score": report.kra_alignment_score,
            "tasks_assigned": report.tasks_assigned,
            "tasks_completed": report.tasks_completed,
        })
    ranked = sorted(rows, key=lambda r: (-r["total_score"], r["user_id"]))
    return {
        "users": ranked,
        "summary": {
            "total_users": len(rows),
            "avg_completion_rate": (
                round_half_up(sum(r["completion_score"] for r in rows) / len(rows)) if rows else 0
            ),
            "top_performers": [r["user_id"] for r in ranked[:5]],
        },
    }


def _performance(reports: Dict[int, WeeklyReport]) -> dict:
    rows = list(reports.values())
    stats = _team_stats(rows)
    completion_rate = _completion_rate(stats.total_tasks_assigned, stats.total_tasks_completed)
    if completion_rate >= 75:
        completion_trend = "Excellent"
    elif completion_rate >= 50:
        completion_trend = "Good"
    else:
        completion_trend = "Needs Improvement"

    def _avg(attr: str) -> int:
        return round_half_up(sum(getattr(r, attr) for r in rows) / len(rows)) if rows else 0

    delayed = sum(r.delay_count for r in rows)
    return {
        "overall_metrics": {
            "average_score": stats.average_score,
            "completion_rate": completion_rate,
            "on_time_percentage": stats.on_time_percentage,
            "tasks_assigned": stats.total_tasks_assigned,
            "tasks_completed": stats.total_tasks_completed,
        },
        "average_breakdown": {
            "completion_score": _avg("completion_score"),
            "timeliness_score": _avg("timeliness_score"),
            "quality_score": _avg("quality_score"),
            "kra_alignment_score": _avg("kra_alignment_score"),
        },
        "insights": {
            "completion_trend": completion_trend,
            "delay_ratio": _completion_rate(stats.total_tasks_assigned, delayed),
        },
    }


async def generate_admin_report(
    session_factory: async_sessionmaker,
    report_type: str,
    week_start: Optional[date] = None,
    concurrency: Optional[int] = None,
    now: Optional[datetime] = None,
) -> AdminReport:
    if report_type not in REPORT_TYPES:
        raise ValueError(f"Unknown report type '{report_type}', expected one of {REPORT_TYPES}")

    now = now or utcnow()
    week_start, week_end = week_bounds(week_start or now)

    # One config snapshot for the whole fan-out
    async with session_factory() as db:
        config = await get_scoring_config(db)
        users = await users_repo.list_active_users(db)
        teams = await users_repo.list_teams(db) if report_type == "teams" else []
    validate_weights(config)

    reports, errors = await generate_reports_for_users(
        session_factory, [u.id for u in users], week_start, config, concurrency, now
    )

    if report_type == "overview":
        data = _overview(users, reports)
    elif report_type == "teams":
        data = _teams(teams, users, reports)
    elif report_type == "users":
        data = _users(users, reports)
    else:
        data = _performance(reports)
    data["errors"] = errors

    logger.info("Admin report '%s' for week %s: %d users, %d errors",
                report_type, week_start, len(reports), len(errors))
    return AdminReport(
        report_type=report_type,
        week_start=week_start,
        week_end=week_end,
        generated_at=now,
        data=data,
    )
