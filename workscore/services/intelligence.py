# workscore/services/intelligence.py
"""Background analyses over work-item history.

Each analysis reads the record store, persists its findings as new rows and
returns them. Callers run them independently (see services/jobs.py), so one
failing analysis never blocks the others.
"""
import logging
import math
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from workscore.config import settings
from workscore.models.intelligence import (
    ChronicOverduePattern,
    DepartmentTrend,
    TaskRiskAssessment,
    PerformanceSnapshot,
)
from workscore.models.work_item import ASSIGNED, BLOCKED, COMPLETED, NOT_STARTED
from workscore.repositories import intelligence as intel_repo
from workscore.repositories import scoring as scoring_repo
from workscore.repositories import users as users_repo
from workscore.repositories import work_items as items_repo
from workscore.schemas.intelligence import (
    IntelligenceSummary,
    PersonalInsights,
    ChronicOverduePatternResponse,
    PerformanceSnapshotResponse,
    TaskRiskAssessmentResponse,
)
from workscore.services.scoring_engine import clamp_score, round_half_up
from workscore.utils.dates import iso_week_key, utcnow, week_bounds

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

# Risk factor weights (points)
TIME_PRESSURE_POINTS = 35
DELAY_HISTORY_POINTS = 30
POINTS_PER_REVISION = 5
MAX_REVISION_POINTS = 20
BLOCKED_POINTS = 20

MEDIUM_RISK = 40
CRITICAL_RISK = 70


def _is_overdue(item, now: datetime) -> bool:
    return item.status != COMPLETED and item.due_date is not None and item.due_date < now


# ---------------------------------------------------------------------------
# Chronic overdue patterns
# ---------------------------------------------------------------------------

def overdue_severity(overdue_percentage: float, max_consecutive: int) -> str:
    if overdue_percentage >= 70 or max_consecutive >= 5:
        return "critical"
    if overdue_percentage >= 50 or max_consecutive >= 3:
        return "high"
    if overdue_percentage >= 40 or max_consecutive >= 2:
        return "medium"
    return "low"


def longest_overdue_streak(items: Iterable, now: datetime) -> int:
    longest = current = 0
    for item in sorted(items, key=lambda i: (i.due_date, i.id or 0)):
        if _is_overdue(item, now):
            current += 1
            longest = max(longest, current)
        else:
            current = 0
    return longest


def _overdue_recommendations(avg_days: int, max_consecutive: int, percentage: float) -> List[str]:
    recommendations = []
    if avg_days > 7:
        recommendations.append("Consider workload rebalancing - tasks delayed by over a week on average")
    if max_consecutive >= 3:
        recommendations.append("Immediate manager intervention needed - multiple consecutive delays")
    if percentage >= 60:
        recommendations.append("Training may be needed - over 60% of tasks are overdue")
    return recommendations


async def detect_chronic_overdue_patterns(
    db: AsyncSession,
    lookback_days: Optional[int] = None,
    threshold_percent: Optional[float] = None,
    now: Optional[datetime] = None,
) -> List[ChronicOverduePattern]:
    """Persist a pattern for every user whose overdue share of due items
    in the lookback window is at least `threshold_percent`."""
    lookback_days = settings.CHRONIC_LOOKBACK_DAYS if lookback_days is None else lookback_days
    threshold_percent = settings.CHRONIC_THRESHOLD_PERCENT if threshold_percent is None else threshold_percent
    now = now or utcnow()
    window_start = now - timedelta(days=lookback_days)

    items = await items_repo.list_items_due_between(db, window_start, now)
    users = await users_repo.list_active_users(db)

    patterns = []
    for user in users:
        user_items = [item for item in items if item.is_assigned_to(user.id)]
        if not user_items:
            continue

        overdue = [item for item in user_items if _is_overdue(item, now)]
        percentage = 100.0 * len(overdue) / len(user_items)
        if percentage < threshold_percent:
            continue

        days_late = [
            math.floor((now - item.due_date).total_seconds() / SECONDS_PER_DAY) for item in overdue
        ]
        days_late = [d for d in days_late if d > 0]
        avg_days = round_half_up(sum(days_late) / len(days_late)) if days_late else 0
        streak = longest_overdue_streak(user_items, now)

        patterns.append(ChronicOverduePattern(
            user_id=user.id,
            window_start=window_start,
            window_end=now,
            total_tasks=len(user_items),
            overdue_tasks=len(overdue),
            overdue_percentage=round(percentage, 2),
            avg_days_overdue=avg_days,
            max_consecutive_overdue=streak,
            severity=overdue_severity(percentage, streak),
            recommendations=_overdue_recommendations(avg_days, streak, percentage),
            detected_at=now,
        ))

    await intel_repo.add_records(db, patterns)
    await db.commit()
    logger.info("Chronic overdue detection: %d pattern(s) over %d user(s)", len(patterns), len(users))
    return patterns


# ---------------------------------------------------------------------------
# Department trends
# ---------------------------------------------------------------------------

def _window_aggregate(items: List, now: datetime) -> Dict[str, float]:
    total = len(items)
    completed = sum(1 for item in items if item.status == COMPLETED)
    overdue = sum(1 for item in items if _is_overdue(item, now))
    rate = 100.0 * completed / total if total else 0.0
    return {"total": total, "completed": completed, "overdue": overdue, "rate": rate}


def trend_direction(change_points: float, noise_margin: float) -> str:
    if change_points > noise_margin:
        return "up"
    if change_points < -noise_margin:
        return "down"
    return "flat"


def trend_risk_level(direction: str, change_points: float) -> str:
    if direction == "down" and change_points < -15:
        return "high"
    if direction == "down" and change_points < -10:
        return "medium"
    return "low"


async def analyze_department_trends(
    db: AsyncSession,
    window_days: Optional[int] = None,
    noise_margin: Optional[float] = None,
    now: Optional[datetime] = None,
) -> List[DepartmentTrend]:
    """Compare each team's completion rate for the last `window_days` against
    the equal-length window right before it."""
    window_days = settings.TREND_WINDOW_DAYS if window_days is None else window_days
    noise_margin = settings.TREND_NOISE_MARGIN if noise_margin is None else noise_margin
    now = now or utcnow()
    current_start = now - timedelta(days=window_days)
    previous_start = current_start - timedelta(days=window_days)

    items = await items_repo.list_items_due_between(db, previous_start, now)
    teams = await users_repo.list_teams(db)

    trends = []
    for team in teams:
        members = await users_repo.list_team_members(db, team.id)
        if not members:
            continue
        member_ids = {m.id for m in members}
        team_items = [item for item in items if member_ids.intersection(item.assignees or [])]

        current = _window_aggregate(
            [i for i in team_items if current_start <= i.due_date < now], now
        )
        previous = _window_aggregate(
            [i for i in team_items if previous_start <= i.due_date < current_start], now
        )
        change = current["rate"] - previous["rate"] if previous["total"] else 0.0
        direction = trend_direction(change, noise_margin)

        trends.append(DepartmentTrend(
            team_id=team.id,
            window_start=current_start,
            window_end=now,
            current_total=current["total"],
            current_completed=current["completed"],
            current_overdue=current["overdue"],
            previous_total=previous["total"],
            previous_completed=previous["completed"],
            previous_overdue=previous["overdue"],
            current_completion_rate=round(current["rate"], 2),
            previous_completion_rate=round(previous["rate"], 2),
            change_points=round(change, 2),
            direction=direction,
            risk_level=trend_risk_level(direction, change),
            detected_at=now,
        ))

    await intel_repo.add_records(db, trends)
    await db.commit()
    logger.info("Department trends: %d team(s) analysed", len(trends))
    return trends


# ---------------------------------------------------------------------------
# Task risk
# ---------------------------------------------------------------------------

def delay_rates_by_user(history: Iterable, now: datetime) -> Dict[int, float]:
    """Share of each user's past-due or completed items that finished late or are still open."""
    resolved: Dict[int, int] = defaultdict(int)
    delayed: Dict[int, int] = defaultdict(int)
    for item in history:
        if item.due_date is None:
            continue
        if item.status == COMPLETED:
            late = item.completed_at is not None and item.completed_at > item.due_date
        elif item.due_date < now:
            late = True
        else:
            continue
        for user_id in item.assignees or []:
            resolved[user_id] += 1
            if late:
                delayed[user_id] += 1
    return {user_id: delayed[user_id] / count for user_id, count in resolved.items()}


def time_pressure(item, now: datetime) -> Dict[str, float]:
    remaining = (item.due_date - now).total_seconds()
    span = (item.due_date - item.assigned_at).total_seconds() if item.assigned_at else 0.0
    if remaining <= 0:
        return {"time_remaining_ratio": 0.0, "time_pressure": 1.0}

    ratio = min(1.0, remaining / span) if span > 0 else 0.0
    days = remaining / SECONDS_PER_DAY
    if days <= 1:
        urgency = 1.0
    elif days <= 3:
        urgency = 0.66
    elif days <= 7:
        urgency = 0.33
    else:
        urgency = 0.0
    return {"time_remaining_ratio": round(ratio, 4), "time_pressure": max(1.0 - ratio, urgency)}


def risk_tier(score: int) -> str:
    if score >= CRITICAL_RISK:
        return "critical"
    if score >= MEDIUM_RISK:
        return "medium"
    return "low"


def predicted_outcome(score: int) -> str:
    if score >= CRITICAL_RISK:
        return "very_late"
    if score >= MEDIUM_RISK:
        return "late"
    return "on_time"


def score_task_risk(item, delay_rates: Dict[int, float], now: datetime) -> dict:
    pressure = time_pressure(item, now)
    delay_rate = max((delay_rates.get(u, 0.0) for u in item.assignees or []), default=0.0)
    revisions = item.revision_count or 0
    blocked = item.status == BLOCKED

    raw = (
        TIME_PRESSURE_POINTS * pressure["time_pressure"]
        + DELAY_HISTORY_POINTS * delay_rate
        + min(MAX_REVISION_POINTS, POINTS_PER_REVISION * revisions)
        + (BLOCKED_POINTS if blocked else 0)
    )
    score = clamp_score(raw)
    days_until_due = math.ceil((item.due_date - now).total_seconds() / SECONDS_PER_DAY)

    recommendations = []
    if score >= 60:
        recommendations.append("Immediate manager attention required")
    if blocked:
        recommendations.append("Resolve blocking issues urgently")
    if days_until_due <= 2 and item.status in (NOT_STARTED, ASSIGNED):
        recommendations.append("Escalate task - not started with imminent deadline")
    if delay_rate >= 0.5:
        recommendations.append("Assignee frequently misses deadlines - check workload")

    return {
        "risk_score": score,
        "risk_tier": risk_tier(score),
        "predicted_outcome": predicted_outcome(score),
        "days_until_due": days_until_due,
        "factors": {
            "time_remaining_ratio": pressure["time_remaining_ratio"],
            "time_pressure": round(pressure["time_pressure"], 4),
            "historical_delay_rate": round(delay_rate, 4),
            "revision_count": float(revisions),
            "blocked": 1.0 if blocked else 0.0,
        },
        "recommendations": recommendations,
    }


async def assess_task_risks(
    db: AsyncSession,
    now: Optional[datetime] = None,
    persist_min_score: Optional[int] = None,
) -> List[TaskRiskAssessment]:
    """Score every open item with a due date; persist medium and critical ones."""
    now = now or utcnow()
    persist_min_score = settings.RISK_PERSIST_MIN_SCORE if persist_min_score is None else persist_min_score

    open_items = await items_repo.list_open_items_with_due_date(db)
    history = await items_repo.list_items_due_before(db, now)
    delay_rates = delay_rates_by_user(history, now)

    assessments = []
    for item in open_items:
        result = score_task_risk(item, delay_rates, now)
        if result["risk_score"] < persist_min_score:
            continue
        assessments.append(TaskRiskAssessment(
            work_item_id=item.id,
            assignees=list(item.assignees or []),
            assessed_at=now,
            **result,
        ))

    await intel_repo.add_records(db, assessments)
    await db.commit()
    logger.info("Task risk: %d of %d open item(s) at medium risk or above", len(assessments), len(open_items))
    return assessments


# ---------------------------------------------------------------------------
# Weekly snapshots
# ---------------------------------------------------------------------------

def _snapshot_alerts(report, trend: str, diff: int) -> List[str]:
    alerts = []
    if report.total_score < 50:
        alerts.append("Low overall performance score")
    if report.timeliness_score < 40:
        alerts.append("Poor timeliness - many tasks completed late")
    if trend == "down" and diff < -15:
        alerts.append("Significant performance decline")
    return alerts


async def create_weekly_snapshots(
    db: AsyncSession, today: Optional[date] = None, now: Optional[datetime] = None
) -> List[PerformanceSnapshot]:
    """Roll the week that just ended into one snapshot per reported user.

    Only runs on the rollup weekday; any other day returns an empty list.
    A user already snapshotted for that ISO week is skipped.
    """
    now = now or utcnow()
    today = today or now.date()
    if today.weekday() != settings.ROLLUP_WEEKDAY:
        logger.info("Skipping weekly snapshots: %s is not the rollup day", today)
        return []

    week_start, week_end = week_bounds(today - timedelta(days=7))
    iso_year, iso_week = iso_week_key(week_start)
    reports = await scoring_repo.list_reports_for_week(db, week_start)

    snapshots = []
    for report in reports:
        if await intel_repo.snapshot_exists(db, report.user_id, iso_year, iso_week):
            continue
        previous = await scoring_repo.get_weekly_report(
            db, report.user_id, week_start - timedelta(days=7)
        )
        diff = report.total_score - previous.total_score if previous else 0
        trend = trend_direction(diff, 5)
        snapshots.append(PerformanceSnapshot(
            user_id=report.user_id,
            week_start=week_start,
            week_end=week_end,
            iso_year=iso_year,
            iso_week=iso_week,
            overall_score=report.total_score,
            previous_score=previous.total_score if previous else None,
            trend=trend,
            tasks_assigned=report.tasks_assigned,
            tasks_completed=report.tasks_completed,
            alerts=_snapshot_alerts(report, trend, diff),
            snapshot_at=now,
        ))

    try:
        await intel_repo.add_records(db, snapshots)
        await db.commit()
    except IntegrityError:
        # A concurrent run already stored this week's snapshots
        await db.rollback()
        logger.warning("Weekly snapshots for %s already written by another run", week_start)
        return []

    logger.info("Weekly snapshots: %d created for week %s", len(snapshots), week_start)
    return snapshots


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------

async def generate_intelligence_summary(
    db: AsyncSession, days: int = 7, now: Optional[datetime] = None
) -> IntelligenceSummary:
    now = now or utcnow()
    since = now - timedelta(days=days)

    snapshots = await intel_repo.list_snapshots_since(db, since)
    return IntelligenceSummary(
        chronic_overdue_count=await intel_repo.count_patterns(db, since),
        critical_risk_tasks=await intel_repo.count_risks(db, since, CRITICAL_RISK),
        declining_departments=await intel_repo.count_trends(db, since, "down"),
        total_alerts=sum(len(s.alerts or []) for s in snapshots),
        last_pattern_detected_at=await intel_repo.latest_timestamp(db, ChronicOverduePattern.detected_at),
        last_risk_assessed_at=await intel_repo.latest_timestamp(db, TaskRiskAssessment.assessed_at),
        last_trend_detected_at=await intel_repo.latest_timestamp(db, DepartmentTrend.detected_at),
        generated_at=now,
    )


async def list_chronic_patterns(
    db: AsyncSession, days: int = 30, now: Optional[datetime] = None
) -> List[ChronicOverduePattern]:
    now = now or utcnow()
    return await intel_repo.list_patterns(db, since=now - timedelta(days=days))


async def list_task_risks(
    db: AsyncSession, min_score: int = MEDIUM_RISK, days: int = 7, now: Optional[datetime] = None
) -> List[TaskRiskAssessment]:
    now = now or utcnow()
    return await intel_repo.list_risks(db, since=now - timedelta(days=days), min_score=min_score)


async def get_personal_insights(
    db: AsyncSession, user_id: int, now: Optional[datetime] = None
) -> PersonalInsights:
    now = now or utcnow()
    mine = await intel_repo.list_user_risks(db, user_id, since=now - timedelta(days=7), limit=5)
    snapshot = await intel_repo.latest_snapshot(db, user_id)
    patterns = await intel_repo.list_patterns(db, user_id=user_id, limit=1)

    return PersonalInsights(
        user_id=user_id,
        risks=[TaskRiskAssessmentResponse.model_validate(r) for r in mine],
        snapshot=PerformanceSnapshotResponse.model_validate(snapshot) if snapshot else None,
        pattern=ChronicOverduePatternResponse.model_validate(patterns[0]) if patterns else None,
        generated_at=now,
    )
