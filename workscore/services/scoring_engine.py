# workscore/services/scoring_engine.py
"""Weekly score computation.

Everything here is a pure function of its arguments: the caller loads the work
items and the weight set once and passes them in, so the same snapshot always
produces the same breakdown.
"""
import math
from datetime import date, datetime
from typing import Iterable, List, Optional, Set

from workscore.config import settings
from workscore.exceptions import ScoringConfigError
from workscore.models.work_item import BLOCKED, CANCELLED, COMPLETED
from workscore.schemas.scoring import ScoreBreakdown, WeeklyReportData
from workscore.utils.dates import utcnow, window_datetimes

WEIGHT_FIELDS = (
    "completion_weight",
    "timeliness_weight",
    "quality_weight",
    "kra_alignment_weight",
)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def validate_weights(config) -> None:
    """Raise ScoringConfigError unless the four weights are ints in [0, 100] summing to 100."""
    if config is None:
        raise ScoringConfigError("No scoring configuration supplied")
    total = 0
    for field in WEIGHT_FIELDS:
        value = getattr(config, field, None)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ScoringConfigError(f"{field} must be an integer (got {value!r})")
        if not 0 <= value <= 100:
            raise ScoringConfigError(f"{field} must be between 0 and 100 (got {value})")
        total += value
    if total != 100:
        raise ScoringConfigError(f"Scoring weights must sum to 100 (got {total})")


def _in_window(value: Optional[datetime], start: datetime, end: datetime) -> bool:
    return value is not None and start <= value <= end


def select_items_for_week(
    user_id: int, week_start: date, week_end: date, work_items: Iterable
) -> List:
    """Non-cancelled items assigned to the user with any activity inside the week."""
    start, end = window_datetimes(week_start, week_end)
    selected = []
    for item in work_items:
        if user_id not in (item.assignees or []):
            continue
        if item.status == CANCELLED:
            continue
        if (
            _in_window(item.assigned_at, start, end)
            or _in_window(item.completed_at, start, end)
            or _in_window(item.due_date, start, end)
        ):
            selected.append(item)
    return sorted(selected, key=lambda i: i.id or 0)


def is_completed_on_time(item) -> bool:
    # No due date or no completion stamp is not counted as late
    if item.due_date is None or item.completed_at is None:
        return True
    return item.completed_at <= item.due_date


def is_delayed(item, as_of: datetime) -> bool:
    if item.due_date is None:
        return False
    if item.status == COMPLETED:
        return not is_completed_on_time(item)
    return item.due_date < as_of


def completion_score(items: List) -> int:
    if not items:
        return 0
    completed = sum(1 for item in items if item.status == COMPLETED)
    return clamp_score(100.0 * completed / len(items))


def timeliness_score(items: List, revision_penalty: int, free_revisions: int) -> int:
    completed = [item for item in items if item.status == COMPLETED]
    if not completed:
        return 0
    on_time = sum(1 for item in completed if is_completed_on_time(item))
    extra_revisions = sum(max(0, (item.revision_count or 0) - free_revisions) for item in items)
    base = 100.0 * on_time / len(completed)
    return clamp_score(base - revision_penalty * extra_revisions)


def is_quality_defect(item) -> bool:
    return item.status == BLOCKED or (item.reopen_count or 0) > 0


def quality_score(items: List, defect_penalty: int) -> int:
    if not items:
        return 0
    defects = sum(1 for item in items if is_quality_defect(item))
    return clamp_score(100.0 - defect_penalty * defects / len(items))


def is_goal_aligned(item, active_goal_ids: Optional[Set[int]]) -> bool:
    if item.kind == "kra":
        return True
    if item.parent_goal_id is None:
        return False
    if active_goal_ids is None:
        return True
    return item.parent_goal_id in active_goal_ids


def kra_alignment_score(items: List, active_goal_ids: Optional[Set[int]]) -> int:
    if not items:
        return 0
    aligned = sum(1 for item in items if is_goal_aligned(item, active_goal_ids))
    return clamp_score(100.0 * aligned / len(items))


def weighted_total(breakdown_scores: dict, config) -> int:
    # Integer numerator keeps .5 boundaries exact before rounding
    points = sum(
        getattr(config, field) * breakdown_scores[field.replace("_weight", "_score")]
        for field in WEIGHT_FIELDS
    )
    return clamp_score(points / 100.0)


def compute_weekly_score(
    user_id: int,
    week_start: date,
    week_end: date,
    work_items: Iterable,
    config,
    active_goal_ids: Optional[Set[int]] = None,
    generated_at: Optional[datetime] = None,
    revision_penalty: Optional[int] = None,
    free_revisions: Optional[int] = None,
    defect_penalty: Optional[int] = None,
) -> WeeklyReportData:
    """Score one user for one week.

    `work_items` may contain other users' items or items outside the week;
    they are filtered out here. `config` is any object exposing the four
    `*_weight` attributes (ORM row or `ScoringWeights`).
    """
    validate_weights(config)

    revision_penalty = settings.REVISION_PENALTY if revision_penalty is None else revision_penalty
    free_revisions = settings.FREE_REVISIONS if free_revisions is None else free_revisions
    defect_penalty = settings.QUALITY_DEFECT_PENALTY if defect_penalty is None else defect_penalty

    items = select_items_for_week(user_id, week_start, week_end, work_items)
    _, window_end = window_datetimes(week_start, week_end)

    scores = {
        "completion_score": completion_score(items),
        "timeliness_score": timeliness_score(items, revision_penalty, free_revisions),
        "quality_score": quality_score(items, defect_penalty),
        "kra_alignment_score": kra_alignment_score(items, active_goal_ids),
    }
    total = weighted_total(scores, config)

    completed = [item for item in items if item.status == COMPLETED]
    return WeeklyReportData(
        user_id=user_id,
        week_start=week_start,
        week_end=week_end,
        tasks_assigned=len(items),
        tasks_completed=len(completed),
        on_time_completion=sum(1 for item in completed if is_completed_on_time(item)),
        delay_count=sum(1 for item in items if is_delayed(item, window_end)),
        breakdown=ScoreBreakdown(total_score=total, **scores),
        generated_at=generated_at or utcnow(),
    )
