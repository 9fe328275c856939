from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from workscore.exceptions import ScoringConfigError
from workscore.models.work_item import BLOCKED, CANCELLED, COMPLETED, IN_PROGRESS
from workscore.schemas.scoring import ScoringWeights
from workscore.services.scoring_engine import compute_weekly_score, round_half_up, validate_weights

MONDAY = date(2026, 10, 5)
SUNDAY = date(2026, 10, 11)
DUE = datetime(2026, 10, 8, 17, 0)
GENERATED = datetime(2026, 10, 12, 1, 0)
WEIGHTS = ScoringWeights(completion_weight=40, timeliness_weight=30, quality_weight=20, kra_alignment_weight=10)

_ids = iter(range(1, 10_000))


def item(status=IN_PROGRESS, assignees=(1,), due_date=DUE, completed_at=None, kind="task", **extra):
    fields = dict(
        id=next(_ids),
        kind=kind,
        assignees=list(assignees),
        status=status,
        assigned_at=datetime(2026, 10, 5, 9, 0),
        due_date=due_date,
        completed_at=completed_at,
        revision_count=0,
        reopen_count=0,
        parent_goal_id=None,
    )
    fields.update(extra)
    return SimpleNamespace(**fields)


def on_time(**extra):
    extra.setdefault("completed_at", extra.get("due_date", DUE) - timedelta(hours=2))
    return item(status=COMPLETED, **extra)


def late(**extra):
    return item(status=COMPLETED, completed_at=DUE + timedelta(days=1), **extra)


def score(items, config=WEIGHTS, **kwargs):
    return compute_weekly_score(1, MONDAY, SUNDAY, items, config, generated_at=GENERATED, **kwargs)


def ten_eight_six():
    """10 assigned, 8 completed, 6 of them on time; half are KRA items."""
    items = [on_time() for _ in range(6)] + [late() for _ in range(2)] + [item(), item()]
    for entry in items[::2]:
        entry.kind = "kra"
    return items


class TestScenario:
    def test_ten_eight_six_breakdown(self):
        report = score(ten_eight_six())

        assert report.tasks_assigned == 10
        assert report.tasks_completed == 8
        assert report.on_time_completion == 6
        assert report.breakdown.completion_score == 80
        assert report.breakdown.timeliness_score == 75
        assert report.breakdown.quality_score == 100
        assert report.breakdown.kra_alignment_score == 50
        # 0.4*80 + 0.3*75 + 0.2*100 + 0.1*50 = 79.5
        assert report.breakdown.total_score == 80

    def test_single_revision_is_free(self):
        items = ten_eight_six()
        for entry in items:
            entry.revision_count = 1
        assert score(items).breakdown.timeliness_score == 75

    def test_two_items_revised_once_each_keep_full_timeliness(self):
        items = ten_eight_six()
        items[0].revision_count = 1
        items[6].revision_count = 1
        report = score(items)
        assert report.breakdown.timeliness_score == 75
        assert report.breakdown.total_score == 80
        # with no free revision the same week loses 2 x 5 points
        assert score(items, free_revisions=0).breakdown.timeliness_score == 65

    def test_extra_revisions_cost_five_points_each(self):
        items = ten_eight_six()
        items[0].revision_count = 3
        items[1].revision_count = 2
        # (3 - 1) + (2 - 1) = 3 extra revisions
        assert score(items).breakdown.timeliness_score == 60

    def test_delay_count_includes_open_items_past_due(self):
        items = ten_eight_six()
        # two late completions plus two open items due before the week ends
        assert score(items).delay_count == 4


class TestEdgeCases:
    def test_nothing_assigned_scores_zero(self):
        report = score([])
        assert report.tasks_assigned == 0
        assert report.breakdown.model_dump() == {
            "completion_score": 0,
            "timeliness_score": 0,
            "quality_score": 0,
            "kra_alignment_score": 0,
            "total_score": 0,
        }

    def test_timeliness_zero_without_completions(self):
        report = score([item(), item()])
        assert report.breakdown.completion_score == 0
        assert report.breakdown.timeliness_score == 0

    def test_cancelled_and_foreign_items_ignored(self):
        items = [
            on_time(),
            item(status=CANCELLED),
            on_time(assignees=(2,)),
            on_time(due_date=datetime(2026, 9, 1), assigned_at=datetime(2026, 8, 20)),
        ]
        report = score(items)
        assert report.tasks_assigned == 1
        assert report.breakdown.completion_score == 100

    def test_blocked_and_reopened_items_are_defects(self):
        items = [on_time(), on_time(reopen_count=1), item(status=BLOCKED), item()]
        assert score(items).breakdown.quality_score == 50

    def test_goal_alignment_respects_active_goals(self):
        items = [item(parent_goal_id=50), item(parent_goal_id=51), item(), item()]
        assert score(items).breakdown.kra_alignment_score == 50
        assert score(items, active_goal_ids={50}).breakdown.kra_alignment_score == 25

    def test_recomputation_is_identical(self):
        items = ten_eight_six()
        assert score(items).model_dump() == score(items).model_dump()

    @pytest.mark.parametrize("weights", [
        (100, 0, 0, 0),
        (0, 0, 0, 100),
        (25, 25, 25, 25),
        (10, 20, 30, 40),
    ])
    def test_total_is_int_in_range(self, weights):
        config = SimpleNamespace(
            completion_weight=weights[0],
            timeliness_weight=weights[1],
            quality_weight=weights[2],
            kra_alignment_weight=weights[3],
        )
        total = score(ten_eight_six(), config=config).breakdown.total_score
        assert isinstance(total, int)
        assert 0 <= total <= 100


class TestWeights:
    def test_default_weights_valid(self):
        validate_weights(WEIGHTS)

    @pytest.mark.parametrize("weights", [
        (40, 30, 20, 0),
        (50, 30, 20, 10),
        (110, -10, 0, 0),
        (True, 39, 50, 10),
    ])
    def test_invalid_weights_rejected(self, weights):
        config = SimpleNamespace(
            completion_weight=weights[0],
            timeliness_weight=weights[1],
            quality_weight=weights[2],
            kra_alignment_weight=weights[3],
        )
        with pytest.raises(ScoringConfigError):
            compute_weekly_score(1, MONDAY, SUNDAY, [], config)

    def test_missing_config_rejected(self):
        with pytest.raises(ScoringConfigError):
            validate_weights(None)

    def test_schema_rejects_bad_sum(self):
        with pytest.raises(ValueError):
            ScoringWeights(completion_weight=40, timeliness_weight=30, quality_weight=20, kra_alignment_weight=20)


@pytest.mark.parametrize("value,expected", [(79.5, 80), (79.49, 79), (0.5, 1), (0.0, 0)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected
