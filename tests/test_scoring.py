from types import SimpleNamespace

import pytest

from appraisal_service.services import scoring


def goal(target, achieved, weightage, progress_pct=0, title="g"):
    return SimpleNamespace(
        id=title,
        title=title,
        pillar="CUSTOM",
        unit=None,
        target_value=target,
        achieved_value=achieved,
        progress_pct=progress_pct,
        weightage=weightage,
    )


@pytest.mark.parametrize(
    "score,band",
    [
        (100, "OUTSTANDING"),
        (90.0, "OUTSTANDING"),
        (89.9, "EXCEEDS"),
        (75, "EXCEEDS"),
        (74.99, "MEETS"),
        (60, "MEETS"),
        (40, "NEEDS_IMPROVEMENT"),
        (39.99, "UNSATISFACTORY"),
        (0, "UNSATISFACTORY"),
        (-5, "UNSATISFACTORY"),
        (None, "UNSATISFACTORY"),
    ],
)
def test_band_for_score(score, band):
    assert scoring.band_for_score(score) == band


def test_goal_score_weighted_by_achievement():
    score, breakdown = scoring.compute_goal_score([goal(100, 75, 50, title="a"), goal(50, 50, 50, title="b")])
    assert score == pytest.approx(87.5)
    assert [b.achievement_ratio for b in breakdown] == [0.75, 1.0]
    assert [b.contribution for b in breakdown] == [37.5, 50.0]


def test_goal_score_caps_overachievement_and_uses_progress_without_target():
    score, _ = scoring.compute_goal_score([goal(10, 30, 50), goal(None, None, 50, progress_pct=40)])
    assert score == pytest.approx(70.0)


def test_goal_score_empty_is_zero():
    score, breakdown = scoring.compute_goal_score([])
    assert score == 0
    assert breakdown == []


@pytest.mark.parametrize(
    "achieved,target,expected",
    [
        (100, 100, 100),
        (0, 100, 0),
        (150, 100, 100),
        (-10, 100, 0),
        (2, 3, 67),
        (1, 8, 13),  # 12.5 rounds half-up
        (None, 100, None),
        (5, 0, None),
        (5, None, None),
    ],
)
def test_progress_from_actuals(achieved, target, expected):
    assert scoring.progress_from_actuals(achieved, target) == expected


def test_rescale_rating():
    assert scoring.rescale_rating(1) == 0
    assert scoring.rescale_rating(3) == 50
    assert scoring.rescale_rating(5) == 100


def test_weighted_mean_falls_back_to_simple_mean():
    assert scoring.weighted_mean([(1, 0), (5, 0)]) == 3
    assert scoring.weighted_mean([(1, 1), (5, 3)]) == 4
    assert scoring.weighted_mean([]) is None


def test_no_competency_data_keeps_goal_score():
    result = scoring.score_appraisal([goal(100, 75, 50, title="a"), goal(50, 50, 50, title="b")], [])
    assert result.has_competency_data is False
    assert result.competency_score is None
    assert result.final_score == result.goal_score == 87.5
    assert (result.goal_weight, result.competency_weight) == (100, 0)
    assert result.suggested_rating == "EXCEEDS"


def test_blend_with_competency_data():
    # goal 100, competencies all 3/5 -> 50
    result = scoring.score_appraisal([goal(10, 10, 100)], [(3, 10), (3, 20)])
    assert result.has_competency_data is True
    assert result.competency_score == 50
    assert result.final_score == 80.0
    assert result.suggested_rating == "EXCEEDS"
    assert (result.goal_weight, result.competency_weight) == (60, 40)


def test_band_uses_rounded_final_score():
    # 89.996 is shown as 90.0, so it bands as 90.0
    result = scoring.score_appraisal([goal(100000, 89996, 100)], [])
    assert result.final_score == 90.0
    assert result.suggested_rating == "OUTSTANDING"


def test_display_rating():
    assert scoring.display_rating(87.5) == 4.38
    assert scoring.display_rating(100) == 5.0
    assert scoring.display_rating(0) == 1.0


@pytest.mark.parametrize(
    "kwargs,expected",
    [
        (dict(self_enabled=True, manager_enabled=True, self_done=True, manager_done=False, peer_required=2, peer_completed=1), 50.0),
        (dict(self_enabled=True, manager_enabled=True, self_done=True, manager_done=True, peer_required=2, peer_completed=5), 100.0),
        (dict(self_enabled=False, manager_enabled=False, self_done=False, manager_done=False, peer_required=0, peer_completed=0), 0.0),
        (dict(self_enabled=True, manager_enabled=False, self_done=False, manager_done=True, peer_required=0, peer_completed=0), 0.0),
    ],
)
def test_completion_pct(kwargs, expected):
    assert scoring.completion_pct(**kwargs) == expected
