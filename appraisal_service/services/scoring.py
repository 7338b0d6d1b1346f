"""
Pure scoring rules for the rating engine.

Nothing here touches the database; services feed ORM rows (or anything with the
same attributes) in and persist what comes out.
"""
import math
from dataclasses import dataclass
from typing import Iterable, Protocol

# Highest threshold first; thresholds are inclusive lower bounds.
BAND_THRESHOLDS: tuple[tuple[str, float], ...] = (
    ("OUTSTANDING", 90.0),
    ("EXCEEDS", 75.0),
    ("MEETS", 60.0),
    ("NEEDS_IMPROVEMENT", 40.0),
    ("UNSATISFACTORY", 0.0),
)

GOAL_WEIGHT = 60
COMPETENCY_WEIGHT = 40

RATING_MIN = 1
RATING_MAX = 5


class ScorableGoal(Protocol):
    id: object
    title: str
    pillar: str
    unit: str | None
    target_value: float | None
    achieved_value: float | None
    progress_pct: int
    weightage: int


@dataclass
class GoalBreakdown:
    goal_id: str
    title: str
    pillar: str
    unit: str | None
    target_value: float | None
    achieved_value: float | None
    progress_pct: int
    weightage: int
    achievement_ratio: float
    contribution: float


@dataclass
class ScoreResult:
    goal_score: float
    competency_score: float | None
    final_score: float
    suggested_rating: str
    goal_weight: int
    competency_weight: int
    has_competency_data: bool
    goals: list[GoalBreakdown]


def band_for_score(score: float | None) -> str:
    """Total lookup: missing or negative scores land in the lowest band."""
    if score is None:
        return BAND_THRESHOLDS[-1][0]
    for band, minimum in BAND_THRESHOLDS:
        if score >= minimum:
            return band
    return BAND_THRESHOLDS[-1][0]


def progress_from_actuals(achieved_value: float | None, target_value: float | None) -> int | None:
    """
    Percent of target achieved, rounded half-up and clamped to 0..100.
    None when there is nothing to derive it from.
    """
    if achieved_value is None or not target_value:
        return None
    pct = math.floor(achieved_value / target_value * 100 + 0.5)
    return max(0, min(100, pct))


def achievement_ratio(goal: ScorableGoal) -> float:
    if goal.target_value:
        ratio = (goal.achieved_value or 0.0) / goal.target_value
    else:
        # no numeric target: self-reported progress stands in for the ratio
        ratio = (goal.progress_pct or 0) / 100.0
    return max(0.0, min(ratio, 1.0))


def compute_goal_score(goals: Iterable[ScorableGoal]) -> tuple[float, list[GoalBreakdown]]:
    goals = list(goals)
    total_weight = sum(g.weightage for g in goals)

    breakdown: list[GoalBreakdown] = []
    score = 0.0
    for g in goals:
        ratio = achievement_ratio(g)
        if total_weight:
            score += ratio * 100 * (g.weightage / total_weight)
        breakdown.append(
            GoalBreakdown(
                goal_id=str(g.id),
                title=g.title,
                pillar=g.pillar,
                unit=g.unit,
                target_value=g.target_value,
                achieved_value=g.achieved_value,
                progress_pct=g.progress_pct,
                weightage=g.weightage,
                achievement_ratio=round(ratio, 4),
                contribution=round(g.weightage * ratio, 2),
            )
        )
    return score, breakdown


def rescale_rating(rating: int | float) -> float:
    """Map a 1..5 rating onto 0..100."""
    return (rating - RATING_MIN) / (RATING_MAX - RATING_MIN) * 100


def weighted_mean(values: Iterable[tuple[float, float]]) -> float | None:
    """
    Mean of (value, weight) pairs. Falls back to a simple mean when every
    weight is zero; None for an empty input.
    """
    pairs = list(values)
    if not pairs:
        return None
    total_weight = sum(w for _, w in pairs)
    if total_weight <= 0:
        return sum(v for v, _ in pairs) / len(pairs)
    return sum(v * w for v, w in pairs) / total_weight


def compute_competency_score(ratings: Iterable[tuple[int, float]]) -> float | None:
    """ratings: (rating 1..5, competency weightage) over every submitted review."""
    return weighted_mean((rescale_rating(r), w) for r, w in ratings)


def blend(goal_score: float, competency_score: float | None) -> tuple[float, int, int]:
    """Returns (final_score, goal_weight, competency_weight)."""
    if competency_score is None:
        return goal_score, 100, 0
    final = (GOAL_WEIGHT * goal_score + COMPETENCY_WEIGHT * competency_score) / 100
    return final, GOAL_WEIGHT, COMPETENCY_WEIGHT


def score_appraisal(goals: Iterable[ScorableGoal], ratings: Iterable[tuple[int, float]]) -> ScoreResult:
    goal_score, breakdown = compute_goal_score(goals)
    competency_score = compute_competency_score(ratings)
    final, goal_weight, competency_weight = blend(goal_score, competency_score)

    # band is read off the same rounded value the caller sees
    final = round(final, 2)
    return ScoreResult(
        goal_score=round(goal_score, 2),
        competency_score=round(competency_score, 2) if competency_score is not None else None,
        final_score=final,
        suggested_rating=band_for_score(final),
        goal_weight=goal_weight,
        competency_weight=competency_weight,
        has_competency_data=competency_score is not None,
        goals=breakdown,
    )


def display_rating(final_score: float) -> float:
    """0..100 score to the 1..5 display scale."""
    return max(float(RATING_MIN), round(final_score / 20, 2))


def completion_pct(
    *,
    self_enabled: bool,
    manager_enabled: bool,
    self_done: bool,
    manager_done: bool,
    peer_required: int,
    peer_completed: int,
) -> float:
    total = (1 if self_enabled else 0) + (1 if manager_enabled else 0) + peer_required
    if total == 0:
        return 0.0
    done = (
        (1 if self_enabled and self_done else 0)
        + (1 if manager_enabled and manager_done else 0)
        + min(peer_completed, peer_required)
    )
    return round(done / total * 100, 2)
