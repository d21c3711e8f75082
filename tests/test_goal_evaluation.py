"""Tests for the calorie goal bands."""

import pytest

from core.exceptions import ValidationError
from services.adherence import GoalStatus, evaluate_goal


@pytest.mark.parametrize(
    "actual,status,achieved",
    [
        (500, GoalStatus.match, True),
        (540, GoalStatus.match, True),
        (550, GoalStatus.match, True),
        (580, GoalStatus.close, True),
        (600, GoalStatus.close, True),
        (400, GoalStatus.close, True),
        (650, GoalStatus.mismatch, False),
        (350, GoalStatus.mismatch, False),
    ],
)
def test_bands_around_500_kcal_target(actual, status, achieved):
    """Match, close and mismatch bands around a 500 kcal target."""
    evaluation = evaluate_goal(actual, 500)
    assert evaluation.status == status
    assert evaluation.achieved is achieved
    assert evaluation.deviation == abs(actual - 500)


def test_small_target_uses_absolute_tolerance():
    """The absolute tolerance applies before the relative one."""
    # 40 kcal off a 100 kcal snack is 40%, still a match.
    assert evaluate_goal(140, 100).status == GoalStatus.match


def test_deviation_ratio():
    """The deviation ratio is the difference over the target."""
    assert evaluate_goal(580, 500).deviation_ratio == pytest.approx(0.16)


@pytest.mark.parametrize("expected", [0, -100, None])
def test_missing_target_is_rejected(expected):
    """Goal evaluation needs a positive target."""
    with pytest.raises(ValidationError):
        evaluate_goal(500, expected)
