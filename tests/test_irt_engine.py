# tests/test_irt_engine.py

import math

import pytest

import irt_engine
from irt_engine import (
    adaptive_learning_rate,
    confidence_for_attempts,
    discrimination_for_confidence,
    estimate_optimal_difficulty,
    probability_correct,
    target_probability_for,
    update_difficulty,
    update_theta,
)

GRID = [x / 2.0 for x in range(-20, 21)]  # -10 .. 10


def test_probability_in_open_interval():
    for theta in GRID:
        for difficulty in GRID:
            p = probability_correct(theta, difficulty)
            assert 0.0 < p < 1.0, f"p out of range: theta={theta}, b={difficulty}, p={p}"


def test_probability_monotonic_in_ability_gap():
    gaps = sorted({theta - 0.0 for theta in GRID})
    probabilities = [probability_correct(gap, 0.0) for gap in gaps]
    assert probabilities == sorted(probabilities)
    assert probabilities[0] < probabilities[-1]


def test_probability_at_difficulty_is_half():
    assert probability_correct(1.3, 1.3) == pytest.approx(0.5)
    assert probability_correct(1.3, 1.3, discrimination=2.0) == pytest.approx(0.5)


def test_update_theta_matches_formula():
    # p = 0.5, error = 0.5, weight = 0.25
    assert update_theta(0.0, 0.0, True) == pytest.approx(0.1 * 0.5 * 1.25)
    assert update_theta(0.0, 0.0, False) == pytest.approx(-0.1 * 0.5 * 1.25)


def test_update_theta_direction():
    assert update_theta(0.5, 2.0, True) > 0.5
    assert update_theta(0.5, 2.0, False) < 0.5


def test_update_theta_bounded():
    for theta in GRID:
        for difficulty in [0.5, 2.5, 4.5]:
            for outcome in (True, False):
                updated = update_theta(theta, difficulty, outcome, learning_rate=5.0)
                assert -3.0 <= updated <= 3.0


def test_update_theta_clamps_at_bounds():
    assert update_theta(2.99, 0.5, True, learning_rate=1.0) == 3.0
    assert update_theta(-2.99, -2.99, False, learning_rate=1.0) == -3.0


def test_update_difficulty_empty_responses_unchanged():
    assert update_difficulty(2.7, []) == 2.7


def test_update_difficulty_direction():
    all_correct = [{"is_correct": True, "theta": 0.0} for _ in range(5)]
    all_wrong = [{"is_correct": False, "theta": 0.0} for _ in range(5)]
    assert update_difficulty(2.0, all_correct) < 2.0
    assert update_difficulty(2.0, all_wrong) > 2.0


def test_update_difficulty_bounded():
    correct = [{"is_correct": True, "theta": -3.0}] * 10
    wrong = [{"is_correct": False, "theta": 3.0}] * 10
    assert update_difficulty(0.5, correct, learning_rate=10.0) == 0.5
    assert update_difficulty(4.5, wrong, learning_rate=10.0) == 4.5
    for difficulty in [0.5, 1.0, 2.5, 4.0, 4.5]:
        for responses in (correct, wrong, correct + wrong):
            assert 0.5 <= update_difficulty(difficulty, responses, learning_rate=3.0) <= 4.5


def test_update_difficulty_falls_back_to_mean_without_information():
    # p rounds to exactly 1.0, so every weight is zero
    responses = [{"is_correct": False, "theta": 3.0}]
    assert update_difficulty(2.0, responses, learning_rate=0.05, discrimination=1000.0) == pytest.approx(2.05)


def test_update_difficulty_information_weighted():
    theta = 1.0
    difficulty = 2.0
    responses = [{"is_correct": True, "theta": theta}, {"is_correct": False, "theta": -2.5}]

    p1 = probability_correct(theta, difficulty)
    p2 = probability_correct(-2.5, difficulty)
    w1, w2 = p1 * (1 - p1), p2 * (1 - p2)
    expected_error = ((1 - p1) * w1 + (0 - p2) * w2) / (w1 + w2)

    assert update_difficulty(difficulty, responses) == pytest.approx(difficulty - 0.05 * expected_error)


def test_estimate_optimal_difficulty_inverts_model():
    expected = 2.0 + math.log(3.0 / 7.0)
    assert estimate_optimal_difficulty(2.0, 0.7) == pytest.approx(expected, abs=1e-9)
    assert probability_correct(2.0, expected) == pytest.approx(0.7, abs=1e-9)


def test_estimate_optimal_difficulty_clamped():
    # ln(3/7) is negative, so theta 0 lands below the floor; see DESIGN.md decision 3
    assert estimate_optimal_difficulty(0.0, 0.7) == 0.5
    assert estimate_optimal_difficulty(3.0, 0.01) == 4.5


def test_estimate_optimal_difficulty_guards_degenerate_probability():
    for p in (0.0, 1.0, -0.5, 1.5):
        b = estimate_optimal_difficulty(1.0, p)
        assert math.isfinite(b)
        assert 0.5 <= b <= 4.5


def test_estimate_optimal_difficulty_rejects_non_positive_discrimination():
    with pytest.raises(ValueError):
        estimate_optimal_difficulty(0.0, 0.7, discrimination=0.0)


@pytest.mark.parametrize("ratio,expected", [(0.5, 0.1), (0.0, 0.2), (1.0, 0.2), (0.75, 0.15)])
def test_adaptive_learning_rate(ratio, expected):
    assert adaptive_learning_rate(0.1, ratio) == pytest.approx(expected)


def test_target_probability_lowered_for_strong_learners():
    assert target_probability_for(-2.0) == pytest.approx(0.8)
    assert target_probability_for(0.0) == pytest.approx(0.8)
    assert target_probability_for(2.0) == pytest.approx(0.7)


def test_confidence_never_exceeds_ceiling():
    assert confidence_for_attempts(0) == 1.0
    assert confidence_for_attempts(5) == pytest.approx(1.5)
    for attempts in range(0, 500, 7):
        assert confidence_for_attempts(attempts) <= irt_engine.CONFIDENCE_MAX


def test_discrimination_grows_with_confidence():
    assert discrimination_for_confidence(1.0) == pytest.approx(1.0)
    assert discrimination_for_confidence(3.0) == pytest.approx(1.4)
    assert discrimination_for_confidence(10.0) == pytest.approx(1.4)
