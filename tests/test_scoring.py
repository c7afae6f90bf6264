import pytest

from predictor.utils.scoring import (
    Outcome,
    ScoringRules,
    classify_outcome,
    parse_goal_count,
    parse_predicted_score,
    score_breakdown,
    score_prediction,
)

RULES = ScoringRules()


@pytest.mark.parametrize(
    "home,away,expected",
    [(2, 1, Outcome.HOME), (0, 0, Outcome.DRAW), (3, 3, Outcome.DRAW), (0, 4, Outcome.AWAY)],
)
def test_classify_outcome(home, away, expected):
    assert classify_outcome(home, away) == expected


def test_exact_score_earns_three():
    assert score_prediction((2, 1), (2, 1), RULES) == 3


def test_correct_result_earns_one():
    assert score_prediction((3, 1), (2, 1), RULES) == 1
    assert score_prediction((1, 1), (0, 0), RULES) == 1


def test_wrong_result_earns_nothing():
    assert score_prediction((1, 2), (2, 1), RULES) == 0
    assert score_prediction((0, 0), (1, 0), RULES) == 0


def test_breakdown_reports_kind():
    assert score_breakdown((2, 2), (2, 2), RULES) == (3, "exact")
    assert score_breakdown((1, 0), (4, 0), RULES) == (1, "result")
    assert score_breakdown((1, 0), (0, 1), RULES) == (0, None)


def test_custom_rules():
    rules = ScoringRules(exact_score_points=5, correct_result_points=2)
    assert score_prediction((2, 1), (2, 1), rules) == 5
    assert score_prediction((1, 0), (2, 1), rules) == 2


def test_rules_from_config():
    rules = ScoringRules.from_config({"EXACT_SCORE_POINTS": "4", "CORRECT_RESULT_POINTS": 2})
    assert rules == ScoringRules(exact_score_points=4, correct_result_points=2)


@pytest.mark.parametrize(
    "value,expected",
    [
        (0, 0),
        (3, 3),
        ("2", 2),
        (" 1 ", 1),
        (2.0, 2),
        (1.5, None),
        (-1, None),
        ("abc", None),
        ("", None),
        (None, None),
        (True, None),
        ([1], None),
    ],
)
def test_parse_goal_count(value, expected):
    assert parse_goal_count(value) == expected


def test_parse_predicted_score():
    assert parse_predicted_score({"home": "2", "away": 1}) == (2, 1)
    assert parse_predicted_score({"home": 2}) is None
    assert parse_predicted_score({"home": "x", "away": 1}) is None
    assert parse_predicted_score("2-1") is None
    assert parse_predicted_score(None) is None
