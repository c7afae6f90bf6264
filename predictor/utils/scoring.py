"""
Scoring Engine for the Score Predictor application

This module handles scoring calculations for a single predicted match.
For gameweek totals and rankings, see predictor.utils.aggregation.
"""

from dataclasses import dataclass
from enum import Enum


class Outcome(str, Enum):
    HOME = "H"
    DRAW = "D"
    AWAY = "A"


@dataclass(frozen=True)
class ScoringRules:
    """Points awarded per predicted match"""

    exact_score_points: int = 3
    correct_result_points: int = 1

    @classmethod
    def from_config(cls, app_config):
        return cls(
            exact_score_points=int(app_config.get("EXACT_SCORE_POINTS", 3)),
            correct_result_points=int(app_config.get("CORRECT_RESULT_POINTS", 1)),
        )


def classify_outcome(home, away):
    """Return the outcome of a scoreline"""
    if home > away:
        return Outcome.HOME
    if home < away:
        return Outcome.AWAY
    return Outcome.DRAW


def score_breakdown(predicted, actual, rules):
    """
    Score a prediction against a final result.

    Args:
        predicted: (home, away) tuple of predicted goals
        actual: (home, away) tuple of final goals, both present
        rules: ScoringRules instance

    Returns:
        (points, kind) where kind is "exact", "result" or None
    """
    if tuple(predicted) == tuple(actual):
        return rules.exact_score_points, "exact"

    if classify_outcome(*predicted) == classify_outcome(*actual):
        return rules.correct_result_points, "result"

    return 0, None


def score_prediction(predicted, actual, rules):
    """Points for a single predicted match"""
    points, _ = score_breakdown(predicted, actual, rules)
    return points


def parse_goal_count(value):
    """Parse a submitted goal count, returning None when it is not usable"""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)

    try:
        goals = int(str(value).strip())
    except (TypeError, ValueError):
        return None

    if goals < 0:
        return None
    return goals


def parse_predicted_score(raw):
    """
    Turn a stored prediction entry into a (home, away) pair.

    Entries look like {"home": "2", "away": 1}. Anything malformed yields None
    so the match is treated as unscored instead of failing the whole gameweek.
    """
    if not isinstance(raw, dict):
        return None

    home = parse_goal_count(raw.get("home"))
    away = parse_goal_count(raw.get("away"))
    if home is None or away is None:
        return None
    return home, away
