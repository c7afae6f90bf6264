"""
Gameweek aggregation

Joins every prediction of a gameweek against the final results and ranks the
players. Works on plain snapshots so it can be called from request handlers,
the finalization transaction and the CLI alike.
"""

from dataclasses import dataclass

from predictor.utils.scoring import parse_predicted_score, score_breakdown

FINISHED = "FINISHED"


@dataclass(frozen=True)
class MatchResult:
    home: int
    away: int


@dataclass(frozen=True)
class PredictionEntry:
    """Snapshot of a stored prediction"""

    user_id: str
    scores: dict
    user_name: str = None


@dataclass(frozen=True)
class GameweekScore:
    user_id: str
    user_name: str
    total_points: int
    exact_count: int
    correct_count: int

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "user_name": self.user_name,
            "points": self.total_points,
            "exact_count": self.exact_count,
            "correct_count": self.correct_count,
        }


def build_result_lookup(matches, overrides=None):
    """
    Build {match_id: MatchResult} for matches that count towards scoring.

    Args:
        matches: iterable of objects with id, status, home_score, away_score
        overrides: optional {match_id: (home, away)} of manual corrections

    A manual override replaces the cached score. Only finished matches with
    both sides present are included.
    """
    overrides = overrides or {}
    results = {}

    for match in matches:
        if match.status != FINISHED:
            continue

        match_id = str(match.id)
        if match_id in overrides:
            home, away = overrides[match_id]
        else:
            home, away = match.home_score, match.away_score

        if home is None or away is None:
            continue

        results[match_id] = MatchResult(home=home, away=away)

    return results


def score_entry(entry, results, rules):
    """Return (points, exact_count, correct_count) for one prediction"""
    total_points = 0
    exact_count = 0
    correct_count = 0

    for match_id, raw in (entry.scores or {}).items():
        result = results.get(str(match_id))
        if result is None:
            continue

        predicted = parse_predicted_score(raw)
        if predicted is None:
            continue

        points, kind = score_breakdown(predicted, (result.home, result.away), rules)
        total_points += points
        if kind == "exact":
            exact_count += 1
        elif kind == "result":
            correct_count += 1

    return total_points, exact_count, correct_count


def aggregate_gameweek(results, predictions, valid_user_ids, rules, members=None):
    """
    Score and rank all predictions of a gameweek.

    Args:
        results: {match_id: MatchResult} from build_result_lookup()
        predictions: iterable of PredictionEntry
        valid_user_ids: ids of existing accounts, orphaned predictions are skipped
        rules: ScoringRules
        members: optional league member ids to restrict the table to

    Returns:
        List of GameweekScore sorted by points (desc) then user id
    """
    valid_user_ids = set(valid_user_ids)
    if members is not None:
        members = set(members)

    table = []
    for entry in predictions:
        if entry.user_id not in valid_user_ids:
            continue
        if members is not None and entry.user_id not in members:
            continue

        points, exact_count, correct_count = score_entry(entry, results, rules)
        table.append(
            GameweekScore(
                user_id=entry.user_id,
                user_name=entry.user_name or "Anonymous",
                total_points=points,
                exact_count=exact_count,
                correct_count=correct_count,
            )
        )

    table.sort(key=lambda row: (-row.total_points, row.user_id))
    return table
