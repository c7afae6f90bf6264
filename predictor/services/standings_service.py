"""
Read-side operations: gameweek leaderboards, classic and Head-to-Head
tables.

Each call loads a fresh snapshot from the database and hands it to the pure
functions in predictor.utils. Nothing here writes.
"""

import logging

from predictor import db
from predictor.models import Gameweek, League, Match, Prediction, ScoreOverride, User
from predictor.utils.aggregation import aggregate_gameweek, build_result_lookup
from predictor.utils.h2h import calculate_h2h_standings
from predictor.utils.settings import current_scoring_rules, current_season_settings

logger = logging.getLogger(__name__)


def load_result_lookup(gameweek):
    """Final results of a gameweek with manual overrides applied"""
    matches = Match.get_for_gameweek(gameweek)
    overrides = {
        match_id: (override.home_score, override.away_score)
        for match_id, override in ScoreOverride.for_gameweek(gameweek).items()
    }
    return matches, build_result_lookup(matches, overrides)


def compute_gameweek_scores(gameweek, rules=None, members=None):
    """Aggregate a gameweek from the current snapshot"""
    rules = rules or current_scoring_rules()
    _, results = load_result_lookup(gameweek)
    predictions = [p.to_entry() for p in Prediction.get_for_gameweek(gameweek)]
    return aggregate_gameweek(
        results, predictions, User.valid_ids(), rules, members=members
    )


def get_gameweek_leaderboard(gameweek, league_id=None, rules=None):
    """
    Live leaderboard for one gameweek.

    Args:
        gameweek: gameweek number
        league_id: optional league to restrict the table to its members
        rules: ScoringRules, defaults to the app config

    Returns:
        (payload, error) - error is a message when the league does not exist
    """
    members = None
    if league_id is not None:
        league = db.session.get(League, league_id)
        if not league:
            return None, "League not found"
        members = league.member_ids()

    matches = Match.get_for_gameweek(gameweek)
    gameweek_row = db.session.get(Gameweek, gameweek)
    table = compute_gameweek_scores(gameweek, rules=rules, members=members)

    message = None
    if not matches:
        message = "Waiting for match data for this gameweek"
    elif not table:
        message = "No one has made predictions yet"

    return {
        "gameweek": gameweek,
        "league_id": league_id,
        "is_finalized": bool(gameweek_row and gameweek_row.is_finalized),
        "leaderboard": [
            dict(row.to_dict(), rank=index + 1) for index, row in enumerate(table)
        ],
        "message": message,
    }, None


def get_classic_standings(league_id):
    """Classic league table, ranked by season totals"""
    league = db.session.get(League, league_id)
    if not league:
        return None, "League not found"

    return {
        "league": league.to_dict(),
        "standings": User.get_overall_leaderboard(user_ids=league.member_ids()),
    }, None


def get_h2h_table(league_id, current_gameweek, settings=None):
    """
    Head-to-Head table for a league plus the fixtures of the current gameweek.

    Only points frozen at finalization are used.
    """
    settings = settings or current_season_settings()

    league = db.session.get(League, league_id)
    if not league:
        return None, "League not found"
    if not league.is_h2h:
        return None, "League is not a Head-to-Head league"

    fixtures = league.get_fixtures()
    members = league.member_ids()

    finalized = {
        number for number in Gameweek.finalized_numbers() if number < current_gameweek
    }
    gameweek_points = Prediction.frozen_points_by_gameweek(finalized)

    names = User.display_names(members)
    standings = calculate_h2h_standings(
        members,
        fixtures,
        finalized,
        gameweek_points,
        current_gameweek,
        settings.bye_participant_id,
        names=names,
        bye_name=settings.bye_participant_name,
    )

    logger.debug(
        f"H2H table for league {league_id}: {len(finalized)} finalized rounds before GW{current_gameweek}"
    )

    def display(participant_id):
        if participant_id == settings.bye_participant_id:
            return settings.bye_participant_name
        return names.get(participant_id, "Unknown")

    current_fixtures = [
        {
            "player1": pair["player1"],
            "player1_name": display(pair["player1"]),
            "player2": pair["player2"],
            "player2_name": display(pair["player2"]),
        }
        for pair in fixtures.get(current_gameweek, [])
    ]

    return {
        "league": league.to_dict(),
        "current_gameweek": current_gameweek,
        "standings": [record.to_dict() for record in standings],
        "fixtures": current_fixtures,
    }, None
