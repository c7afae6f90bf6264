import logging

from flask import current_app, jsonify, request

from predictor import db, limiter
from predictor.models import Match, Prediction, ScoreOverride, User
from predictor.routes.api import bp
from predictor.services.finalization_service import FinalizationService
from predictor.services.standings_service import (
    get_classic_standings,
    get_gameweek_leaderboard,
    get_h2h_table,
)
from predictor.utils.cache_utils import cached_route
from predictor.utils.settings import current_season_settings

logger = logging.getLogger(__name__)


def _invalid_gameweek(gameweek):
    if not current_season_settings().is_valid_gameweek(gameweek):
        return jsonify({"error": f"Gameweek {gameweek} does not exist"}), 404
    return None


@bp.route("/gameweeks/current")
def current_gameweek():
    """Gameweek of the next match still to be played"""
    settings = current_season_settings()
    return jsonify(
        {
            "season": settings.season,
            "gameweek": Match.detect_current_gameweek(settings.total_gameweeks),
        }
    )


@bp.route("/gameweeks/<int:gameweek>/matches")
def gameweek_matches(gameweek):
    """Cached matches of a gameweek with manual score corrections applied"""
    error = _invalid_gameweek(gameweek)
    if error:
        return error

    overrides = ScoreOverride.for_gameweek(gameweek)
    matches = Match.get_for_gameweek(gameweek)

    response = {
        "gameweek": gameweek,
        "matches": [match.to_dict(override=overrides.get(match.id)) for match in matches],
    }
    if not matches:
        response["message"] = "Waiting for match data for this gameweek"
    return jsonify(response)


@bp.route("/gameweeks/<int:gameweek>/leaderboard")
def gameweek_leaderboard(gameweek):
    """Live scores for one gameweek, optionally for one league"""
    error = _invalid_gameweek(gameweek)
    if error:
        return error

    league_id = request.args.get("league_id", type=int)
    payload, error = get_gameweek_leaderboard(gameweek, league_id=league_id)
    if error:
        return jsonify({"error": error}), 404
    return jsonify(payload)


@bp.route("/gameweeks/<int:gameweek>/status")
def gameweek_status(gameweek):
    error = _invalid_gameweek(gameweek)
    if error:
        return error
    return jsonify(FinalizationService().get_status(gameweek))


@bp.route("/gameweeks/<int:gameweek>/finalize", methods=["POST"])
@limiter.limit(lambda: current_app.config.get("FINALIZE_RATE_LIMIT", "30 per minute"))
def finalize_gameweek(gameweek):
    """
    Finalize a completed gameweek.

    Any client that sees the gameweek complete may call this. Only one call
    applies the finalization; the rest get finalized=false.
    """
    error = _invalid_gameweek(gameweek)
    if error:
        return error

    service = FinalizationService()
    status = service.get_status(gameweek)
    if status["is_finalized"]:
        return jsonify({"finalized": False, "message": "Gameweek is already finalized"})
    if not status["eligible"]:
        return jsonify({"finalized": False, "message": status["message"]}), 409

    applied, message = service.finalize_gameweek(gameweek)
    return jsonify({"finalized": applied, "message": message})


@bp.route("/gameweeks/<int:gameweek>/predictions/<user_id>")
def get_prediction(gameweek, user_id):
    error = _invalid_gameweek(gameweek)
    if error:
        return error

    prediction = Prediction.query.filter_by(gameweek=gameweek, user_id=user_id).first()
    if not prediction:
        return jsonify({"error": "No predictions for this gameweek"}), 404
    return jsonify(prediction.to_dict())


@bp.route("/gameweeks/<int:gameweek>/predictions/<user_id>", methods=["PUT"])
def submit_prediction(gameweek, user_id):
    """Create or update a user's predictions for a gameweek"""
    error = _invalid_gameweek(gameweek)
    if error:
        return error

    user = db.session.get(User, user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    data = request.get_json(silent=True)
    if not isinstance(data, dict) or "scores" not in data:
        return jsonify({"error": "Request body must contain scores"}), 400

    prediction, message = Prediction.submit(gameweek, user, data["scores"])
    if prediction is None:
        db.session.rollback()
        status_code = 409 if "finalized" in message else 400
        return jsonify({"error": message}), status_code

    db.session.commit()
    logger.info(f"Predictions saved for user {user_id} in gameweek {gameweek}")
    return jsonify({"message": message, "prediction": prediction.to_dict()})


@bp.route("/leagues/<int:league_id>/h2h")
@cached_route(timeout=300, key_prefix="standings_h2h")
def league_h2h(league_id):
    """Head-to-Head table built from finalized gameweeks"""
    settings = current_season_settings()
    current = request.args.get("current_gameweek", type=int)
    if current is None:
        current = Match.detect_current_gameweek(settings.total_gameweeks)

    payload, error = get_h2h_table(league_id, current, settings=settings)
    if error:
        status_code = 404 if error == "League not found" else 400
        return {"error": error}, status_code
    return payload


@bp.route("/leagues/<int:league_id>/standings")
@cached_route(timeout=300, key_prefix="standings_classic")
def league_standings(league_id):
    payload, error = get_classic_standings(league_id)
    if error:
        return {"error": error}, 404
    return payload


@bp.route("/leaderboard")
@cached_route(timeout=300, key_prefix="standings_overall")
def overall_leaderboard():
    """Season leaderboard by total score"""
    return {"leaderboard": User.get_overall_leaderboard()}


@bp.route("/users/<user_id>")
def user_detail(user_id):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    data = user.to_dict()
    data["gameweek_points"] = user.get_gameweek_points()
    return jsonify(data)
