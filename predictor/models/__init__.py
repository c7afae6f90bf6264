from predictor import db  # noqa: F401 - imported for model imports

from .admin_action import AdminAction
from .gameweek import Gameweek
from .league import League, LeagueFixture, LeagueMember
from .match import Match, ScoreOverride
from .prediction import Prediction
from .user import User

__all__ = [
    "User",
    "League",
    "LeagueMember",
    "LeagueFixture",
    "Gameweek",
    "Match",
    "ScoreOverride",
    "Prediction",
    "AdminAction",
]
