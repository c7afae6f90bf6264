from dataclasses import dataclass

from flask import current_app

from predictor.utils.scoring import ScoringRules


@dataclass(frozen=True)
class SeasonSettings:
    """Season-wide settings passed explicitly into league and standings operations"""

    season: str = "2025"
    total_gameweeks: int = 38
    bye_participant_id: str = "AVERAGE"
    bye_participant_name: str = "Average Bot"

    @classmethod
    def from_config(cls, app_config):
        return cls(
            season=str(app_config.get("SEASON", "2025")),
            total_gameweeks=int(app_config.get("SEASON_GAMEWEEKS", 38)),
            bye_participant_id=app_config.get("BYE_PARTICIPANT_ID", "AVERAGE"),
            bye_participant_name=app_config.get("BYE_PARTICIPANT_NAME", "Average Bot"),
        )

    def is_valid_gameweek(self, gameweek):
        return 1 <= gameweek <= self.total_gameweeks


def current_season_settings():
    return SeasonSettings.from_config(current_app.config)


def current_scoring_rules():
    return ScoringRules.from_config(current_app.config)
